"""Silent push fan-out to the friends of a visit's author."""

import structlog

from friendpush.core.exceptions import ConfigurationMissingError
from friendpush.schemas.visits import ActivityEvent, VisitFanoutResponse
from friendpush.services.apns.config import ApnsConfig
from friendpush.services.devices import EndpointResolver
from friendpush.services.dispatch import PushGateway, dispatch_all
from friendpush.services.graph import GraphResolver
from friendpush.services.payloads import SilentPushPayload

logger = structlog.get_logger()

PRIVATE_VISIT_MESSAGE = "Private visit, no notifications sent"
APNS_NOT_CONFIGURED_MESSAGE = "APNs not configured"
NO_FRIENDS_MESSAGE = "No friends to notify"
NO_DEVICES_MESSAGE = "No devices to notify"


class VisitFanoutService:
    """Resolves an author's friends to devices and wakes each one with a silent push.

    Every exit short of dispatch is a successful response: private visits,
    missing APNs credentials and empty graphs are normal outcomes. Only a
    missing storage configuration raises.
    """

    def __init__(
        self,
        apns_config: ApnsConfig,
        gateway: PushGateway,
        graph: GraphResolver,
        endpoints: EndpointResolver,
        platform: str = "ios",
        max_concurrency: int = 0,
    ):
        self._apns_config = apns_config
        self._gateway = gateway
        self._graph = graph
        self._endpoints = endpoints
        self._platform = platform
        self._max_concurrency = max_concurrency

    @property
    def apns_config(self) -> ApnsConfig:
        return self._apns_config

    @property
    def storage_configured(self) -> bool:
        return self._graph.is_configured and self._endpoints.is_configured

    async def notify_friends(self, event: ActivityEvent) -> VisitFanoutResponse:
        log = logger.bind(visit_id=event.id, actor_prefix=event.actor_id[:8])
        log.info("visit_fanout_started", visibility=event.visibility)

        if event.is_private:
            log.info("visit_fanout_skipped", reason="private_visit")
            return VisitFanoutResponse(message=PRIVATE_VISIT_MESSAGE)

        if not self._apns_config.is_complete:
            log.info(
                "visit_fanout_skipped",
                reason="apns_not_configured",
                missing=self._apns_config.missing_fields,
            )
            return VisitFanoutResponse(message=APNS_NOT_CONFIGURED_MESSAGE, apns_configured=False)

        if not self.storage_configured:
            raise ConfigurationMissingError()

        friend_ids = await self._graph.resolve(event.actor_id)
        if not friend_ids:
            log.info("visit_fanout_skipped", reason="no_friends")
            return VisitFanoutResponse(message=NO_FRIENDS_MESSAGE, friends_count=0)

        endpoints = await self._endpoints.resolve(friend_ids, self._platform)
        if not endpoints:
            log.info("visit_fanout_skipped", reason="no_devices", friends_count=len(friend_ids))
            return VisitFanoutResponse(
                message=NO_DEVICES_MESSAGE,
                friends_count=len(friend_ids),
                devices_count=0,
            )

        payload = SilentPushPayload(visit_id=event.id, author_id=event.actor_id)
        log.info(
            "visit_fanout_dispatching",
            friends_count=len(friend_ids),
            devices_count=len(endpoints),
        )
        summary = await dispatch_all(
            self._gateway,
            [endpoint.token for endpoint in endpoints],
            payload,
            max_concurrency=self._max_concurrency,
        )

        log.info(
            "visit_fanout_completed",
            devices_count=len(endpoints),
            sent=summary.sent,
            failed=summary.failed,
        )
        return VisitFanoutResponse(
            friends_count=len(friend_ids),
            devices_count=len(endpoints),
            sent=summary.sent,
            failed=summary.failed,
        )
