"""Visible alert pushes for in-app notification records."""

import structlog

from friendpush.core.exceptions import ConfigurationMissingError
from friendpush.schemas.notifications import NotificationPushResponse, NotificationRecord
from friendpush.services.apns.config import ApnsConfig
from friendpush.services.devices import EndpointResolver
from friendpush.services.dispatch import PushGateway, dispatch_all
from friendpush.services.payloads import AlertPushPayload
from friendpush.services.profiles import ProfileLookup

logger = structlog.get_logger()

APNS_NOT_CONFIGURED_MESSAGE = "APNs not configured; notification stored but no push sent."
NO_DEVICES_MESSAGE = "No devices to notify"

# Database notification types -> types the iOS client understands
NOTIFICATION_TYPES = {
    "like": "like",
    "comment": "comment",
    "reply": "reply",
    "mention": "mention",
    "follow": "follow",
    "friend_request": "friend_request",
    "friend_request_accepted": "friend_accept",
    "new_visit_from_friend": "new_visit_from_friend",
}

_MESSAGES = {
    "like": ("New Like", "{actor} liked your visit"),
    "comment": ("New Comment", "{actor} commented on your visit"),
    "new_visit_from_friend": ("New Visit", "{actor} posted a new visit"),
    "friend_request": ("Friend Request", "{actor} sent you a friend request"),
    "friend_accept": ("Friend Request Accepted", "{actor} accepted your friend request"),
    "friend_join": ("Friend Joined", "{actor} joined Mugshot"),
}
_FALLBACK_MESSAGE = ("New Notification", "You have a new notification")


def map_notification_type(db_type: str) -> str:
    return NOTIFICATION_TYPES.get(db_type, "system")


def tap_action_for(notification_type: str, visit_id: str | None, friend_user_id: str | None) -> str:
    """Where the client should route when the alert is tapped."""
    if notification_type in ("like", "comment", "new_visit_from_friend"):
        return "visit_detail" if visit_id else "friends_feed"
    if notification_type in ("friend_request", "friend_accept"):
        return "friend_profile" if friend_user_id else "notifications"
    return "friends_feed"


def build_message(notification_type: str, actor_username: str | None) -> tuple[str, str]:
    if notification_type not in _MESSAGES:
        return _FALLBACK_MESSAGE
    title, body = _MESSAGES[notification_type]
    return title, body.format(actor=actor_username or "Someone")


class AlertPushService:
    """Pushes a visible alert to every iOS device of a notification's recipient."""

    def __init__(
        self,
        apns_config: ApnsConfig,
        gateway: PushGateway,
        endpoints: EndpointResolver,
        profiles: ProfileLookup,
        platform: str = "ios",
        max_concurrency: int = 0,
    ):
        self._apns_config = apns_config
        self._gateway = gateway
        self._endpoints = endpoints
        self._profiles = profiles
        self._platform = platform
        self._max_concurrency = max_concurrency

    async def build_payload(self, record: NotificationRecord) -> AlertPushPayload:
        actor = await self._profiles.actor_info(record.actor_user_id)
        cafe_name = await self._profiles.cafe_name(record.visit_id) if record.visit_id else None

        notification_type = map_notification_type(record.type)
        title, body = build_message(notification_type, actor.username)
        return AlertPushPayload(
            title=title,
            body=body,
            type=notification_type,
            # For friend notifications the actor is the friend.
            tap_action=tap_action_for(notification_type, record.visit_id, record.actor_user_id),
            actor_username=actor.username,
            actor_avatar_url=actor.avatar_url,
            visit_id=record.visit_id,
            friend_user_id=record.actor_user_id if "friend" in notification_type else None,
            cafe_name=cafe_name,
        )

    async def push_notification(self, record: NotificationRecord) -> NotificationPushResponse:
        log = logger.bind(notification_id=record.id, notification_type=record.type)
        log.info("alert_push_started", recipient_prefix=record.user_id[:8])

        if not self._apns_config.is_complete:
            log.info(
                "alert_push_skipped",
                reason="apns_not_configured",
                missing=self._apns_config.missing_fields,
            )
            return NotificationPushResponse(message=APNS_NOT_CONFIGURED_MESSAGE, apns_configured=False)

        if not self._endpoints.is_configured:
            raise ConfigurationMissingError()

        endpoints = await self._endpoints.resolve([record.user_id], self._platform)
        if not endpoints:
            log.info("alert_push_skipped", reason="no_devices")
            return NotificationPushResponse(success=True, message=NO_DEVICES_MESSAGE)

        payload = await self.build_payload(record)
        summary = await dispatch_all(
            self._gateway,
            [endpoint.token for endpoint in endpoints],
            payload,
            max_concurrency=self._max_concurrency,
        )

        log.info("alert_push_completed", sent=summary.sent, failed=summary.failed)
        if summary.failed:
            log.warning("alert_push_partial_failure", failed=summary.failed)

        return NotificationPushResponse(
            success=True,
            sent=summary.sent,
            failed=summary.failed,
            apns_configured=True,
        )
