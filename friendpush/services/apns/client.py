from enum import Enum

import httpx
import structlog

from friendpush.core.exceptions import SigningError
from friendpush.services.apns.config import ApnsConfig
from friendpush.services.apns.credentials import CredentialProvider
from friendpush.services.payloads import PushPayload

logger = structlog.get_logger()

TOKEN_LOG_PREFIX = 8

# APNs reasons meaning our provider token, not the device, was refused.
STALE_TOKEN_REASONS = frozenset({"ExpiredProviderToken", "InvalidProviderToken"})


class DispatchOutcome(str, Enum):
    DELIVERED = "delivered"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"
    SIGNING_ERROR = "signing_error"

    @property
    def delivered(self) -> bool:
        return self is DispatchOutcome.DELIVERED


def _reason(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("reason") if isinstance(body, dict) else None


class ApnsClient:
    """Delivers one payload to one device over the APNs HTTP/2 provider API."""

    def __init__(
        self,
        config: ApnsConfig,
        credentials: CredentialProvider,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._config = config
        self._credentials = credentials
        self._client = http_client or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(connect=5.0, read=10.0, write=5.0, pool=5.0),
        )

    @property
    def config(self) -> ApnsConfig:
        return self._config

    async def deliver(self, device_token: str, payload: PushPayload) -> DispatchOutcome:
        """Send a single push. Failures are logged and returned, never raised."""
        token_prefix = device_token[:TOKEN_LOG_PREFIX]

        try:
            credential = await self._credentials.get_credential()
        except SigningError as e:
            logger.error("apns_signing_failed", token_prefix=token_prefix, error=str(e))
            return DispatchOutcome.SIGNING_ERROR

        url = f"{self._config.base_url}/3/device/{device_token}"
        headers = {
            "authorization": f"bearer {credential.token}",
            "apns-topic": self._config.bundle_id or "",
            "apns-push-type": payload.push_type,
            "apns-priority": str(payload.priority),
            "content-type": "application/json",
        }

        try:
            response = await self._client.post(url, content=payload.to_json(), headers=headers)
        except httpx.HTTPError as e:
            logger.error(
                "apns_transport_error",
                token_prefix=token_prefix,
                error_type=type(e).__name__,
                error=str(e),
            )
            return DispatchOutcome.TRANSPORT_ERROR

        if response.is_success:
            logger.debug(
                "apns_delivered",
                token_prefix=token_prefix,
                apns_id=response.headers.get("apns-id"),
            )
            return DispatchOutcome.DELIVERED

        reason = _reason(response)
        if reason in STALE_TOKEN_REASONS:
            self._credentials.invalidate()
        logger.error(
            "apns_rejected",
            token_prefix=token_prefix,
            status=response.status_code,
            reason=reason,
            body=response.text,
        )
        return DispatchOutcome.REJECTED

    async def close(self) -> None:
        await self._client.aclose()
