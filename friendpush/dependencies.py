from typing import Any

from fastapi import Request

from friendpush.core.exceptions import InvalidPayloadError
from friendpush.services.alerts import AlertPushService
from friendpush.services.fanout import VisitFanoutService


def get_fanout_service(request: Request) -> VisitFanoutService:
    """Return the fan-out service stored on app state during lifespan."""
    return request.app.state.fanout_service


def get_alert_service(request: Request) -> AlertPushService:
    """Return the alert push service stored on app state during lifespan."""
    return request.app.state.alert_service


async def json_body(request: Request) -> Any:
    """Decoded JSON body; anything unparseable is an invalid payload, not a 422."""
    try:
        return await request.json()
    except ValueError as e:
        raise InvalidPayloadError() from e
