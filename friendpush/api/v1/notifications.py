from typing import Any

import structlog
from fastapi import APIRouter, Depends
from pydantic import ValidationError

from friendpush.core.exceptions import FanoutError, InvalidPayloadError
from friendpush.dependencies import get_alert_service, json_body
from friendpush.schemas.notifications import NotificationPushResponse, NotificationRecord
from friendpush.services.alerts import AlertPushService

logger = structlog.get_logger()

router = APIRouter()


@router.post("/v1/notifications/push", response_model_exclude_none=True)
async def push_notification(
    body: Any = Depends(json_body),
    service: AlertPushService = Depends(get_alert_service),
) -> NotificationPushResponse:
    """Deliver a visible alert for a newly stored notification row."""
    try:
        record = NotificationRecord.model_validate(body)
    except ValidationError as e:
        raise InvalidPayloadError() from e

    try:
        return await service.push_notification(record)
    except FanoutError:
        raise
    except Exception as e:
        logger.exception("alert_push_failed", notification_id=record.id)
        raise FanoutError(code="internal_error", message=str(e), status=500) from e
