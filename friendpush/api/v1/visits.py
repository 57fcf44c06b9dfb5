from typing import Any

import structlog
from fastapi import APIRouter, Depends

from friendpush.core.exceptions import FanoutError
from friendpush.dependencies import get_fanout_service, json_body
from friendpush.schemas.visits import VisitFanoutResponse, parse_activity_event
from friendpush.services.fanout import VisitFanoutService

logger = structlog.get_logger()

router = APIRouter()


@router.post("/v1/visits/notify-friends", response_model_exclude_none=True)
async def notify_friends(
    body: Any = Depends(json_body),
    service: VisitFanoutService = Depends(get_fanout_service),
) -> VisitFanoutResponse:
    """Wake every friend's device with a silent push about a new visit.

    Accepts either a database webhook body (`record`) or a direct call
    (`author_id`, `visit_id`, optional `visibility`).
    """
    event = parse_activity_event(body)
    try:
        return await service.notify_friends(event)
    except FanoutError:
        raise
    except Exception as e:
        logger.exception("visit_fanout_failed", visit_id=event.id)
        raise FanoutError(code="internal_error", message=str(e), status=500) from e
