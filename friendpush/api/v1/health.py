from fastapi import APIRouter, Depends

from friendpush.dependencies import get_fanout_service
from friendpush.schemas.health import HealthResponse
from friendpush.services.fanout import VisitFanoutService

router = APIRouter()


@router.get("/health")
async def health_check(
    service: VisitFanoutService = Depends(get_fanout_service),
) -> HealthResponse:
    """Configuration health check. Exempt from the webhook secret."""
    apns_ok = service.apns_config.is_complete
    storage_ok = service.storage_configured

    return HealthResponse(
        status="ok" if apns_ok and storage_ok else "degraded",
        apns_configured=apns_ok,
        storage_configured=storage_ok,
        apns_environment=service.apns_config.environment,
    )
