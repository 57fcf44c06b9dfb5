from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str  # "ok" or "degraded"
    apns_configured: bool
    storage_configured: bool
    apns_environment: str  # "sandbox" or "production"
    version: str = "0.1.0"
