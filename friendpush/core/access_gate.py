import secrets

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from friendpush.config import settings

logger = structlog.get_logger()

# Paths exempt from the webhook secret check (health probes, root info)
WEBHOOK_GATE_EXEMPT = {"/health", "/"}

WEBHOOK_SECRET_HEADER = "x-webhook-secret"


class WebhookSecretMiddleware(BaseHTTPMiddleware):
    """Validates the shared secret the database webhook sends with each call.

    When FANOUT_WEBHOOK_SECRET is not set this middleware is a no-op.
    """

    def __init__(self, app, secret: str | None = None):
        super().__init__(app)
        self._secret = secret if secret is not None else settings.fanout_webhook_secret

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        expected = self._secret
        if not expected:
            return await call_next(request)

        if request.url.path in WEBHOOK_GATE_EXEMPT:
            return await call_next(request)

        provided = request.headers.get(WEBHOOK_SECRET_HEADER, "")
        if not provided or not secrets.compare_digest(provided, expected):
            logger.warning("webhook_secret_denied", path=request.url.path)
            return JSONResponse(
                status_code=403,
                content={"success": False, "error": "Invalid or missing webhook secret"},
            )

        return await call_next(request)
