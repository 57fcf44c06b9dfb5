from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

import friendpush.core.database as db_module
from friendpush.api.v1.router import v1_router
from friendpush.config import settings
from friendpush.core.access_gate import WebhookSecretMiddleware
from friendpush.core.exceptions import FanoutError, fanout_error_handler
from friendpush.core.middleware import RequestLoggingMiddleware
from friendpush.services.factory import (
    build_alert_service,
    build_apns_client,
    build_fanout_service,
    build_http_client,
)

_NAME_TO_LEVEL = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "warn": 30,
    "error": 40,
    "critical": 50,
}

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _NAME_TO_LEVEL.get(settings.fanout_log_level.lower(), 20)
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    http_client = build_http_client(settings)
    gateway = build_apns_client(settings, http_client)
    app.state.fanout_service = build_fanout_service(settings, gateway, db_module.async_session)
    app.state.alert_service = build_alert_service(settings, gateway, db_module.async_session)

    if not gateway.config.is_complete:
        logger.warning("apns_not_configured", missing=gateway.config.missing_fields)
    if db_module.async_session is None:
        logger.warning("storage_not_configured", hint="Set FANOUT_DB_URL")

    logger.info(
        "friendpush_starting",
        apns_environment=gateway.config.environment,
        apns_configured=gateway.config.is_complete,
        storage_configured=db_module.async_session is not None,
        max_concurrency=settings.fanout_max_concurrency,
    )
    yield

    await gateway.close()
    await db_module.close_db()
    logger.info("friendpush_stopping")


app = FastAPI(
    title="friendpush",
    description="Silent push fan-out to a user's friends when they post a new visit",
    version="0.1.0",
    lifespan=lifespan,
)

# Exception handler
app.add_exception_handler(FanoutError, fanout_error_handler)

# Middleware (Starlette: last-added = outermost)
# 1. RequestLogging (outermost): logs all requests including gate rejections
# 2. WebhookSecret: shared secret check when configured
app.add_middleware(WebhookSecretMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(v1_router)


@app.get("/")
async def root():
    return {"service": "friendpush", "version": "0.1.0"}
