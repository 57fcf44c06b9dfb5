"""Wire services from settings, shared by the app lifespan and the admin CLI."""

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from friendpush.config import Settings
from friendpush.services.alerts import AlertPushService
from friendpush.services.apns import ApnsClient, ApnsConfig, ProviderTokenSigner, build_credential_provider
from friendpush.services.devices import EndpointResolver
from friendpush.services.fanout import VisitFanoutService
from friendpush.services.graph import GraphResolver
from friendpush.services.profiles import ProfileLookup


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """HTTP/2 client for APNs; the provider API does not speak HTTP/1.1."""
    return httpx.AsyncClient(
        http2=True,
        timeout=httpx.Timeout(
            connect=settings.fanout_http_connect_timeout,
            read=settings.fanout_http_read_timeout,
            write=5.0,
            pool=5.0,
        ),
    )


def build_apns_client(settings: Settings, http_client: httpx.AsyncClient) -> ApnsClient:
    config = ApnsConfig.from_settings(settings)
    signer = ProviderTokenSigner(config, ttl_seconds=settings.apns_token_ttl_seconds)
    credentials = build_credential_provider(
        signer,
        cache_enabled=settings.apns_token_cache_enabled,
        refresh_margin_seconds=settings.apns_token_refresh_margin_seconds,
    )
    return ApnsClient(config=config, credentials=credentials, http_client=http_client)


def build_fanout_service(
    settings: Settings,
    gateway: ApnsClient,
    session_factory: async_sessionmaker[AsyncSession] | None,
) -> VisitFanoutService:
    return VisitFanoutService(
        apns_config=gateway.config,
        gateway=gateway,
        graph=GraphResolver(session_factory),
        endpoints=EndpointResolver(session_factory),
        platform=settings.fanout_target_platform,
        max_concurrency=settings.fanout_max_concurrency,
    )


def build_alert_service(
    settings: Settings,
    gateway: ApnsClient,
    session_factory: async_sessionmaker[AsyncSession] | None,
) -> AlertPushService:
    return AlertPushService(
        apns_config=gateway.config,
        gateway=gateway,
        endpoints=EndpointResolver(session_factory),
        profiles=ProfileLookup(session_factory),
        platform=settings.fanout_target_platform,
        max_concurrency=settings.fanout_max_concurrency,
    )
