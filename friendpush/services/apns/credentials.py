"""Hand out provider tokens to deliveries, per call or from a shared cache."""

import asyncio
from abc import ABC, abstractmethod

import structlog

from friendpush.services.apns.signer import ProviderTokenSigner, PushCredential

logger = structlog.get_logger()


class CredentialProvider(ABC):
    @abstractmethod
    async def get_credential(self) -> PushCredential:
        """Return a provider token that is currently valid. Raises SigningError."""
        ...

    def invalidate(self) -> None:
        """Drop any cached token so the next call signs a new one."""


class SigningCredentialProvider(CredentialProvider):
    """Signs a fresh token for every delivery."""

    def __init__(self, signer: ProviderTokenSigner):
        self._signer = signer

    async def get_credential(self) -> PushCredential:
        return self._signer.sign()


class CachedCredentialProvider(CredentialProvider):
    """Process-wide token cache keyed by signing key id.

    A cached token is reused until it is within `refresh_margin_seconds` of
    expiry. Readers of a fresh token never wait; refreshes are serialized so
    concurrent deliveries trigger a single signing call.
    """

    def __init__(self, signer: ProviderTokenSigner, refresh_margin_seconds: int = 600):
        self._signer = signer
        self._refresh_margin_seconds = refresh_margin_seconds
        self._cache: dict[str, PushCredential] = {}
        self._lock = asyncio.Lock()

    def _fresh(self, key_id: str) -> PushCredential | None:
        cached = self._cache.get(key_id)
        if cached is None or cached.expires_within(self._refresh_margin_seconds):
            return None
        return cached

    async def get_credential(self) -> PushCredential:
        key_id = self._signer.key_id or ""
        credential = self._fresh(key_id)
        if credential is not None:
            return credential

        async with self._lock:
            # Another delivery may have refreshed while we waited.
            credential = self._fresh(key_id)
            if credential is not None:
                return credential

            credential = self._signer.sign()
            self._cache[key_id] = credential
            logger.info(
                "apns_token_refreshed",
                key_id=key_id,
                expires_at=credential.expires_at.isoformat(),
            )
            return credential

    def invalidate(self) -> None:
        self._cache.clear()


def build_credential_provider(
    signer: ProviderTokenSigner,
    cache_enabled: bool = True,
    refresh_margin_seconds: int = 600,
) -> CredentialProvider:
    if cache_enabled:
        return CachedCredentialProvider(signer, refresh_margin_seconds=refresh_margin_seconds)
    return SigningCredentialProvider(signer)
