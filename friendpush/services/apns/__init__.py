"""APNs token authentication and delivery."""

from friendpush.services.apns.client import ApnsClient, DispatchOutcome
from friendpush.services.apns.config import ApnsConfig
from friendpush.services.apns.credentials import (
    CachedCredentialProvider,
    CredentialProvider,
    SigningCredentialProvider,
    build_credential_provider,
)
from friendpush.services.apns.signer import (
    ProviderTokenSigner,
    PushCredential,
    load_signing_key,
    sign_provider_token,
)

__all__ = [
    "ApnsClient",
    "ApnsConfig",
    "CachedCredentialProvider",
    "CredentialProvider",
    "DispatchOutcome",
    "ProviderTokenSigner",
    "PushCredential",
    "SigningCredentialProvider",
    "build_credential_provider",
    "load_signing_key",
    "sign_provider_token",
]
