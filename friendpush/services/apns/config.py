from dataclasses import dataclass

from friendpush.config import Settings

PRODUCTION_HOST = "api.push.apple.com"
SANDBOX_HOST = "api.sandbox.push.apple.com"


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


@dataclass(frozen=True)
class ApnsConfig:
    """APNs provider credentials and gateway selection."""

    key_id: str | None = None
    team_id: str | None = None
    bundle_id: str | None = None
    key_content: str | None = None
    use_sandbox: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApnsConfig":
        return cls(
            key_id=settings.apns_key_id,
            team_id=settings.apns_team_id,
            bundle_id=settings.apns_bundle_id,
            key_content=settings.apns_key_content,
            use_sandbox=settings.apns_use_sandbox,
        )

    @property
    def is_complete(self) -> bool:
        """True when all four credentials are present and non-blank."""
        return all(
            _present(v) for v in (self.key_id, self.team_id, self.bundle_id, self.key_content)
        )

    @property
    def missing_fields(self) -> list[str]:
        fields = {
            "APNS_KEY_ID": self.key_id,
            "APNS_TEAM_ID": self.team_id,
            "APNS_BUNDLE_ID": self.bundle_id,
            "APNS_KEY_CONTENT": self.key_content,
        }
        return [name for name, value in fields.items() if not _present(value)]

    @property
    def environment(self) -> str:
        return "sandbox" if self.use_sandbox else "production"

    @property
    def base_url(self) -> str:
        return f"https://{SANDBOX_HOST if self.use_sandbox else PRODUCTION_HOST}"
