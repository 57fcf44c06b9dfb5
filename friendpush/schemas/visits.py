from dataclasses import dataclass
from typing import Annotated, Any, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter, ValidationError

from friendpush.core.exceptions import InvalidPayloadError

PRIVATE_VISIBILITY = "private"
DEFAULT_VISIBILITY = "everyone"


@dataclass(frozen=True)
class ActivityEvent:
    """Canonical form of a new visit, whichever envelope it arrived in."""

    id: str
    actor_id: str
    visibility: str = DEFAULT_VISIBILITY

    @property
    def is_private(self) -> bool:
        return self.visibility == PRIVATE_VISIBILITY


# ── Inbound envelopes ────────────────────────────────────────────────────────


class VisitRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    visibility: str | None = None  # private / friends / everyone


class TriggerEnvelope(BaseModel):
    """Database webhook body: {type, table, schema, record, old_record}."""

    model_config = ConfigDict(extra="ignore")

    record: VisitRecord

    def to_event(self) -> ActivityEvent:
        return ActivityEvent(
            id=self.record.id,
            actor_id=self.record.user_id,
            visibility=self.record.visibility or DEFAULT_VISIBILITY,
        )


class DirectEnvelope(BaseModel):
    """Direct API call body."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    author_id: str = Field(min_length=1)
    visit_id: str = Field(min_length=1)
    visibility: str | None = None

    def to_event(self) -> ActivityEvent:
        return ActivityEvent(
            id=self.visit_id,
            actor_id=self.author_id,
            visibility=self.visibility or DEFAULT_VISIBILITY,
        )


def _envelope_kind(body: Any) -> str | None:
    """A non-empty `record` wins over the direct-call fields."""
    if not isinstance(body, dict):
        return None
    if body.get("record"):
        return "trigger"
    if body.get("author_id") and body.get("visit_id"):
        return "direct"
    return None


VisitEnvelope = Annotated[
    Union[
        Annotated[TriggerEnvelope, Tag("trigger")],
        Annotated[DirectEnvelope, Tag("direct")],
    ],
    Discriminator(_envelope_kind),
]

_envelope_adapter: TypeAdapter[TriggerEnvelope | DirectEnvelope] = TypeAdapter(VisitEnvelope)


def parse_activity_event(body: Any) -> ActivityEvent:
    """Normalize either envelope into an ActivityEvent. Raises InvalidPayloadError."""
    try:
        envelope = _envelope_adapter.validate_python(body)
    except ValidationError as e:
        raise InvalidPayloadError() from e
    return envelope.to_event()


# ── Responses ────────────────────────────────────────────────────────────────


class VisitFanoutResponse(BaseModel):
    success: bool = True
    message: str | None = None
    apns_configured: bool | None = None
    friends_count: int | None = None
    devices_count: int | None = None
    sent: int | None = None
    failed: int | None = None
