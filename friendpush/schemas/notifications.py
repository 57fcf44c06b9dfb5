from pydantic import BaseModel, ConfigDict, Field


class NotificationRecord(BaseModel):
    """Row of the parent app's notifications table, as sent by its insert trigger."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)  # recipient
    actor_user_id: str = Field(min_length=1)
    type: str
    visit_id: str | None = None
    comment_id: str | None = None
    created_at: str | None = None


class NotificationPushResponse(BaseModel):
    status: str = "ok"
    success: bool | None = None
    message: str | None = None
    sent: int | None = None
    failed: int | None = None
    apns_configured: bool | None = None
