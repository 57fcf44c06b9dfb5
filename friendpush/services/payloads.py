"""APNs payload bodies."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

WIDGET_UPDATE_TYPE = "widget_update"
REFRESH_FRIEND_VISITS_ACTION = "refresh_friend_visits"


class PushPayload(ABC):
    """A JSON body plus the APNs delivery headers it must be sent with."""

    push_type: ClassVar[str]
    priority: ClassVar[int]

    @abstractmethod
    def to_dict(self) -> dict:
        ...

    def to_json(self) -> bytes:
        """Compact JSON in a fixed key order."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False).encode("utf-8")


@dataclass(frozen=True)
class SilentPushPayload(PushPayload):
    """Background push that wakes the app to refresh friend visits.

    Carries no alert, sound or badge; APNs rejects background pushes sent at
    priority 10.
    """

    visit_id: str
    author_id: str

    push_type: ClassVar[str] = "background"
    priority: ClassVar[int] = 5

    def to_dict(self) -> dict:
        return {
            "aps": {"content-available": 1},
            "type": WIDGET_UPDATE_TYPE,
            "visit_id": self.visit_id,
            "author_id": self.author_id,
            "action": REFRESH_FRIEND_VISITS_ACTION,
        }


@dataclass(frozen=True)
class AlertPushPayload(PushPayload):
    """Visible notification for an in-app notification record."""

    title: str
    body: str
    type: str
    tap_action: str
    actor_username: str | None = None
    actor_avatar_url: str | None = None
    visit_id: str | None = None
    friend_user_id: str | None = None
    cafe_name: str | None = None
    badge: int = 1
    sound: str = "default"

    push_type: ClassVar[str] = "alert"
    priority: ClassVar[int] = 10

    def to_dict(self) -> dict:
        payload = {
            "aps": {
                "alert": {"title": self.title, "body": self.body},
                "sound": self.sound,
                "badge": self.badge,
            },
            "type": self.type,
            "actor_username": self.actor_username,
            "actor_avatar_url": self.actor_avatar_url,
            "visit_id": self.visit_id,
            "friend_user_id": self.friend_user_id,
            "cafe_name": self.cafe_name,
            "tap_action": self.tap_action,
        }
        return {k: v for k, v in payload.items() if v is not None}
