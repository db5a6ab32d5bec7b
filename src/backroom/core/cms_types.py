"""Core schemas for the admin console: tracks, sessions and pending input."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Union

TrackStatus = Literal["draft", "public"]
Screen = Literal["main", "access_window", "tracks", "analytics", "settings", "help"]

SCREENS: tuple[str, ...] = ("main", "access_window", "tracks", "analytics", "settings", "help")
TRACK_STATUSES: tuple[str, ...] = ("draft", "public")


class KvKeys:
    """Persisted key layout."""

    ACCESS_WINDOW = "lobby:open_until"
    TRACK_INDEX = "tracks:index"

    @staticmethod
    def session(admin_id: int) -> str:
        return f"admin:state:{admin_id}"

    @staticmethod
    def panel(admin_id: int) -> str:
        return f"admin:panel:{admin_id}"

    @staticmethod
    def track(track_id: str) -> str:
        return f"track:{track_id}"

    @staticmethod
    def metrics_day(day: str) -> str:
        return f"metrics:{day}"

    @staticmethod
    def tg_user_seen(user_id: int) -> str:
        return f"tguser:{user_id}"

    @staticmethod
    def web_seen(fingerprint: str) -> str:
        return f"webseen:{fingerprint}"

    @staticmethod
    def web_path(day: str, path: str) -> str:
        return f"web:path:{day}:{path}"


@dataclass(frozen=True, slots=True)
class Chapter:
    offset_seconds: int
    title: str

    def __post_init__(self) -> None:
        if self.offset_seconds < 0:
            raise ValueError("Chapter.offset_seconds must be >= 0.")

    def to_dict(self) -> dict[str, Any]:
        return {"t": self.offset_seconds, "title": self.title}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Chapter":
        return cls(offset_seconds=int(payload.get("t", 0)), title=str(payload.get("title", "")))


@dataclass(slots=True)
class Track:
    """Catalogued media asset. `id` is the blob storage key."""

    id: str
    title: str
    status: TrackStatus
    url: str
    created_at: int
    description: str = ""
    chapters: list[Chapter] = field(default_factory=list)
    is_current: bool = False

    def __post_init__(self) -> None:
        if not self.id.strip():
            raise ValueError("Track.id must be non-empty.")
        if self.status not in TRACK_STATUSES:
            raise ValueError("Track.status must be one of: draft, public.")

    @property
    def is_public(self) -> bool:
        return self.status == "public"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "url": self.url,
            "createdAt": self.created_at,
            "desc": self.description,
            "chapters": [chapter.to_dict() for chapter in self.chapters],
            "isCurrent": self.is_current,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Track":
        chapters = payload.get("chapters")
        status = payload.get("status")
        return cls(
            id=str(payload.get("id", "")),
            title=str(payload.get("title") or "untitled"),
            status=status if status in TRACK_STATUSES else "draft",
            url=str(payload.get("url", "")),
            created_at=int(payload.get("createdAt") or 0),
            description=str(payload.get("desc") or ""),
            chapters=[Chapter.from_dict(item) for item in chapters if isinstance(item, dict)]
            if isinstance(chapters, list)
            else [],
            is_current=bool(payload.get("isCurrent", False)),
        )


@dataclass(frozen=True, slots=True)
class AwaitingUpload:
    visibility: TrackStatus = "draft"

    kind = "awaiting_upload"

    def __post_init__(self) -> None:
        if self.visibility not in TRACK_STATUSES:
            raise ValueError("AwaitingUpload.visibility must be one of: draft, public.")


@dataclass(frozen=True, slots=True)
class AwaitingDescription:
    track_id: str

    kind = "awaiting_description"


@dataclass(frozen=True, slots=True)
class AwaitingChapters:
    track_id: str

    kind = "awaiting_chapters"


@dataclass(frozen=True, slots=True)
class AwaitingCustomMinutes:
    kind = "awaiting_custom_minutes"


PendingInput = Union[AwaitingUpload, AwaitingDescription, AwaitingChapters, AwaitingCustomMinutes]


def pending_to_dict(pending: PendingInput | None) -> dict[str, Any] | None:
    if pending is None:
        return None
    if isinstance(pending, AwaitingUpload):
        return {"kind": pending.kind, "visibility": pending.visibility}
    if isinstance(pending, (AwaitingDescription, AwaitingChapters)):
        return {"kind": pending.kind, "track_id": pending.track_id}
    return {"kind": pending.kind}


def pending_from_dict(payload: Any) -> PendingInput | None:
    """Decode a stored pending input; unknown or broken payloads decode to None."""
    if not isinstance(payload, dict):
        return None
    kind = payload.get("kind")
    track_id = payload.get("track_id")
    if kind == AwaitingUpload.kind:
        visibility = payload.get("visibility")
        return AwaitingUpload(visibility=visibility if visibility in TRACK_STATUSES else "draft")
    if kind == AwaitingDescription.kind and isinstance(track_id, str) and track_id:
        return AwaitingDescription(track_id=track_id)
    if kind == AwaitingChapters.kind and isinstance(track_id, str) and track_id:
        return AwaitingChapters(track_id=track_id)
    if kind == AwaitingCustomMinutes.kind:
        return AwaitingCustomMinutes()
    return None


@dataclass(frozen=True, slots=True)
class SessionState:
    """Per-admin navigation state plus at most one pending input."""

    screen: Screen = "main"
    pending: PendingInput | None = None

    def with_screen(self, screen: Screen) -> "SessionState":
        return replace(self, screen=screen)

    def with_pending(self, pending: PendingInput | None) -> "SessionState":
        return replace(self, pending=pending)

    def to_dict(self) -> dict[str, Any]:
        return {"screen": self.screen, "pending": pending_to_dict(self.pending)}

    @classmethod
    def from_dict(cls, payload: Any) -> "SessionState":
        if not isinstance(payload, dict):
            return cls()
        screen = payload.get("screen")
        return cls(
            screen=screen if screen in SCREENS else "main",
            pending=pending_from_dict(payload.get("pending")),
        )


@dataclass(frozen=True, slots=True)
class PanelHandle:
    chat_id: int
    message_id: int

    def to_dict(self) -> dict[str, Any]:
        return {"chat_id": self.chat_id, "message_id": self.message_id}

    @classmethod
    def from_dict(cls, payload: Any) -> "PanelHandle | None":
        if not isinstance(payload, dict):
            return None
        chat_id = payload.get("chat_id")
        message_id = payload.get("message_id")
        if not isinstance(chat_id, int) or not isinstance(message_id, int):
            return None
        return cls(chat_id=chat_id, message_id=message_id)
