"""Turn an inbound Telegram file reference into a stored, catalogued track."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from threading import Lock
from typing import Any, BinaryIO, Protocol

from .access_window import now_ms
from .asset_store import AssetStore
from .cms_types import Track, TrackStatus

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".mp3", ".wav", ".m4a", ".ogg")
_CONTENT_TYPE_HINTS: tuple[tuple[str, str], ...] = (
    ("mpeg", ".mp3"),
    ("mp3", ".mp3"),
    ("wav", ".wav"),
    ("m4a", ".m4a"),
    ("mp4", ".m4a"),
    ("ogg", ".ogg"),
)
_EXTENSION_CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
}
GENERIC_CONTENT_TYPE = "application/octet-stream"
SLUG_MAX_CHARS = 60
KEY_PREFIX = "tracks/"


class IngestionError(RuntimeError):
    """Raised when any ingestion step fails; no catalog entry exists afterwards."""


class FileSource(Protocol):
    def get_file(self, file_id: str) -> dict[str, Any]: ...

    def open_file(self, file_path: str) -> tuple[BinaryIO, str]: ...


class BlobSink(Protocol):
    def put(self, key: str, stream: BinaryIO, *, content_type: str) -> dict[str, Any]: ...

    def public_url(self, key: str) -> str: ...


@dataclass(frozen=True, slots=True)
class FileRef:
    file_id: str
    file_name: str | None = None
    mime_type: str | None = None

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "FileRef | None":
        """Accept `audio`, or a `document` whose declared type is audio/*."""
        audio = message.get("audio")
        document = message.get("document")
        candidate: Any = None
        if isinstance(audio, dict):
            candidate = audio
        elif isinstance(document, dict) and str(document.get("mime_type") or "").startswith("audio/"):
            candidate = document
        if not isinstance(candidate, dict) or not isinstance(candidate.get("file_id"), str):
            return None
        file_name = candidate.get("file_name")
        mime_type = candidate.get("mime_type")
        return cls(
            file_id=candidate["file_id"],
            file_name=file_name if isinstance(file_name, str) else None,
            mime_type=mime_type if isinstance(mime_type, str) else None,
        )


def strip_extension(name: str) -> str:
    return re.sub(r"\.[a-z0-9]+$", "", name or "", flags=re.IGNORECASE)


def resolve_title(caption: str | None, file_name: str | None) -> str:
    """Explicit caption, then file name without extension, then `untitled`."""
    from_caption = (caption or "").strip()
    if from_caption:
        return from_caption
    from_name = strip_extension((file_name or "").strip()).strip()
    return from_name or "untitled"


def slugify(title: str, *, max_chars: int = SLUG_MAX_CHARS) -> str:
    slug = (title or "").strip().lower()
    slug = re.sub(r"[^\w\- ]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    return slug[:max_chars] or "track"


def infer_extension(content_type: str | None, path: str | None) -> str:
    """Declared content type first, then the path suffix; unknown types get no extension."""
    declared = (content_type or "").lower()
    if declared and declared != GENERIC_CONTENT_TYPE:
        for hint, ext in _CONTENT_TYPE_HINTS:
            if hint in declared:
                return ext
    lowered = (path or "").lower()
    for ext in ALLOWED_EXTENSIONS:
        if lowered.endswith(ext):
            return ext
    return ""


def content_type_for(declared: str | None, ext: str) -> str:
    clean = (declared or "").strip().lower()
    if clean and clean != GENERIC_CONTENT_TYPE:
        return clean
    return _EXTENSION_CONTENT_TYPES.get(ext, GENERIC_CONTENT_TYPE)


class _MonotonicClock:
    def __init__(self) -> None:
        self._lock = Lock()
        self._last = 0

    def next_ms(self) -> int:
        with self._lock:
            value = max(now_ms(), self._last + 1)
            self._last = value
            return value


_KEY_CLOCK = _MonotonicClock()


def build_storage_key(title: str, ext: str, *, stamp_ms: int | None = None) -> str:
    stamp = stamp_ms if stamp_ms is not None else _KEY_CLOCK.next_ms()
    return f"{KEY_PREFIX}{stamp}-{slugify(title)}{ext}"


class IngestionPipeline:
    def __init__(self, *, files: FileSource, blobs: BlobSink, assets: AssetStore) -> None:
        self._files = files
        self._blobs = blobs
        self._assets = assets

    def ingest(self, ref: FileRef, *, visibility: TrackStatus, caption: str | None = None) -> Track:
        title = resolve_title(caption, ref.file_name)

        try:
            file_info = self._files.get_file(ref.file_id)
            file_path = str(file_info["file_path"])
            stream, response_type = self._files.open_file(file_path)
        except Exception as exc:
            raise IngestionError(f"could not fetch file {ref.file_id}: {exc}") from exc

        declared = ref.mime_type or response_type
        ext = infer_extension(declared, file_path)
        content_type = content_type_for(declared, ext)
        key = build_storage_key(title, ext)

        try:
            with stream:
                stored = self._blobs.put(key, stream, content_type=content_type)
        except Exception as exc:
            raise IngestionError(f"could not store {key}: {exc}") from exc
        logger.info("stored blob key=%s bytes=%s type=%s", key, stored.get("size"), content_type)

        track = Track(
            id=key,
            title=title,
            status="public" if visibility == "public" else "draft",
            url=self._blobs.public_url(key),
            created_at=now_ms(),
        )
        return self._assets.create(track)
