"""Local-directory blob store for uploaded media."""

from __future__ import annotations

import json
import shutil
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO

CHUNK_SIZE = 64 * 1024
_META_SUFFIX = ".meta.json"


def public_url(base_url: str | None, key: str) -> str:
    base = (base_url or "").rstrip("/")
    return f"{base}/{key}" if base else key


class LocalBlobStore:
    """Stores each blob as a file under `root_dir/<key>` plus a small metadata sidecar."""

    def __init__(self, *, root_dir: str | Path, public_base_url: str | None = None) -> None:
        self._root = Path(root_dir)
        self._public_base_url = public_base_url

    @property
    def root_dir(self) -> Path:
        return self._root

    def resolve_key(self, key: str) -> Path:
        """Map a storage key to a path, rejecting traversal and absolute keys."""
        raw = PurePosixPath(key)
        if not key or raw.is_absolute() or ".." in raw.parts or key.endswith(_META_SUFFIX):
            raise ValueError(f"Invalid blob key: {key!r}")
        root = self._root.resolve()
        candidate = (root / Path(*raw.parts)).resolve()
        if not candidate.is_relative_to(root):
            raise ValueError("Resolved blob path escapes storage root.")
        return candidate

    def put(self, key: str, stream: BinaryIO, *, content_type: str) -> dict[str, Any]:
        target = self.resolve_key(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        try:
            with partial.open("wb") as fh:
                shutil.copyfileobj(stream, fh, CHUNK_SIZE)
            partial.replace(target)
        finally:
            partial.unlink(missing_ok=True)

        size = target.stat().st_size
        meta = {"content_type": content_type, "size": size}
        target.with_name(target.name + _META_SUFFIX).write_text(json.dumps(meta), encoding="utf-8")
        return {"key": key, "size": size, "content_type": content_type}

    def head(self, key: str) -> dict[str, Any] | None:
        target = self.resolve_key(key)
        if not target.is_file():
            return None
        meta_path = target.with_name(target.name + _META_SUFFIX)
        content_type = "application/octet-stream"
        if meta_path.exists():
            try:
                meta = json.loads(meta_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                meta = {}
            if isinstance(meta, dict) and isinstance(meta.get("content_type"), str):
                content_type = meta["content_type"]
        return {"key": key, "path": target, "size": target.stat().st_size, "content_type": content_type}

    def public_url(self, key: str) -> str:
        return public_url(self._public_base_url, key)
