"""Durable track catalog on top of the key-value store.

The ordered track index is rewritten in full on every append. Concurrent admin
sessions can lose an append (last writer wins); the deployment assumes a single
admin and accepts that gap.
"""

from __future__ import annotations

import logging
from typing import Callable

from .cms_types import KvKeys, Track
from .kv_store import SqliteKeyValueStore
from .metrics import fingerprint

logger = logging.getLogger(__name__)

TrackMutator = Callable[[Track], None]


def track_ref(track_id: str) -> str:
    """Short stable reference for button payloads (Telegram caps them at 64 bytes)."""
    return fingerprint(track_id).rjust(8, "0")


class AssetStore:
    def __init__(self, store: SqliteKeyValueStore) -> None:
        self._store = store

    def _index(self) -> list[str]:
        payload = self._store.get_json(KvKeys.TRACK_INDEX)
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, str)]

    def _save(self, track: Track) -> None:
        self._store.put_json(KvKeys.track(track.id), track.to_dict())

    def track_ids(self) -> list[str]:
        return self._index()

    def count(self) -> int:
        return len(self._index())

    def create(self, track: Track) -> Track:
        """Persist a new track and append it to the index."""
        self._save(track)
        index = self._index()
        if track.id not in index:
            index.append(track.id)
            self._store.put_json(KvKeys.TRACK_INDEX, index)
        logger.info("catalogued track id=%s status=%s", track.id, track.status)
        return track

    def get(self, track_id: str) -> Track | None:
        payload = self._store.get_json(KvKeys.track(track_id))
        if not isinstance(payload, dict):
            return None
        return Track.from_dict(payload)

    def list_recent(self, limit: int) -> list[Track]:
        """Most recent first; ids without a record are skipped."""
        if limit <= 0:
            return []
        out: list[Track] = []
        for track_id in reversed(self._index()[-limit:]):
            track = self.get(track_id)
            if track is not None:
                out.append(track)
        return out

    def list_public(self, limit: int) -> list[Track]:
        if limit <= 0:
            return []
        out: list[Track] = []
        for track_id in reversed(self._index()):
            track = self.get(track_id)
            if track is not None and track.is_public:
                out.append(track)
                if len(out) >= limit:
                    break
        return out

    def update(self, track_id: str, mutator: TrackMutator) -> Track | None:
        """Read-modify-write one track; None (and no write) when it does not exist."""
        track = self.get(track_id)
        if track is None:
            return None
        mutator(track)
        self._save(track)
        return track

    def set_current(self, track_id: str) -> bool:
        """Mark one track as now playing and clear the flag everywhere else."""
        tracks = [track for track in (self.get(item) for item in self._index()) if track is not None]
        if not any(track.id == track_id for track in tracks):
            return False
        for track in tracks:
            should_be_current = track.id == track_id
            if track.is_current != should_be_current:
                track.is_current = should_be_current
                self._save(track)
        logger.info("now playing track id=%s", track_id)
        return True

    def get_current(self) -> Track | None:
        for track_id in self._index():
            track = self.get(track_id)
            if track is not None and track.is_current:
                return track
        return None

    def find_by_ref(self, ref: str) -> Track | None:
        for track_id in reversed(self._index()):
            if track_ref(track_id) == ref:
                return self.get(track_id)
        return None
