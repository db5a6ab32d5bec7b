"""Per-day analytics counters and first-seen visitor bookkeeping."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from .access_window import now_ms
from .cms_types import KvKeys
from .kv_store import SqliteKeyValueStore

logger = logging.getLogger(__name__)

_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619


def fingerprint(value: str) -> str:
    """32-bit FNV-1a hash as lowercase hex; used for uniqueness bucketing only."""
    h = _FNV_OFFSET
    for char in value:
        h ^= ord(char)
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return format(h, "x")


def day_key(ts_ms: int | None = None) -> str:
    moment = datetime.fromtimestamp((ts_ms if ts_ms is not None else now_ms()) / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d")


class DailyMetrics:
    """Increment-only counters, one JSON record per UTC day."""

    def __init__(self, store: SqliteKeyValueStore) -> None:
        self._store = store

    def get_day(self, day: str | None = None) -> dict[str, Any]:
        payload = self._store.get_json(KvKeys.metrics_day(day or day_key()))
        return payload if isinstance(payload, dict) else {}

    def increment(self, field: str, amount: int = 1, *, now: int | None = None) -> dict[str, Any]:
        if amount <= 0:
            raise ValueError("amount must be > 0")
        ts = now if now is not None else now_ms()
        key = KvKeys.metrics_day(day_key(ts))
        payload = self._store.get_json(key)
        counters = payload if isinstance(payload, dict) else {}
        counters[field] = int(counters.get(field, 0)) + amount
        counters["updatedAt"] = ts
        self._store.put_json(key, counters)
        return counters

    def _mark_first_seen(self, key: str, *, now: int) -> bool:
        if self._store.get(key) is not None:
            return False
        self._store.put(key, str(now))
        return True

    def track_tg_user(self, user_id: int | None, *, now: int | None = None) -> bool:
        """Record a Telegram user once; returns True on first sight."""
        if user_id is None:
            return False
        ts = now if now is not None else now_ms()
        if not self._mark_first_seen(KvKeys.tg_user_seen(user_id), now=ts):
            return False
        self.increment("tg_unique_users", now=ts)
        return True

    def track_web_hit(self, *, ip: str, user_agent: str, path: str, now: int | None = None) -> dict[str, Any]:
        ts = now if now is not None else now_ms()
        day = day_key(ts)
        self.increment("web_hits", now=ts)

        visitor = fingerprint(f"{ip}|{user_agent}")
        first_seen = self._mark_first_seen(KvKeys.web_seen(visitor), now=ts)
        if first_seen:
            self.increment("web_unique_users", now=ts)

        path_key = KvKeys.web_path(day, path or "/")
        raw = self._store.get(path_key)
        count = int(raw) if raw and raw.isdigit() else 0
        self._store.put(path_key, str(count + 1))
        logger.debug("web hit path=%s visitor=%s first_seen=%s", path, visitor, first_seen)
        return {"day": day, "visitor": visitor, "first_seen": first_seen, "path_hits": count + 1}
