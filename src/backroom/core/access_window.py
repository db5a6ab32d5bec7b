"""Time-windowed access gate shown to ordinary users."""

from __future__ import annotations

import time
from dataclasses import dataclass

from .cms_types import KvKeys
from .kv_store import SqliteKeyValueStore

OPEN_FOREVER = -1
CLOSED = 0

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

PRESET_DURATIONS_MS: dict[str, int] = {
    "15m": 15 * MINUTE_MS,
    "1h": HOUR_MS,
    "6h": 6 * HOUR_MS,
    "24h": 24 * HOUR_MS,
}
DEFAULT_PRESET = "15m"

MIN_CUSTOM_MINUTES = 1
MAX_CUSTOM_MINUTES = 30 * 24 * 60


def now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True, slots=True)
class AccessWindowState:
    open_until: int

    @property
    def is_forever(self) -> bool:
        return self.open_until == OPEN_FOREVER


def is_open(state: AccessWindowState, now: int) -> bool:
    return state.open_until == OPEN_FOREVER or state.open_until > now


def resolve_preset(preset: str, now: int) -> int:
    """Return the `open_until` value for a named preset button."""
    if preset == "forever":
        return OPEN_FOREVER
    return now + PRESET_DURATIONS_MS.get(preset, PRESET_DURATIONS_MS[DEFAULT_PRESET])


def parse_custom_minutes(text: str) -> int | None:
    """Parse an admin-typed duration in minutes; None when invalid or out of range."""
    raw = (text or "").strip()
    if not raw.isdecimal():
        return None
    minutes = int(raw)
    if minutes < MIN_CUSTOM_MINUTES or minutes > MAX_CUSTOM_MINUTES:
        return None
    return minutes


class AccessWindow:
    """Single process-wide expiry timestamp stored in the key-value store."""

    def __init__(self, store: SqliteKeyValueStore) -> None:
        self._store = store

    def get_state(self) -> AccessWindowState:
        raw = self._store.get(KvKeys.ACCESS_WINDOW)
        try:
            open_until = int(raw) if raw is not None else CLOSED
        except ValueError:
            open_until = CLOSED
        return AccessWindowState(open_until=open_until)

    def is_open_now(self, now: int | None = None) -> bool:
        return is_open(self.get_state(), now if now is not None else now_ms())

    def set_window(self, open_until: int) -> AccessWindowState:
        self._store.put(KvKeys.ACCESS_WINDOW, str(int(open_until)))
        return AccessWindowState(open_until=int(open_until))

    def open_for(self, duration_ms: int, *, now: int | None = None) -> AccessWindowState:
        if duration_ms <= 0:
            raise ValueError("duration_ms must be > 0")
        start = now if now is not None else now_ms()
        return self.set_window(start + duration_ms)

    def open_forever(self) -> AccessWindowState:
        return self.set_window(OPEN_FOREVER)

    def close(self) -> AccessWindowState:
        return self.set_window(CLOSED)
