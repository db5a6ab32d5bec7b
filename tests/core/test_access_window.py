from pathlib import Path

import pytest

from src.backroom.core.access_window import (
    CLOSED,
    HOUR_MS,
    MAX_CUSTOM_MINUTES,
    OPEN_FOREVER,
    AccessWindow,
    AccessWindowState,
    is_open,
    parse_custom_minutes,
    resolve_preset,
)
from src.backroom.core.kv_store import SqliteKeyValueStore


@pytest.mark.parametrize("now", [0, 1, 1_700_000_000_000, 10**15])
def test_open_forever_is_open_at_any_time(now):
    assert is_open(AccessWindowState(open_until=OPEN_FOREVER), now)


@pytest.mark.parametrize("open_until,now", [(0, 0), (0, 5), (1000, 1000), (999, 1000), (-5, 10)])
def test_window_closed_when_expiry_not_in_future(open_until, now):
    assert not is_open(AccessWindowState(open_until=open_until), now)


def test_window_open_until_exactly_the_expiry():
    state = AccessWindowState(open_until=5000)
    assert is_open(state, 4999)
    assert not is_open(state, 5000)


def test_missing_or_garbage_record_reads_as_closed(tmp_path: Path):
    store = SqliteKeyValueStore(db_path=tmp_path / "kv.db")
    window = AccessWindow(store)
    assert window.get_state().open_until == CLOSED

    store.put("lobby:open_until", "soon")
    assert window.get_state().open_until == CLOSED
    assert not window.is_open_now(now=1)


def test_set_window_overwrites_and_helpers(tmp_path: Path):
    window = AccessWindow(SqliteKeyValueStore(db_path=tmp_path / "kv.db"))

    window.open_for(HOUR_MS, now=1_000)
    assert window.get_state().open_until == 1_000 + HOUR_MS
    assert window.is_open_now(now=2_000)

    window.open_forever()
    assert window.get_state().is_forever

    window.close()
    assert not window.is_open_now(now=2_000)


def test_open_for_rejects_non_positive_duration(tmp_path: Path):
    window = AccessWindow(SqliteKeyValueStore(db_path=tmp_path / "kv.db"))
    with pytest.raises(ValueError):
        window.open_for(0, now=1)


def test_resolve_preset_durations_and_fallback():
    assert resolve_preset("forever", 10) == OPEN_FOREVER
    assert resolve_preset("1h", 10) == 10 + HOUR_MS
    assert resolve_preset("24h", 0) == 24 * HOUR_MS
    assert resolve_preset("weird", 0) == resolve_preset("15m", 0)


def test_parse_custom_minutes_bounds():
    assert parse_custom_minutes(" 90 ") == 90
    assert parse_custom_minutes(str(MAX_CUSTOM_MINUTES)) == MAX_CUSTOM_MINUTES
    assert parse_custom_minutes("0") is None
    assert parse_custom_minutes(str(MAX_CUSTOM_MINUTES + 1)) is None
    assert parse_custom_minutes("ten") is None
    assert parse_custom_minutes("-5") is None
    assert parse_custom_minutes("") is None
