from pathlib import Path

from src.backroom.core.asset_store import AssetStore, track_ref
from src.backroom.core.cms_types import Track
from src.backroom.core.kv_store import SqliteKeyValueStore


def _store(tmp_path: Path) -> tuple[AssetStore, SqliteKeyValueStore]:
    kv = SqliteKeyValueStore(db_path=tmp_path / "kv.db")
    return AssetStore(kv), kv


def _track(track_id: str, *, status: str = "draft", created_at: int = 1) -> Track:
    return Track(id=track_id, title=track_id.split("/")[-1], status=status, url=f"https://cdn/{track_id}", created_at=created_at)  # type: ignore[arg-type]


def test_create_appends_to_index_once(tmp_path: Path):
    assets, _ = _store(tmp_path)
    assets.create(_track("tracks/1-a.mp3"))
    assets.create(_track("tracks/2-b.mp3"))
    assets.create(_track("tracks/1-a.mp3"))

    assert assets.track_ids() == ["tracks/1-a.mp3", "tracks/2-b.mp3"]
    assert assets.count() == 2
    assert assets.get("tracks/2-b.mp3").title == "2-b.mp3"
    assert assets.get("tracks/missing.mp3") is None


def test_list_recent_is_newest_first_and_skips_dangling_ids(tmp_path: Path):
    assets, kv = _store(tmp_path)
    for n in range(1, 5):
        assets.create(_track(f"tracks/{n}.mp3", created_at=n))
    kv.put("track:tracks/3.mp3", "null")

    assert [t.id for t in assets.list_recent(3)] == ["tracks/4.mp3", "tracks/2.mp3"]
    assert [t.id for t in assets.list_recent(10)] == ["tracks/4.mp3", "tracks/2.mp3", "tracks/1.mp3"]
    assert assets.list_recent(0) == []


def test_list_public_filters_drafts(tmp_path: Path):
    assets, _ = _store(tmp_path)
    assets.create(_track("tracks/1.mp3", status="public"))
    assets.create(_track("tracks/2.mp3"))
    assets.create(_track("tracks/3.mp3", status="public"))

    assert [t.id for t in assets.list_public(5)] == ["tracks/3.mp3", "tracks/1.mp3"]
    assert [t.id for t in assets.list_public(1)] == ["tracks/3.mp3"]


def test_update_missing_track_writes_nothing(tmp_path: Path):
    assets, kv = _store(tmp_path)

    def _mutate(track: Track) -> None:
        track.description = "x"

    assert assets.update("tracks/none.mp3", _mutate) is None
    assert kv.get("track:tracks/none.mp3") is None


def test_update_persists_mutation(tmp_path: Path):
    assets, _ = _store(tmp_path)
    assets.create(_track("tracks/1.mp3"))

    def _publish(track: Track) -> None:
        track.status = "public"

    updated = assets.update("tracks/1.mp3", _publish)
    assert updated is not None and updated.status == "public"
    assert assets.get("tracks/1.mp3").is_public


def test_set_current_keeps_a_single_current_track(tmp_path: Path):
    assets, _ = _store(tmp_path)
    for n in range(1, 4):
        assets.create(_track(f"tracks/{n}.mp3"))

    assert assets.set_current("tracks/1.mp3")
    assert assets.set_current("tracks/3.mp3")
    current = [t.id for t in assets.list_recent(10) if t.is_current]
    assert current == ["tracks/3.mp3"]
    assert assets.get_current().id == "tracks/3.mp3"


def test_set_current_unknown_id_changes_nothing(tmp_path: Path):
    assets, _ = _store(tmp_path)
    assets.create(_track("tracks/1.mp3"))
    assets.set_current("tracks/1.mp3")

    assert assets.set_current("tracks/nope.mp3") is False
    assert assets.get_current().id == "tracks/1.mp3"


def test_track_ref_is_short_and_resolvable(tmp_path: Path):
    assets, _ = _store(tmp_path)
    long_id = "tracks/1700000000000-" + "a" * 60 + ".mp3"
    assets.create(_track(long_id))

    ref = track_ref(long_id)
    assert len(ref) == 8
    assert len(f"trk:current:{ref}".encode()) <= 64
    assert assets.find_by_ref(ref).id == long_id
    assert assets.find_by_ref("00000000") is None
