from io import BytesIO
from pathlib import Path

import pytest

from src.backroom.transport.blob_store import LocalBlobStore, public_url


def test_put_then_head_reports_size_and_type(tmp_path: Path):
    store = LocalBlobStore(root_dir=tmp_path / "media")
    out = store.put("tracks/1-a.mp3", BytesIO(b"abcdef"), content_type="audio/mpeg")

    assert out == {"key": "tracks/1-a.mp3", "size": 6, "content_type": "audio/mpeg"}
    head = store.head("tracks/1-a.mp3")
    assert head["size"] == 6
    assert head["content_type"] == "audio/mpeg"
    assert Path(head["path"]).read_bytes() == b"abcdef"
    assert not list((tmp_path / "media" / "tracks").glob("*.part"))


def test_head_missing_key_is_none(tmp_path: Path):
    assert LocalBlobStore(root_dir=tmp_path).head("tracks/nope.mp3") is None


@pytest.mark.parametrize("key", ["", "/etc/passwd", "../escape.mp3", "tracks/../../x", "tracks/a.mp3.meta.json"])
def test_rejects_unsafe_keys(tmp_path: Path, key: str):
    store = LocalBlobStore(root_dir=tmp_path / "media")
    with pytest.raises(ValueError):
        store.resolve_key(key)


def test_public_url_joins_base():
    assert public_url("https://cdn.example.com/", "tracks/a.mp3") == "https://cdn.example.com/tracks/a.mp3"
    assert public_url(None, "tracks/a.mp3") == "tracks/a.mp3"
    assert LocalBlobStore(root_dir="x", public_base_url="https://m.example").public_url("k") == "https://m.example/k"
