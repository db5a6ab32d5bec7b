import importlib
import json
from io import BytesIO
from urllib.error import HTTPError, URLError

import pytest

from src.backroom.transport.telegram_client import TelegramApiError, TelegramClient

telegram_module = importlib.import_module("src.backroom.transport.telegram_client")


class _FakeHeaders(dict):
    def get(self, key, default=None):  # type: ignore[override]
        return super().get(key, default)


class _FakeResponse:
    def __init__(self, body: bytes, content_type: str = "application/json"):
        self._body = body
        self.headers = _FakeHeaders({"Content-Type": content_type})

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def _client() -> TelegramClient:
    return TelegramClient(bot_token="123:abc", api_base_url="https://tg.example/")


def test_client_requires_token():
    with pytest.raises(ValueError):
        TelegramClient(bot_token="")


def test_send_message_posts_json_payload(monkeypatch):
    calls: list = []

    def fake_urlopen(req, timeout=15):
        calls.append((req, timeout))
        return _FakeResponse(json.dumps({"ok": True, "result": {"message_id": 9}}).encode())

    monkeypatch.setattr(telegram_module, "urlopen", fake_urlopen)
    out = _client().send_message(5, "*hi*", reply_markup={"inline_keyboard": []})

    assert out == {"message_id": 9}
    req, timeout = calls[0]
    assert req.full_url == "https://tg.example/bot123:abc/sendMessage"
    assert req.get_method() == "POST"
    assert timeout == 15
    payload = json.loads(req.data.decode())
    assert payload == {
        "chat_id": 5,
        "text": "*hi*",
        "disable_web_page_preview": True,
        "parse_mode": "Markdown",
        "reply_markup": {"inline_keyboard": []},
    }


def test_not_ok_response_raises_with_description(monkeypatch):
    def fake_urlopen(req, timeout=15):
        _ = req, timeout
        return _FakeResponse(json.dumps({"ok": False, "error_code": 400, "description": "Bad Request: chat not found"}).encode())

    monkeypatch.setattr(telegram_module, "urlopen", fake_urlopen)
    with pytest.raises(TelegramApiError) as excinfo:
        _client().send_message(5, "hi")
    assert excinfo.value.error_code == 400
    assert "chat not found" in str(excinfo.value)


def test_http_error_not_modified_is_flagged(monkeypatch):
    body = json.dumps({"ok": False, "error_code": 400, "description": "Bad Request: message is not modified"}).encode()

    def fake_urlopen(req, timeout=15):
        raise HTTPError(req.full_url, 400, "Bad Request", {}, BytesIO(body))

    monkeypatch.setattr(telegram_module, "urlopen", fake_urlopen)
    with pytest.raises(TelegramApiError) as excinfo:
        _client().edit_message_text(5, 6, "same")
    assert excinfo.value.is_not_modified
    assert excinfo.value.method == "editMessageText"


def test_network_error_is_wrapped(monkeypatch):
    def fake_urlopen(req, timeout=15):
        _ = req, timeout
        raise URLError("connection refused")

    monkeypatch.setattr(telegram_module, "urlopen", fake_urlopen)
    with pytest.raises(TelegramApiError, match="connection refused"):
        _client().answer_callback_query("cb1")


def test_invalid_json_body_raises(monkeypatch):
    monkeypatch.setattr(telegram_module, "urlopen", lambda req, timeout=15: _FakeResponse(b"<html>"))
    with pytest.raises(TelegramApiError, match="not valid JSON"):
        _client().get_webhook_info()


def test_get_file_requires_file_path(monkeypatch):
    monkeypatch.setattr(
        telegram_module,
        "urlopen",
        lambda req, timeout=15: _FakeResponse(json.dumps({"ok": True, "result": {"file_id": "f"}}).encode()),
    )
    with pytest.raises(TelegramApiError, match="file_path"):
        _client().get_file("f")


def test_open_file_streams_from_file_endpoint(monkeypatch):
    seen: list = []

    def fake_urlopen(req, timeout=15):
        seen.append(req.full_url)
        return _FakeResponse(b"ID3", content_type="audio/mpeg; charset=binary")

    monkeypatch.setattr(telegram_module, "urlopen", fake_urlopen)
    stream, content_type = _client().open_file("music/file 1.mp3")

    assert seen == ["https://tg.example/file/bot123:abc/music/file%201.mp3"]
    assert content_type == "audio/mpeg"
    assert stream.read() == b"ID3"


def test_set_webhook_restricts_update_types(monkeypatch):
    payloads: list = []

    def fake_urlopen(req, timeout=15):
        payloads.append(json.loads(req.data.decode()))
        return _FakeResponse(json.dumps({"ok": True, "result": True}).encode())

    monkeypatch.setattr(telegram_module, "urlopen", fake_urlopen)
    assert _client().set_webhook("https://bot.example.com/webhook", drop_pending_updates=True) is True
    assert payloads[0]["allowed_updates"] == ["message", "callback_query"]
    assert payloads[0]["drop_pending_updates"] is True
