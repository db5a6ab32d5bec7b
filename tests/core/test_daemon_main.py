from __future__ import annotations

import json
import sys

from src.backroom.daemon.main import main, run_server


class _FakeService:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def set_webhook(self, url, *, drop_pending_updates=False):
        self.calls.append(("set", url, drop_pending_updates))
        return {"ok": True, "result": True, "url": url}

    def delete_webhook(self, *, drop_pending_updates=False):
        self.calls.append(("delete", drop_pending_updates))
        return {"ok": True, "result": True}

    def webhook_info(self):
        self.calls.append(("info",))
        return {"ok": True, "info": {"url": ""}}


def test_serve_invokes_uvicorn(monkeypatch):
    calls: list[tuple] = []

    class _FakeUvicorn:
        @staticmethod
        def run(*args, **kwargs):
            calls.append((args, kwargs))

    monkeypatch.setitem(sys.modules, "uvicorn", _FakeUvicorn)
    out = main(["serve", "--host", "0.0.0.0", "--port", "9000"])
    assert out == 0
    assert calls == [(("app.main:app",), {"host": "0.0.0.0", "port": 9000, "reload": False})]


def test_run_server_defaults(monkeypatch):
    calls: list[dict] = []

    class _FakeUvicorn:
        @staticmethod
        def run(*args, **kwargs):
            _ = args
            calls.append(kwargs)

    monkeypatch.setitem(sys.modules, "uvicorn", _FakeUvicorn)
    assert run_server() == 0
    assert calls[0]["host"] == "127.0.0.1"
    assert calls[0]["port"] == 8000


def test_set_webhook_command_prints_result(monkeypatch, capsys):
    fake = _FakeService()
    monkeypatch.setattr("src.backroom.daemon.main.get_backroom_service", lambda: fake)

    assert main(["set-webhook", "https://bot.example.com/webhook", "--drop-pending"]) == 0
    assert fake.calls == [("set", "https://bot.example.com/webhook", True)]
    assert json.loads(capsys.readouterr().out)["url"] == "https://bot.example.com/webhook"


def test_delete_and_info_commands(monkeypatch, capsys):
    fake = _FakeService()
    monkeypatch.setattr("src.backroom.daemon.main.get_backroom_service", lambda: fake)

    main(["delete-webhook"])
    main(["webhook-info"])
    assert fake.calls == [("delete", False), ("info",)]
    assert "info" in capsys.readouterr().out
