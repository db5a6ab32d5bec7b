"""Telegram Bot API adapter."""

from __future__ import annotations

import json
import logging
from typing import Any, BinaryIO
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from src.backroom.core.config_loader import DEFAULT_TELEGRAM_API_BASE

logger = logging.getLogger(__name__)

Keyboard = dict[str, Any]


class TelegramApiError(RuntimeError):
    """Bot API call that did not come back with `ok: true`."""

    def __init__(self, method: str, description: str, *, error_code: int | None = None) -> None:
        super().__init__(f"{method} failed: {description}")
        self.method = method
        self.description = description
        self.error_code = error_code

    @property
    def is_not_modified(self) -> bool:
        return "message is not modified" in self.description.lower()


def _error_detail(body: str, fallback: str) -> tuple[str, int | None]:
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body.strip() or fallback, None
    if not isinstance(parsed, dict):
        return fallback, None
    code = parsed.get("error_code")
    description = parsed.get("description")
    return (
        description if isinstance(description, str) and description else fallback,
        code if isinstance(code, int) else None,
    )


class TelegramClient:
    """Thin request/response wrapper; every failure raises `TelegramApiError`."""

    def __init__(self, *, bot_token: str, api_base_url: str = DEFAULT_TELEGRAM_API_BASE, timeout_sec: int = 15) -> None:
        if not bot_token:
            raise ValueError("bot_token is required.")
        self._bot_token = bot_token
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout_sec = timeout_sec

    def _method_url(self, method: str) -> str:
        return f"{self._api_base_url}/bot{self._bot_token}/{method}"

    def file_url(self, file_path: str) -> str:
        return f"{self._api_base_url}/file/bot{self._bot_token}/{quote(file_path)}"

    def call(self, method: str, payload: dict[str, Any]) -> Any:
        req = Request(
            self._method_url(method),
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urlopen(req, timeout=self._timeout_sec) as response:
                body = response.read().decode("utf-8")
        except HTTPError as exc:
            raw = exc.read().decode("utf-8", errors="replace")
            description, code = _error_detail(raw, f"HTTP {exc.code}")
            raise TelegramApiError(method, description, error_code=code or exc.code) from exc
        except (URLError, OSError) as exc:
            raise TelegramApiError(method, str(exc)) from exc

        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            raise TelegramApiError(method, "response is not valid JSON") from exc
        if not isinstance(parsed, dict) or not parsed.get("ok"):
            description, code = _error_detail(body, "unexpected response")
            raise TelegramApiError(method, description, error_code=code)
        return parsed.get("result")

    def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_markup: Keyboard | None = None,
        parse_mode: str | None = "Markdown",
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text, "disable_web_page_preview": True}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        result = self.call("sendMessage", payload)
        return result if isinstance(result, dict) else {}

    def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        reply_markup: Keyboard | None = None,
        parse_mode: str | None = "Markdown",
    ) -> Any:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        return self.call("editMessageText", payload)

    def answer_callback_query(self, callback_query_id: str, *, text: str | None = None) -> Any:
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        return self.call("answerCallbackQuery", payload)

    def get_file(self, file_id: str) -> dict[str, Any]:
        result = self.call("getFile", {"file_id": file_id})
        if not isinstance(result, dict) or not isinstance(result.get("file_path"), str):
            raise TelegramApiError("getFile", "response has no file_path")
        return result

    def open_file(self, file_path: str) -> tuple[BinaryIO, str]:
        """Open a download stream; returns `(stream, content_type)`. Caller closes the stream."""
        try:
            response = urlopen(Request(self.file_url(file_path), method="GET"), timeout=self._timeout_sec)
        except HTTPError as exc:
            raise TelegramApiError("downloadFile", f"HTTP {exc.code}", error_code=exc.code) from exc
        except (URLError, OSError) as exc:
            raise TelegramApiError("downloadFile", str(exc)) from exc
        raw_content_type = response.headers.get("Content-Type") or "application/octet-stream"
        return response, raw_content_type.split(";")[0].strip().lower()

    def set_webhook(self, url: str, *, drop_pending_updates: bool = False) -> Any:
        return self.call(
            "setWebhook",
            {"url": url, "allowed_updates": ["message", "callback_query"], "drop_pending_updates": drop_pending_updates},
        )

    def delete_webhook(self, *, drop_pending_updates: bool = False) -> Any:
        return self.call("deleteWebhook", {"drop_pending_updates": drop_pending_updates})

    def get_webhook_info(self) -> dict[str, Any]:
        result = self.call("getWebhookInfo", {})
        return result if isinstance(result, dict) else {}
