"""Route inbound Telegram updates through the admin console state machine."""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from .access_window import (
    MAX_CUSTOM_MINUTES,
    MIN_CUSTOM_MINUTES,
    AccessWindow,
    now_ms,
    parse_custom_minutes,
    resolve_preset,
)
from .asset_store import AssetStore
from .chapters import parse_chapters
from .cms_types import (
    SCREENS,
    AwaitingChapters,
    AwaitingCustomMinutes,
    AwaitingDescription,
    AwaitingUpload,
    PendingInput,
    Track,
)
from .ingestion import FileRef, IngestionError, IngestionPipeline
from .metrics import DailyMetrics, day_key
from .panel import PanelReconciler, PanelSnapshot, md_bold, md_escape, render_panel, render_user_view
from .session_state import SessionStore

logger = logging.getLogger(__name__)

MENU_COMMANDS = ("/start", "/menu")
GENERIC_FAILURE_TEXT = "⚠️ Something went wrong. Please try again."
TRACK_NOT_FOUND_TEXT = "Track not found."


class ChatTransport(Protocol):
    def send_message(self, chat_id: int, text: str, *, reply_markup: dict[str, Any] | None = None) -> dict[str, Any]: ...

    def answer_callback_query(self, callback_query_id: str) -> Any: ...


def _int_or_none(value: Any) -> int | None:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _message_text(message: dict[str, Any]) -> str:
    for field in ("text", "caption"):
        value = message.get(field)
        if isinstance(value, str) and value:
            return value
    return ""


class DispatchEngine:
    """One call per inbound update; all state lives in the stores."""

    def __init__(
        self,
        *,
        transport: ChatTransport,
        access: AccessWindow,
        assets: AssetStore,
        sessions: SessionStore,
        metrics: DailyMetrics,
        ingestion: IngestionPipeline,
        reconciler: PanelReconciler,
        admin_id: int | None,
        webapp_url: str | None = None,
        media_public_base: str | None = None,
        track_list_limit: int = 10,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._transport = transport
        self._access = access
        self._assets = assets
        self._sessions = sessions
        self._metrics = metrics
        self._ingestion = ingestion
        self._reconciler = reconciler
        self._admin_id = admin_id
        self._webapp_url = webapp_url
        self._media_public_base = media_public_base
        self._track_list_limit = track_list_limit
        self._clock = clock

    def is_admin(self, user_id: int | None) -> bool:
        return self._admin_id is not None and user_id == self._admin_id

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def handle_update(self, update: dict[str, Any]) -> str:
        """Process one update; returns a short route label for logging/tests."""
        self._best_effort("tg_events", lambda: self._metrics.increment("tg_events", now=self._clock()))

        callback = update.get("callback_query")
        message = update.get("message") or update.get("edited_message")
        if isinstance(callback, dict):
            return self._guarded(callback.get("from"), callback.get("message"), lambda: self._handle_callback(callback))
        if isinstance(message, dict):
            return self._guarded(message.get("from"), message, lambda: self._handle_message(message))
        return "ignored"

    def _guarded(self, sender: Any, message: Any, handler: Callable[[], str]) -> str:
        try:
            return handler()
        except Exception:
            logger.exception("update handling failed")
            user_id = _int_or_none(sender.get("id")) if isinstance(sender, dict) else None
            chat_id = self._chat_id(message)
            if self.is_admin(user_id) and chat_id is not None:
                self._best_effort("failure notice", lambda: self._notify(chat_id, GENERIC_FAILURE_TEXT))
            return "failed"

    @staticmethod
    def _best_effort(label: str, action: Callable[[], Any]) -> None:
        try:
            action()
        except Exception as exc:
            logger.warning("best-effort %s failed: %s", label, exc)

    @staticmethod
    def _chat_id(message: Any) -> int | None:
        if not isinstance(message, dict):
            return None
        chat = message.get("chat")
        return _int_or_none(chat.get("id")) if isinstance(chat, dict) else None

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------

    def _snapshot(self, admin_id: int, *, track: Track | None = None) -> PanelSnapshot:
        today = day_key(self._clock())
        return PanelSnapshot(
            window=self._access.get_state(),
            now=self._clock(),
            track_count=self._assets.count(),
            tracks=self._assets.list_recent(self._track_list_limit),
            track=track,
            current=self._assets.get_current(),
            metrics_day=today,
            metrics=self._metrics.get_day(today),
            webapp_url=self._webapp_url,
            media_public_base=self._media_public_base,
            pending=self._sessions.peek_pending(admin_id),
        )

    def _show(self, admin_id: int, chat_id: int, view: str, *, track: Track | None = None) -> None:
        panel = render_panel(view, self._snapshot(admin_id, track=track))
        self._reconciler.show(admin_id=admin_id, chat_id=chat_id, panel=panel)

    def _show_screen(self, admin_id: int, chat_id: int, screen: str) -> None:
        self._sessions.set_screen(admin_id, screen if screen in SCREENS else "main")  # type: ignore[arg-type]
        self._show(admin_id, chat_id, screen if screen in SCREENS else "main")

    def _notify(self, chat_id: int, text: str) -> None:
        self._transport.send_message(chat_id, text)

    def _send_user_view(self, chat_id: int | None) -> str:
        if chat_id is None:
            return "user_view_skipped"
        panel = render_user_view(window_open=self._access.is_open_now(self._clock()), webapp_url=self._webapp_url)
        self._transport.send_message(chat_id, panel.text, reply_markup=panel.keyboard)
        return "user_view"

    # ------------------------------------------------------------------
    # Button presses
    # ------------------------------------------------------------------

    def _handle_callback(self, callback: dict[str, Any]) -> str:
        callback_id = callback.get("id")
        if isinstance(callback_id, str):
            self._best_effort("answerCallbackQuery", lambda: self._transport.answer_callback_query(callback_id))

        sender = callback.get("from") if isinstance(callback.get("from"), dict) else {}
        user_id = _int_or_none(sender.get("id"))
        chat_id = self._chat_id(callback.get("message"))
        self._best_effort("track user", lambda: self._metrics.track_tg_user(user_id, now=self._clock()))

        if not self.is_admin(user_id):
            return self._send_user_view(chat_id)
        if chat_id is None:
            return "no_chat"
        admin_id = user_id  # type: ignore[assignment]

        data = str(callback.get("data") or "")
        parts = data.split(":")
        group = parts[0]
        action = parts[1] if len(parts) > 1 else ""
        arg = parts[2] if len(parts) > 2 else ""

        if group == "nav":
            self._show_screen(admin_id, chat_id, action)
            return f"nav:{action if action in SCREENS else 'main'}"
        if group == "win":
            return self._handle_window_action(admin_id, chat_id, action, arg)
        if group == "trk":
            return self._handle_track_action(admin_id, chat_id, action, arg)

        self._show_screen(admin_id, chat_id, "main")
        return "nav:main"

    def _handle_window_action(self, admin_id: int, chat_id: int, action: str, arg: str) -> str:
        if action == "close":
            self._access.close()
        elif action == "open" and arg == "forever":
            self._access.open_forever()
        elif action == "open":
            self._access.set_window(resolve_preset(arg, self._clock()))
        elif action == "custom":
            self._sessions.expect(admin_id, AwaitingCustomMinutes())
            self._show(admin_id, chat_id, "custom_minutes_prompt")
            return "win:custom"
        else:
            self._show_screen(admin_id, chat_id, "main")
            return "nav:main"
        logger.info("access window %s %s -> %s", action, arg, self._access.get_state().open_until)
        self._show_screen(admin_id, chat_id, "access_window")
        return f"win:{action}"

    def _handle_track_action(self, admin_id: int, chat_id: int, action: str, arg: str) -> str:
        if action == "upload":
            visibility = "public" if arg == "public" else "draft"
            self._sessions.set_screen(admin_id, "tracks")
            self._sessions.expect(admin_id, AwaitingUpload(visibility=visibility))
            self._show(admin_id, chat_id, "upload_prompt")
            return "trk:upload"
        if action == "list":
            self._sessions.set_screen(admin_id, "tracks")
            self._show(admin_id, chat_id, "track_list")
            return "trk:list"
        if action not in {"edit", "toggle", "desc", "chap", "current"}:
            self._show_screen(admin_id, chat_id, "main")
            return "nav:main"

        track = self._assets.find_by_ref(arg)
        if track is None:
            self._notify(chat_id, TRACK_NOT_FOUND_TEXT)
            return "trk:not_found"

        if action == "edit":
            # Opening the editor (also the Back button of the description and
            # timestamp prompts) abandons whatever input was pending.
            self._sessions.take_pending(admin_id)
        elif action == "toggle":
            def _toggle(item: Track) -> None:
                item.status = "draft" if item.status == "public" else "public"

            track = self._assets.update(track.id, _toggle) or track
            logger.info("track %s is now %s", track.id, track.status)
        elif action == "current":
            if not self._assets.set_current(track.id):
                self._notify(chat_id, TRACK_NOT_FOUND_TEXT)
                return "trk:not_found"
            track = self._assets.get(track.id) or track
        elif action == "desc":
            self._sessions.expect(admin_id, AwaitingDescription(track_id=track.id))
            self._show(admin_id, chat_id, "description_prompt", track=track)
            return "trk:desc"
        elif action == "chap":
            self._sessions.expect(admin_id, AwaitingChapters(track_id=track.id))
            self._show(admin_id, chat_id, "chapters_prompt", track=track)
            return "trk:chap"

        self._sessions.set_screen(admin_id, "tracks")
        self._show(admin_id, chat_id, "track_editor", track=track)
        return f"trk:{action}"

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def _handle_message(self, message: dict[str, Any]) -> str:
        sender = message.get("from") if isinstance(message.get("from"), dict) else {}
        user_id = _int_or_none(sender.get("id"))
        chat_id = self._chat_id(message)
        self._best_effort("track user", lambda: self._metrics.track_tg_user(user_id, now=self._clock()))

        if not self.is_admin(user_id):
            return self._send_user_view(chat_id)
        if chat_id is None:
            return "no_chat"
        admin_id = user_id  # type: ignore[assignment]

        text = _message_text(message)
        if text.startswith(MENU_COMMANDS):
            self._show_screen(admin_id, chat_id, "main")
            return "nav:main"

        state = self._sessions.load(admin_id)
        pending = state.pending
        file_ref = FileRef.from_message(message)

        if isinstance(pending, AwaitingUpload) and file_ref is not None:
            return self._resolve_upload(admin_id, chat_id, pending, file_ref, message.get("caption"))
        if isinstance(pending, AwaitingDescription) and text.strip():
            return self._resolve_description(admin_id, chat_id, pending, text)
        if isinstance(pending, AwaitingChapters) and text.strip():
            return self._resolve_chapters(admin_id, chat_id, pending, text)
        if isinstance(pending, AwaitingCustomMinutes) and text.strip():
            return self._resolve_custom_minutes(admin_id, chat_id, text)

        self._show(admin_id, chat_id, state.screen)
        return f"fallback:{state.screen}"

    def _consume(self, admin_id: int, expected: PendingInput, *, screen: str = "tracks") -> None:
        taken = self._sessions.take_pending(admin_id, screen=screen)  # type: ignore[arg-type]
        if taken != expected:
            logger.warning("pending input changed while resolving: expected=%s got=%s", expected, taken)

    def _resolve_upload(
        self,
        admin_id: int,
        chat_id: int,
        pending: AwaitingUpload,
        file_ref: FileRef,
        caption: Any,
    ) -> str:
        try:
            track = self._ingestion.ingest(
                file_ref,
                visibility=pending.visibility,
                caption=caption if isinstance(caption, str) else None,
            )
        except IngestionError as exc:
            logger.warning("upload failed: %s", exc)
            self._notify(chat_id, "❌ Upload failed. Send the file again or pick another one.")
            return "upload:failed"

        self._consume(admin_id, pending)
        self._transport.send_message(
            chat_id,
            "✅ Uploaded!\n\n"
            f"• {md_bold(track.title)}\n"
            f"• Status: *{track.status}*\n"
            f"• URL: {md_escape(track.url)}\n\n"
            "You can add a description and timestamps now.",
        )
        self._show(admin_id, chat_id, "track_editor", track=track)
        return "upload:done"

    def _resolve_description(self, admin_id: int, chat_id: int, pending: AwaitingDescription, text: str) -> str:
        self._consume(admin_id, pending)
        description = text.strip()

        def _set_description(item: Track) -> None:
            item.description = description

        track = self._assets.update(pending.track_id, _set_description)
        if track is None:
            self._notify(chat_id, TRACK_NOT_FOUND_TEXT)
            self._show(admin_id, chat_id, "tracks")
            return "description:not_found"
        self._notify(chat_id, "✅ Description saved.")
        self._show(admin_id, chat_id, "track_editor", track=track)
        return "description:saved"

    def _resolve_chapters(self, admin_id: int, chat_id: int, pending: AwaitingChapters, text: str) -> str:
        self._consume(admin_id, pending)
        chapters = parse_chapters(text)

        def _set_chapters(item: Track) -> None:
            item.chapters = list(chapters)

        track = self._assets.update(pending.track_id, _set_chapters)
        if track is None:
            self._notify(chat_id, TRACK_NOT_FOUND_TEXT)
            self._show(admin_id, chat_id, "tracks")
            return "chapters:not_found"
        if chapters:
            self._notify(chat_id, f"✅ Timestamps saved: {len(chapters)}.")
        else:
            self._notify(chat_id, "I found no timestamps. Format: 01:23 Title")
        self._show(admin_id, chat_id, "track_editor", track=track)
        return "chapters:saved" if chapters else "chapters:empty"

    def _resolve_custom_minutes(self, admin_id: int, chat_id: int, text: str) -> str:
        minutes = parse_custom_minutes(text)
        if minutes is None:
            self._notify(
                chat_id,
                f"Send a whole number of minutes between {MIN_CUSTOM_MINUTES} and {MAX_CUSTOM_MINUTES}.",
            )
            return "custom_minutes:invalid"

        self._consume(admin_id, AwaitingCustomMinutes(), screen="access_window")
        state = self._access.open_for(minutes * 60 * 1000, now=self._clock())
        logger.info("access window opened for %s minutes -> %s", minutes, state.open_until)
        self._show(admin_id, chat_id, "access_window")
        return "custom_minutes:set"
