"""Admin panel rendering and single-message reconciliation.

`render_panel` is pure: a view name plus a data snapshot gives display text and
an inline keyboard. `PanelReconciler` keeps one live panel message per admin by
editing it in place and only sending a new one when the edit fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Protocol

from .access_window import AccessWindowState, is_open
from .asset_store import track_ref
from .chapters import format_chapters
from .cms_types import (
    AwaitingChapters,
    AwaitingCustomMinutes,
    AwaitingDescription,
    AwaitingUpload,
    PanelHandle,
    PendingInput,
    Track,
)
from .session_state import SessionStore

logger = logging.getLogger(__name__)

Keyboard = dict[str, Any]

BACK_TO_MAIN = "nav:main"
BACK_TO_TRACKS = "nav:tracks"


@dataclass(frozen=True, slots=True)
class Panel:
    text: str
    keyboard: Keyboard


@dataclass(slots=True)
class PanelSnapshot:
    window: AccessWindowState
    now: int
    track_count: int = 0
    tracks: list[Track] = field(default_factory=list)
    track: Track | None = None
    current: Track | None = None
    metrics_day: str = ""
    metrics: dict[str, Any] = field(default_factory=dict)
    webapp_url: str | None = None
    media_public_base: str | None = None
    pending: PendingInput | None = None


def md_escape(value: str) -> str:
    """Escape legacy-Markdown control characters in user-provided text."""
    out = str(value)
    for char in ("_", "*", "`", "["):
        out = out.replace(char, f"\\{char}")
    return out


def md_bold(value: str) -> str:
    """Bold entity; a literal `*` sits between entities and empty entities are dropped."""
    out: list[str] = []
    for index, part in enumerate(str(value).split("*")):
        if index:
            out.append("\\*")
        if part:
            out.append(f"*{part}*")
    return "".join(out)


def fmt_ts(ts_ms: int) -> str:
    if not ts_ms or ts_ms <= 0:
        return "—"
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _button(text: str, data: str) -> dict[str, str]:
    return {"text": text, "callback_data": data}


def _keyboard(*rows: list[dict[str, str]]) -> Keyboard:
    return {"inline_keyboard": [row for row in rows if row]}


def _title(title: str) -> str:
    return f"🕳️ BACKROOM • CMS\n\n*{title}*\n"


def window_status_line(window: AccessWindowState, now: int) -> str:
    if not is_open(window, now):
        return "🔴 Lobby: *CLOSED*"
    if window.is_forever:
        return "🟢 Lobby: *OPEN* (no time limit)"
    return f"🟢 Lobby: *OPEN* until {fmt_ts(window.open_until)}"


def pending_line(pending: PendingInput | None) -> str:
    if isinstance(pending, AwaitingUpload):
        return f"⏳ Waiting for an audio file ({pending.visibility})"
    if isinstance(pending, AwaitingDescription):
        return "⏳ Waiting for a description"
    if isinstance(pending, AwaitingChapters):
        return "⏳ Waiting for timestamps"
    if isinstance(pending, AwaitingCustomMinutes):
        return "⏳ Waiting for a duration in minutes"
    return ""


def _render_main(snapshot: PanelSnapshot) -> Panel:
    lines = [window_status_line(snapshot.window, snapshot.now)]
    waiting = pending_line(snapshot.pending)
    if waiting:
        lines.append(waiting)
    text = _title("Admin panel") + "\n".join(lines) + "\n\nPick a section:"
    return Panel(
        text=text,
        keyboard=_keyboard(
            [_button("🟢/🔴 Lobby", "nav:access_window")],
            [_button("🎵 Tracks", "nav:tracks")],
            [_button("📊 Analytics", "nav:analytics")],
            [_button("⚙️ Settings", "nav:settings")],
            [_button("❓ Help", "nav:help")],
        ),
    )


def _render_access_window(snapshot: PanelSnapshot) -> Panel:
    text = _title("Lobby") + window_status_line(snapshot.window, snapshot.now) + "\n\nChoose an action:"
    return Panel(
        text=text,
        keyboard=_keyboard(
            [_button("Open 15 min", "win:open:15m"), _button("Open 1 hour", "win:open:1h")],
            [_button("Open 6 hours", "win:open:6h"), _button("Open 24 hours", "win:open:24h")],
            [_button("Open with no limit", "win:open:forever")],
            [_button("⌨️ Custom minutes", "win:custom")],
            [_button("🔴 Close now", "win:close")],
            [_button("⬅️ Back", BACK_TO_MAIN)],
        ),
    )


def _render_tracks(snapshot: PanelSnapshot) -> Panel:
    lines = [f"Tracks in catalog: *{snapshot.track_count}*"]
    if snapshot.current is not None:
        lines.append(f"▶️ Now playing: {md_bold(snapshot.current.title)}")
    waiting = pending_line(snapshot.pending)
    if waiting:
        lines.append(waiting)
    text = _title("Tracks") + "\n".join(lines) + "\n\nChoose an action:"
    return Panel(
        text=text,
        keyboard=_keyboard(
            [_button("➕ Upload as draft", "trk:upload:draft")],
            [_button("🚀 Upload and publish", "trk:upload:public")],
            [_button("📜 Track list", "trk:list")],
            [_button("⬅️ Back", BACK_TO_MAIN)],
        ),
    )


def _render_analytics(snapshot: PanelSnapshot) -> Panel:
    m = snapshot.metrics
    lines = [
        f"📅 Day (UTC): *{snapshot.metrics_day}*",
        "",
        "Telegram:",
        f"• Events: *{int(m.get('tg_events', 0))}*",
        f"• Unique users: *{int(m.get('tg_unique_users', 0))}*",
        "",
        "Web:",
        f"• Hits: *{int(m.get('web_hits', 0))}*",
        f"• Unique visitors: *{int(m.get('web_unique_users', 0))}*",
    ]
    return Panel(
        text=_title("Analytics") + "\n".join(lines),
        keyboard=_keyboard([_button("🔄 Refresh", "nav:analytics")], [_button("⬅️ Back", BACK_TO_MAIN)]),
    )


def _render_settings(snapshot: PanelSnapshot) -> Panel:
    state = "OPEN" if is_open(snapshot.window, snapshot.now) else "CLOSED"
    text = (
        _title("Settings")
        + f"Web app URL: `{snapshot.webapp_url or '—'}`\n"
        + f"Media public base: `{snapshot.media_public_base or '—'}`\n"
        + f"Lobby now: *{state}*"
    )
    return Panel(text=text, keyboard=_keyboard([_button("⬅️ Back", BACK_TO_MAIN)]))


def _render_help(snapshot: PanelSnapshot) -> Panel:
    _ = snapshot
    text = (
        _title("Help")
        + "*How it works*\n\n"
        + "1) Lobby: open it for a while or close it.\n"
        + "2) Tracks: press upload and send an audio file.\n"
        + "3) Timestamps: after the upload you can send a list like:\n"
        + "`00:00 Intro\n01:12 Verse\n02:05 Chorus`\n\n"
        + "Users only ever see the “Open BACKROOM” button."
    )
    return Panel(text=text, keyboard=_keyboard([_button("⬅️ Back", BACK_TO_MAIN)]))


def _render_track_list(snapshot: PanelSnapshot) -> Panel:
    if not snapshot.tracks:
        return Panel(
            text=_title("Track list") + "Nothing here yet.",
            keyboard=_keyboard([_button("⬅️ Back", BACK_TO_TRACKS)]),
        )
    lines: list[str] = []
    rows: list[list[dict[str, str]]] = []
    for track in snapshot.tracks:
        marker = "▶️ " if track.is_current else ""
        lines.append(f"• {marker}{md_bold(track.title)} — {track.status} ({fmt_ts(track.created_at)})")
        rows.append([_button(f"✏️ {track.title}"[:64], f"trk:edit:{track_ref(track.id)}")])
    rows.append([_button("⬅️ Back", BACK_TO_TRACKS)])
    return Panel(text=_title("Track list") + "\n".join(lines), keyboard={"inline_keyboard": rows})


def _render_track_editor(snapshot: PanelSnapshot) -> Panel:
    track = snapshot.track
    if track is None:
        return _render_track_list(snapshot)
    ref = track_ref(track.id)
    chapters = f"✅ {len(track.chapters)}" if track.chapters else "—"
    text = (
        _title("Track editor")
        + f"{md_bold(track.title)}\n"
        + f"Status: *{track.status}*\n"
        + f"Now playing: {'✅ yes' if track.is_current else '—'}\n"
        + f"URL: {md_escape(track.url)}\n\n"
        + f"Description: {'✅ set' if track.description else '—'}\n"
        + f"Timestamps: {chapters}\n\n"
        + "Choose what to change:"
    )
    return Panel(
        text=text,
        keyboard=_keyboard(
            [_button("📝 Edit description", f"trk:desc:{ref}")],
            [_button("⏱ Set timestamps", f"trk:chap:{ref}")],
            [_button("🔄 Toggle draft/public", f"trk:toggle:{ref}")],
            [_button("▶️ Set as now playing", f"trk:current:{ref}")],
            [_button("⬅️ Back to list", "trk:list")],
        ),
    )


def _render_upload_prompt(snapshot: PanelSnapshot) -> Panel:
    visibility = snapshot.pending.visibility if isinstance(snapshot.pending, AwaitingUpload) else "draft"
    text = (
        _title("Upload a track")
        + "OK. Send an *audio file* (mp3/wav/m4a/ogg) as *audio* or as a *file*.\n\n"
        + f"Status: *{visibility.upper()}*\n"
        + "Put the title in the caption if you like.\n\n"
        + "After the upload you can add *timestamps* and a *description*."
    )
    return Panel(text=text, keyboard=_keyboard([_button("⬅️ Back", BACK_TO_TRACKS)]))


def _editor_back(snapshot: PanelSnapshot) -> Keyboard:
    if snapshot.track is None:
        return _keyboard([_button("⬅️ Back", BACK_TO_TRACKS)])
    return _keyboard([_button("⬅️ Back", f"trk:edit:{track_ref(snapshot.track.id)}")])


def _render_description_prompt(snapshot: PanelSnapshot) -> Panel:
    text = _title("Description") + "Send the track *description* as a single message."
    if snapshot.track is not None and snapshot.track.description:
        text += f"\n\nCurrent:\n{md_escape(snapshot.track.description)}"
    return Panel(text=text, keyboard=_editor_back(snapshot))


def _render_chapters_prompt(snapshot: PanelSnapshot) -> Panel:
    text = (
        _title("Timestamps")
        + "Send the timestamps as a list:\n\n"
        + "`00:00 Intro\n01:12 Verse\n02:05 Chorus`\n\n"
        + "Formats: mm:ss or hh:mm:ss"
    )
    if snapshot.track is not None and snapshot.track.chapters:
        text += f"\n\nCurrent:\n{md_escape(format_chapters(snapshot.track.chapters))}"
    return Panel(text=text, keyboard=_editor_back(snapshot))


def _render_custom_minutes_prompt(snapshot: PanelSnapshot) -> Panel:
    text = (
        _title("Custom duration")
        + window_status_line(snapshot.window, snapshot.now)
        + "\n\nSend the number of minutes to keep the lobby open (1 to 43200)."
    )
    return Panel(text=text, keyboard=_keyboard([_button("⬅️ Back", "nav:access_window")]))


_RENDERERS: dict[str, Callable[[PanelSnapshot], Panel]] = {
    "main": _render_main,
    "access_window": _render_access_window,
    "tracks": _render_tracks,
    "analytics": _render_analytics,
    "settings": _render_settings,
    "help": _render_help,
    "track_list": _render_track_list,
    "track_editor": _render_track_editor,
    "upload_prompt": _render_upload_prompt,
    "description_prompt": _render_description_prompt,
    "chapters_prompt": _render_chapters_prompt,
    "custom_minutes_prompt": _render_custom_minutes_prompt,
}
VIEWS: tuple[str, ...] = tuple(_RENDERERS)


def render_panel(view: str, snapshot: PanelSnapshot) -> Panel:
    """Render a view; unknown view names fall back to the main screen."""
    return _RENDERERS.get(view, _render_main)(snapshot)


def render_user_view(*, window_open: bool, webapp_url: str | None) -> Panel:
    """The only thing ordinary users ever see."""
    if window_open and webapp_url:
        return Panel(
            text="BACKROOM 👇",
            keyboard={"inline_keyboard": [[{"text": "Open BACKROOM", "url": webapp_url}]]},
        )
    return Panel(text="BACKROOM is closed right now. Come back later.", keyboard={"inline_keyboard": []})


class PanelTransport(Protocol):
    def send_message(self, chat_id: int, text: str, *, reply_markup: Keyboard | None = None) -> dict[str, Any]: ...

    def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        reply_markup: Keyboard | None = None,
    ) -> Any: ...


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    action: Literal["edited", "sent"]
    handle: PanelHandle


class PanelReconciler:
    """Edit the admin's live panel in place; send and remember a new one when that fails."""

    def __init__(self, *, transport: PanelTransport, sessions: SessionStore) -> None:
        self._transport = transport
        self._sessions = sessions

    def _try_edit(self, handle: PanelHandle, panel: Panel) -> bool:
        try:
            self._transport.edit_message_text(
                handle.chat_id,
                handle.message_id,
                panel.text,
                reply_markup=panel.keyboard,
            )
        except Exception as exc:
            if getattr(exc, "is_not_modified", False):
                return True
            logger.info("panel edit failed chat=%s message=%s: %s", handle.chat_id, handle.message_id, exc)
            return False
        return True

    def show(self, *, admin_id: int, chat_id: int, panel: Panel) -> ReconcileResult:
        handle = self._sessions.panel_handle(admin_id)
        if handle is not None and handle.chat_id == chat_id and self._try_edit(handle, panel):
            return ReconcileResult(action="edited", handle=handle)

        sent = self._transport.send_message(chat_id, panel.text, reply_markup=panel.keyboard)
        message_id = sent.get("message_id") if isinstance(sent, dict) else None
        if not isinstance(message_id, int):
            raise ValueError("sendMessage result has no message_id.")
        new_handle = PanelHandle(chat_id=chat_id, message_id=message_id)
        self._sessions.save_panel_handle(admin_id, new_handle)
        return ReconcileResult(action="sent", handle=new_handle)
