"""Shared runtime facade wiring config into stores, transport and dispatcher."""

from __future__ import annotations

import logging
from threading import RLock
from typing import Any

from src.backroom.core.access_window import AccessWindow, is_open, now_ms
from src.backroom.core.asset_store import AssetStore
from src.backroom.core.config_loader import Settings, get_settings
from src.backroom.core.dispatch import DispatchEngine
from src.backroom.core.ingestion import IngestionPipeline
from src.backroom.core.kv_store import SqliteKeyValueStore
from src.backroom.core.metrics import DailyMetrics
from src.backroom.core.panel import PanelReconciler
from src.backroom.core.session_state import SessionStore
from src.backroom.transport.blob_store import LocalBlobStore
from src.backroom.transport.telegram_client import TelegramClient

logger = logging.getLogger(__name__)

MAX_PUBLIC_TRACKS = 50


class BackroomService:
    """Single authority for app-facing operations."""

    def __init__(self, settings: Settings, *, transport: Any | None = None) -> None:
        self._settings = settings
        self._lock = RLock()
        self.kv = SqliteKeyValueStore(db_path=settings.db_path)
        self.access = AccessWindow(self.kv)
        self.assets = AssetStore(self.kv)
        self.sessions = SessionStore(self.kv)
        self.metrics = DailyMetrics(self.kv)
        self.blobs = LocalBlobStore(root_dir=settings.media.root_dir, public_base_url=settings.media.public_base_url)
        self._transport = transport
        self._dispatcher: DispatchEngine | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    def transport(self) -> Any:
        with self._lock:
            if self._transport is None:
                token = self._settings.telegram.bot_token
                if not token:
                    raise RuntimeError("Config `telegram.bot_token` is not set.")
                self._transport = TelegramClient(
                    bot_token=token,
                    api_base_url=self._settings.telegram.api_base_url,
                    timeout_sec=self._settings.telegram.timeout_sec,
                )
            return self._transport

    def dispatcher(self) -> DispatchEngine:
        with self._lock:
            if self._dispatcher is None:
                transport = self.transport()
                self._dispatcher = DispatchEngine(
                    transport=transport,
                    access=self.access,
                    assets=self.assets,
                    sessions=self.sessions,
                    metrics=self.metrics,
                    ingestion=IngestionPipeline(files=transport, blobs=self.blobs, assets=self.assets),
                    reconciler=PanelReconciler(transport=transport, sessions=self.sessions),
                    admin_id=self._settings.telegram.admin_id,
                    webapp_url=self._settings.webapp_url,
                    media_public_base=self._settings.media.public_base_url,
                    track_list_limit=self._settings.track_list_limit,
                )
            return self._dispatcher

    def handle_update(self, update: dict[str, Any]) -> dict[str, Any]:
        try:
            dispatcher = self.dispatcher()
        except RuntimeError as exc:
            logger.error("cannot handle update: %s", exc)
            return {"ok": False, "error": str(exc)}
        route = dispatcher.handle_update(update)
        logger.debug("update %s routed to %s", update.get("update_id"), route)
        return {"ok": route != "failed", "route": route}

    def health(self) -> dict[str, Any]:
        return {
            "ok": True,
            "source": "backroom_service",
            "db_path": str(self.kv.db_path),
            "media_root": str(self.blobs.root_dir),
            "telegram_configured": bool(self._settings.telegram.bot_token),
            "admin_configured": self._settings.telegram.admin_id is not None,
        }

    def status(self) -> dict[str, Any]:
        state = self.access.get_state()
        now = now_ms()
        return {"ok": True, "open": is_open(state, now), "open_until": state.open_until, "now": now}

    def now_playing(self) -> dict[str, Any]:
        track = self.assets.get_current()
        if track is None or not track.is_public:
            return {"ok": True, "track": None}
        return {"ok": True, "track": track.to_dict()}

    def recent_tracks(self, *, limit: int = 10) -> dict[str, Any]:
        safe_limit = max(1, min(MAX_PUBLIC_TRACKS, int(limit)))
        return {"ok": True, "tracks": [track.to_dict() for track in self.assets.list_public(safe_limit)]}

    def record_hit(self, *, ip: str, user_agent: str, path: str) -> dict[str, Any]:
        try:
            out = self.metrics.track_web_hit(ip=ip, user_agent=user_agent, path=path)
        except Exception as exc:
            logger.warning("web hit not recorded: %s", exc)
            return {"ok": False, "error": str(exc)}
        return {"ok": True, **out}

    def media(self, key: str) -> dict[str, Any] | None:
        try:
            return self.blobs.head(key)
        except ValueError:
            return None

    def set_webhook(self, url: str, *, drop_pending_updates: bool = False) -> dict[str, Any]:
        result = self.transport().set_webhook(url, drop_pending_updates=drop_pending_updates)
        return {"ok": True, "result": result, "url": url}

    def delete_webhook(self, *, drop_pending_updates: bool = False) -> dict[str, Any]:
        result = self.transport().delete_webhook(drop_pending_updates=drop_pending_updates)
        return {"ok": True, "result": result}

    def webhook_info(self) -> dict[str, Any]:
        return {"ok": True, "info": self.transport().get_webhook_info()}


_BACKROOM_SERVICE: BackroomService | None = None


def get_backroom_service() -> BackroomService:
    global _BACKROOM_SERVICE
    if _BACKROOM_SERVICE is None:
        _BACKROOM_SERVICE = BackroomService(get_settings())
    return _BACKROOM_SERVICE


def reset_backroom_service() -> None:
    global _BACKROOM_SERVICE
    _BACKROOM_SERVICE = None
