"""Core admin console engine for Backroom."""

from .access_window import AccessWindow, AccessWindowState, is_open, parse_custom_minutes, resolve_preset
from .asset_store import AssetStore, track_ref
from .chapters import format_chapters, parse_chapters
from .cms_types import (
    AwaitingChapters,
    AwaitingCustomMinutes,
    AwaitingDescription,
    AwaitingUpload,
    Chapter,
    KvKeys,
    PanelHandle,
    PendingInput,
    SessionState,
    Track,
)
from .config_loader import (
    Settings,
    clear_config_cache,
    get_db_path,
    get_media_settings,
    get_settings,
    get_telegram_settings,
    load_config,
    resolve_config_path,
)
from .dispatch import DispatchEngine
from .ingestion import FileRef, IngestionError, IngestionPipeline, build_storage_key, infer_extension, slugify
from .kv_store import SqliteKeyValueStore
from .metrics import DailyMetrics, day_key, fingerprint
from .panel import Panel, PanelReconciler, PanelSnapshot, ReconcileResult, render_panel, render_user_view
from .session_state import SessionStore

__all__ = [
    "AccessWindow",
    "AccessWindowState",
    "AssetStore",
    "AwaitingChapters",
    "AwaitingCustomMinutes",
    "AwaitingDescription",
    "AwaitingUpload",
    "Chapter",
    "DailyMetrics",
    "DispatchEngine",
    "FileRef",
    "IngestionError",
    "IngestionPipeline",
    "KvKeys",
    "Panel",
    "PanelHandle",
    "PanelReconciler",
    "PanelSnapshot",
    "PendingInput",
    "ReconcileResult",
    "SessionState",
    "SessionStore",
    "Settings",
    "SqliteKeyValueStore",
    "Track",
    "build_storage_key",
    "clear_config_cache",
    "day_key",
    "fingerprint",
    "format_chapters",
    "get_db_path",
    "get_media_settings",
    "get_settings",
    "get_telegram_settings",
    "infer_extension",
    "is_open",
    "load_config",
    "parse_chapters",
    "parse_custom_minutes",
    "render_panel",
    "render_user_view",
    "resolve_config_path",
    "resolve_preset",
    "slugify",
    "track_ref",
]
