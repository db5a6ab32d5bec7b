"""Load and query Backroom JSON config files."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("config/config.json")
DEFAULT_DB_PATH = "memory/backroom.db"
DEFAULT_MEDIA_ROOT = "memory/media"
DEFAULT_TELEGRAM_API_BASE = "https://api.telegram.org"
_CONFIG_CACHE: dict[Path, tuple[int, dict[str, Any]]] = {}


def repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Resolve config path against repo root.

    Priority:
    1. explicit function argument
    2. `BACKROOM_CONFIG_PATH` environment variable
    3. default `config/config.json`
    """
    raw_path: str | Path | None = config_path or os.getenv("BACKROOM_CONFIG_PATH")
    candidate = Path(raw_path) if raw_path else DEFAULT_CONFIG_PATH
    if not candidate.is_absolute():
        candidate = repo_root() / candidate
    return candidate.resolve()


def resolve_repo_path(raw: str | Path) -> Path:
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = repo_root() / candidate
    return candidate


def load_config(config_path: str | Path | None = None, *, use_cache: bool = True) -> dict[str, Any]:
    """Load config JSON as a dictionary."""
    resolved = resolve_config_path(config_path)
    if not resolved.exists():
        raise FileNotFoundError(f"Config file not found: {resolved}")

    mtime_ns = resolved.stat().st_mtime_ns
    if use_cache and resolved in _CONFIG_CACHE:
        cached_mtime_ns, cached_payload = _CONFIG_CACHE[resolved]
        if cached_mtime_ns == mtime_ns:
            return cached_payload

    try:
        payload = json.loads(resolved.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in config file: {resolved}") from exc

    if not isinstance(payload, dict):
        raise ValueError(f"Config root must be a JSON object: {resolved}")

    _CONFIG_CACHE[resolved] = (mtime_ns, payload)
    return payload


def clear_config_cache() -> None:
    """Clear in-memory config cache."""
    _CONFIG_CACHE.clear()


def _block(payload: dict[str, Any], name: str) -> dict[str, Any]:
    value = payload.get(name)
    return value if isinstance(value, dict) else {}


def _clean_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass(frozen=True, slots=True)
class TelegramSettings:
    bot_token: str | None
    admin_id: int | None
    api_base_url: str = DEFAULT_TELEGRAM_API_BASE
    timeout_sec: int = 15


@dataclass(frozen=True, slots=True)
class MediaSettings:
    root_dir: Path
    public_base_url: str | None = None


@dataclass(frozen=True, slots=True)
class Settings:
    telegram: TelegramSettings
    media: MediaSettings
    db_path: Path
    webapp_url: str | None = None
    track_list_limit: int = 10
    log_level: str = "INFO"


def get_telegram_settings(config: dict[str, Any] | None = None) -> TelegramSettings:
    payload = config if config is not None else load_config()
    block = _block(payload, "telegram")

    raw_admin = block.get("admin_id")
    admin_id: int | None
    try:
        admin_id = int(raw_admin) if raw_admin not in (None, "", 0, "0") else None
    except (TypeError, ValueError) as exc:
        raise ValueError("Config `telegram.admin_id` must be an integer.") from exc

    timeout = block.get("timeout_sec", 15)
    return TelegramSettings(
        bot_token=_clean_str(block.get("bot_token")),
        admin_id=admin_id,
        api_base_url=(_clean_str(block.get("api_base_url")) or DEFAULT_TELEGRAM_API_BASE).rstrip("/"),
        timeout_sec=int(timeout) if isinstance(timeout, (int, float)) and timeout > 0 else 15,
    )


def get_media_settings(config: dict[str, Any] | None = None) -> MediaSettings:
    payload = config if config is not None else load_config()
    block = _block(payload, "media")
    root_dir = _clean_str(block.get("root_dir")) or DEFAULT_MEDIA_ROOT
    return MediaSettings(
        root_dir=resolve_repo_path(root_dir),
        public_base_url=_clean_str(block.get("public_base_url")),
    )


def get_db_path(config: dict[str, Any] | None = None) -> Path:
    payload = config if config is not None else load_config()
    raw = _clean_str(_block(payload, "storage").get("db_path")) or DEFAULT_DB_PATH
    return resolve_repo_path(raw)


def get_settings(config: dict[str, Any] | None = None) -> Settings:
    """Build the typed settings bundle used to wire the runtime."""
    payload = config if config is not None else load_config()

    limit = _block(payload, "panel").get("track_list_limit", 10)
    level = _clean_str(_block(payload, "logging").get("level")) or "INFO"
    return Settings(
        telegram=get_telegram_settings(payload),
        media=get_media_settings(payload),
        db_path=get_db_path(payload),
        webapp_url=_clean_str(payload.get("webapp_url")),
        track_list_limit=max(1, min(50, int(limit))) if isinstance(limit, int) else 10,
        log_level=level.upper(),
    )
