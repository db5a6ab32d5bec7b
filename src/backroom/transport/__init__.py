"""Outbound adapters: Telegram Bot API and media blob storage."""

from .blob_store import LocalBlobStore, public_url
from .telegram_client import TelegramApiError, TelegramClient

__all__ = [
    "LocalBlobStore",
    "TelegramApiError",
    "TelegramClient",
    "public_url",
]
