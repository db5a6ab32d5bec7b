"""Runtime facade for daemon/app integration."""

from .service import BackroomService, get_backroom_service, reset_backroom_service

__all__ = [
    "BackroomService",
    "get_backroom_service",
    "reset_backroom_service",
]
