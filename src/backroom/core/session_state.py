"""Per-admin session persistence: current screen, pending input, panel handle."""

from __future__ import annotations

from .cms_types import KvKeys, PanelHandle, PendingInput, Screen, SessionState
from .kv_store import SqliteKeyValueStore


class SessionStore:
    def __init__(self, store: SqliteKeyValueStore) -> None:
        self._store = store

    def load(self, admin_id: int) -> SessionState:
        return SessionState.from_dict(self._store.get_json(KvKeys.session(admin_id)))

    def save(self, admin_id: int, state: SessionState) -> SessionState:
        self._store.put_json(KvKeys.session(admin_id), state.to_dict())
        return state

    def set_screen(self, admin_id: int, screen: Screen) -> SessionState:
        return self.save(admin_id, self.load(admin_id).with_screen(screen))

    def expect(self, admin_id: int, pending: PendingInput) -> SessionState:
        """Replace whatever input was pending with a new expectation."""
        return self.save(admin_id, self.load(admin_id).with_pending(pending))

    def peek_pending(self, admin_id: int) -> PendingInput | None:
        return self.load(admin_id).pending

    def take_pending(self, admin_id: int, *, screen: Screen | None = None) -> PendingInput | None:
        """Read and clear the pending input in one step."""
        state = self.load(admin_id)
        pending = state.pending
        if pending is None:
            return None
        cleared = state.with_pending(None)
        if screen is not None:
            cleared = cleared.with_screen(screen)
        self.save(admin_id, cleared)
        return pending

    def panel_handle(self, admin_id: int) -> PanelHandle | None:
        return PanelHandle.from_dict(self._store.get_json(KvKeys.panel(admin_id)))

    def save_panel_handle(self, admin_id: int, handle: PanelHandle) -> None:
        self._store.put_json(KvKeys.panel(admin_id), handle.to_dict())
