"""Per-user display preferences kept in the state store."""

from services.state_store import StateStore

DARK_MODE_KEY = "darkMode"


class Preferences:
    def __init__(self, store: StateStore, client_id: str):
        self.store = store
        self.client_id = client_id

    def dark_mode(self) -> bool:
        return bool(self.store.get(self.client_id, DARK_MODE_KEY, False))

    def set_dark_mode(self, enabled: bool) -> bool:
        self.store.put(self.client_id, DARK_MODE_KEY, bool(enabled))
        return bool(enabled)

    def toggle_dark_mode(self) -> bool:
        return self.set_dark_mode(not self.dark_mode())
