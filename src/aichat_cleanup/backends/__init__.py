"""Storage backends and the default store selection."""

from ..store import SessionStore
from .cursor import CursorStore


def get_default_store() -> SessionStore:
    """Return the store for this machine's Cursor installation."""
    return CursorStore()
