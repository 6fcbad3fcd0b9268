"""Platform-aware path resolution and runtime settings."""

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

TRASH_DB_NAME = "cursor-analysis-trash.db"


def get_cursor_user_path() -> Path:
    """Return Cursor's User data directory."""
    env = os.environ.get("AICHAT_CURSOR_PATH")
    if env:
        return Path(env)

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Cursor" / "User"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "Cursor" / "User"
    else:  # Linux
        return Path.home() / ".config" / "Cursor" / "User"


def get_cursor_workspace_path() -> Path:
    """Return the path to Cursor's workspaceStorage directory."""
    return get_cursor_user_path() / "workspaceStorage"


def get_cursor_global_db_path() -> Path:
    """Return the path to Cursor's globalStorage state.vscdb."""
    return get_cursor_user_path() / "globalStorage" / "state.vscdb"


def get_trash_db_path() -> Path:
    """Return the SQLite file holding soft-deleted sessions."""
    env = os.environ.get("AICHAT_TRASH_DB")
    if env:
        return Path(env)
    return get_cursor_user_path() / TRASH_DB_NAME


def get_batch_yield_delay() -> float:
    """Seconds to pause between batch items so progress can be rendered."""
    raw = os.environ.get("AICHAT_BATCH_DELAY_MS", "0")
    try:
        return max(0.0, float(raw) / 1000)
    except ValueError:
        logger.warning("Ignoring invalid AICHAT_BATCH_DELAY_MS=%r", raw)
        return 0.0
