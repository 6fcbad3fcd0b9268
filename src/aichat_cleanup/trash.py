"""SQLite-backed trash for soft-deleted Cursor sessions.

Every composer removed from a workspace database is copied here first, with
the raw composer JSON kept in ``original_data`` so it could be restored.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from .core import TrashItem
from .store import StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS trash (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_id TEXT NOT NULL,
    chat_name TEXT,
    project_path TEXT,
    mode TEXT,
    lines_added INTEGER DEFAULT 0,
    lines_removed INTEGER DEFAULT 0,
    files_changed INTEGER DEFAULT 0,
    deleted_at TEXT NOT NULL,
    original_data TEXT
)
"""

_COLUMNS = (
    "id, chat_id, chat_name, project_path, mode, lines_added, "
    "lines_removed, files_changed, deleted_at, original_data"
)


class TrashStore:
    """Trash table living in its own database file."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path))
            conn.execute(_SCHEMA)
            return conn
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Cannot open trash database {self.db_path}: {e}") from e

    def add(self, composer: dict, project_path: str) -> int:
        """Record a composer entry before it is removed. Returns the trash id."""
        row = (
            composer.get("composerId") or "",
            composer.get("name") or "Unnamed",
            project_path,
            composer.get("unifiedMode") or "unknown",
            _as_int(composer.get("totalLinesAdded")),
            _as_int(composer.get("totalLinesRemoved")),
            _as_int(composer.get("filesChangedCount")),
            datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            json.dumps(composer, ensure_ascii=False),
        )
        conn = self._connect()
        try:
            cur = conn.execute(
                "INSERT INTO trash (chat_id, chat_name, project_path, mode, lines_added, "
                "lines_removed, files_changed, deleted_at, original_data) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                row,
            )
            conn.commit()
            logger.debug("Trashed %s from %s as #%s", row[0], project_path, cur.lastrowid)
            return cur.lastrowid
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write trash entry for {row[0]}: {e}") from e
        finally:
            conn.close()

    def items(self) -> list[TrashItem]:
        """Return all trash items, most recently deleted first."""
        conn = self._connect()
        try:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM trash ORDER BY deleted_at DESC, id DESC"
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read trash: {e}") from e
        finally:
            conn.close()

        return [
            TrashItem(
                id=r[0],
                chat_id=r[1],
                chat_name=r[2] or "",
                project_path=r[3] or "",
                mode=r[4] or "",
                lines_added=r[5] or 0,
                lines_removed=r[6] or 0,
                files_changed=r[7] or 0,
                deleted_at=r[8],
                original_data=r[9] or "",
            )
            for r in rows
        ]

    def delete(self, trash_id: int) -> bool:
        """Purge one item. Purging an absent id is a no-op returning False."""
        conn = self._connect()
        try:
            cur = conn.execute("DELETE FROM trash WHERE id = ?", (trash_id,))
            conn.commit()
            return cur.rowcount > 0
        except sqlite3.Error as e:
            raise StoreError(f"Failed to delete trash item {trash_id}: {e}") from e
        finally:
            conn.close()

    def clear(self) -> int:
        """Purge everything. Returns how many items were removed."""
        conn = self._connect()
        try:
            count = conn.execute("SELECT COUNT(*) FROM trash").fetchone()[0]
            conn.execute("DELETE FROM trash")
            conn.commit()
            return count
        except sqlite3.Error as e:
            raise StoreError(f"Failed to clear trash: {e}") from e
        finally:
            conn.close()


def _as_int(value) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0
