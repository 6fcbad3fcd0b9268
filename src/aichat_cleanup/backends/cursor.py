"""Cursor IDE storage backend.

Scans Cursor's SQLite databases (state.vscdb) under workspaceStorage and
globalStorage to build the analysis snapshot, and deletes sessions by
rewriting ``composer.composerData`` in the owning workspace database. Every
removed composer is copied to the trash before its database is touched.
"""

import json
import logging
import sqlite3
import urllib.parse
from datetime import datetime, timezone
from pathlib import Path

from .. import __version__
from ..config import (
    TRASH_DB_NAME,
    get_cursor_global_db_path,
    get_cursor_user_path,
    get_cursor_workspace_path,
    get_trash_db_path,
)
from ..core import (
    AnalysisResult,
    DatabaseStats,
    OverviewStats,
    Project,
    Session,
    StorageInfo,
    TrashItem,
    Workspace,
)
from ..format import format_size, path_basename
from ..store import SessionStore, StoreError
from ..trash import TrashStore

logger = logging.getLogger(__name__)

COMPOSER_KEY = "composer.composerData"
SUBTITLE_MAX_LEN = 100

# cursorDiskKV key families reported in DatabaseStats, by field prefix.
_KV_FAMILIES = {
    "bubble": "bubbleId:%",
    "composer": "composerData:%",
    "checkpoint": "checkpointId:%",
    "agent_kv": "agentKv:%",
}


class CursorStore(SessionStore):
    """Session store backed by a Cursor ``User`` data directory."""

    name = "cursor"

    def __init__(self, user_path: Path | None = None, trash: TrashStore | None = None):
        self._user_path = user_path
        self.trash = trash or TrashStore(
            get_trash_db_path() if user_path is None else user_path / TRASH_DB_NAME
        )

    @property
    def user_path(self) -> Path:
        return self._user_path or get_cursor_user_path()

    def get_base_path(self) -> Path:
        if self._user_path is None:
            return get_cursor_workspace_path()
        return self._user_path / "workspaceStorage"

    def get_global_db_path(self) -> Path:
        if self._user_path is None:
            return get_cursor_global_db_path()
        return self._user_path / "globalStorage" / "state.vscdb"

    def is_available(self) -> bool:
        return self.get_base_path().is_dir()

    # ── Snapshot ─────────────────────────────────────────────────────

    def get_snapshot(self) -> AnalysisResult:
        projects = self.list_projects()
        snapshot = AnalysisResult(
            storage=self.get_storage_info(),
            overview=OverviewStats.from_projects(projects),
            database=self.get_database_stats(),
            projects=projects,
            workspaces=self.list_workspaces(),
        )
        logger.info(
            "Scanned %d projects, %d workspaces, %d sessions",
            len(snapshot.projects),
            len(snapshot.workspaces),
            snapshot.overview.total_chats,
        )
        return snapshot

    def get_app_version(self) -> str:
        return __version__

    def get_storage_info(self) -> StorageInfo:
        global_size = _dir_size(self.user_path / "globalStorage")
        history_size = _dir_size(self.user_path / "History")
        workspace_size = _dir_size(self.get_base_path())
        total = global_size + history_size + workspace_size
        db_path = self.get_global_db_path()

        return StorageInfo(
            total_size=total,
            total_size_human=format_size(total),
            global_storage_size=global_size,
            global_storage_size_human=format_size(global_size),
            history_size=history_size,
            history_size_human=format_size(history_size),
            workspace_storage_size=workspace_size,
            workspace_storage_size_human=format_size(workspace_size),
            state_vscdb_size=_file_size(db_path),
            state_vscdb_backup_size=_file_size(db_path.with_name("state.vscdb.backup")),
        )

    def get_database_stats(self) -> DatabaseStats:
        """Row counts and value sizes of the global database, per key family."""
        db_path = self.get_global_db_path()
        if not db_path.exists():
            logger.warning("Global database not found at %s", db_path)
            return DatabaseStats()

        try:
            conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open {db_path}: {e}") from e

        def count_and_size(table: str, pattern: str | None = None) -> tuple[int, int]:
            sql = f"SELECT COUNT(*), COALESCE(SUM(LENGTH(value)), 0) FROM {table}"
            params: tuple = ()
            if pattern:
                sql += " WHERE key LIKE ?"
                params = (pattern,)
            try:
                count, size = conn.execute(sql, params).fetchone()
                return count, size
            except sqlite3.Error as e:
                logger.debug("Cannot measure %s in %s: %s", table, db_path, e)
                return 0, 0

        try:
            values = {}
            values["item_table_count"], values["item_table_size"] = count_and_size("ItemTable")
            values["cursor_disk_kv_count"], values["cursor_disk_kv_size"] = count_and_size("cursorDiskKV")
            for prefix, pattern in _KV_FAMILIES.items():
                values[f"{prefix}_count"], values[f"{prefix}_size"] = count_and_size("cursorDiskKV", pattern)
        finally:
            conn.close()
        return DatabaseStats(**values)

    def list_projects(self) -> list[Project]:
        """Single-folder workspaces merged by folder path, largest first."""
        merged: dict[str, dict] = {}
        for ws_dir in self._workspace_dirs():
            folder = self._read_workspace_path(ws_dir)
            if not folder:
                continue
            sessions = self._read_sessions(ws_dir / "state.vscdb")
            entry = merged.setdefault(folder, {"chats": []})
            entry["chats"].extend(sessions)

        projects = [
            Project(
                name=path_basename(path) or path,
                path=path,
                chat_count=len(entry["chats"]),
                lines_added=sum(s.lines_added for s in entry["chats"]),
                lines_removed=sum(s.lines_removed for s in entry["chats"]),
                files_changed=sum(s.files_changed for s in entry["chats"]),
                chats=entry["chats"],
            )
            for path, entry in merged.items()
            if entry["chats"]
        ]
        projects.sort(key=lambda p: p.lines_added, reverse=True)
        return projects

    def list_workspaces(self) -> list[Workspace]:
        workspaces = []
        for ws_dir in self._workspace_dirs():
            sessions = self._read_sessions(ws_dir / "state.vscdb")
            if not sessions:
                continue

            data = self._read_workspace_json(ws_dir) or {}
            projects: list[str] = []
            created_at = ""
            multi = False
            folder = data.get("folder")
            workspace_uri = data.get("workspace")
            if isinstance(folder, str) and folder:
                projects = [_uri_to_path(folder)]
            elif isinstance(workspace_uri, str) and workspace_uri:
                multi = True
                ws_file = _uri_to_path(workspace_uri)
                created_at = _created_from_workspace_file(ws_file)
                projects = _read_workspace_folders(Path(ws_file))

            workspaces.append(Workspace(
                id=ws_dir.name,
                created_at=created_at,
                projects=projects,
                chat_count=len(sessions),
                lines_added=sum(s.lines_added for s in sessions),
                lines_removed=sum(s.lines_removed for s in sessions),
                files_changed=sum(s.files_changed for s in sessions),
                recent_chats=sessions,
                is_multi_project=multi,
            ))

        workspaces.sort(key=lambda w: w.lines_added, reverse=True)
        return workspaces

    # ── Trash ────────────────────────────────────────────────────────

    def list_trash(self) -> list[TrashItem]:
        return self.trash.items()

    def clear_trash(self) -> int:
        return self.trash.clear()

    def delete_trash_item(self, trash_id: int) -> bool:
        return self.trash.delete(trash_id)

    # ── Deletion ─────────────────────────────────────────────────────

    def delete_session(self, project_path: str, session_id: str) -> int:
        return self._remove_from_project(project_path, {session_id})

    def delete_sessions(self, project_path: str, session_ids: list[str]) -> int:
        if not session_ids:
            return 0
        return self._remove_from_project(project_path, set(session_ids))

    def delete_project_sessions(self, project_path: str) -> int:
        return self._remove_from_project(project_path, None)

    def delete_workspace_sessions(self, workspace_id: str) -> int:
        ws_dir = self.get_base_path() / workspace_id
        db_path = ws_dir / "state.vscdb"
        if not db_path.exists():
            raise StoreError(f"No database found for workspace {workspace_id}")
        label = self._read_workspace_path(ws_dir) or f"[workspace] {workspace_id}"
        return len(self._remove_composers(db_path, label, None))

    def find_project_dbs(self, project_path: str) -> list[Path]:
        """Every workspace database holding sessions of a project.

        A folder opened several times gets one workspaceStorage entry per
        opening, and the project list merges all of them.
        """
        found = []
        for ws_dir in self._workspace_dirs():
            data = self._read_workspace_json(ws_dir) or {}
            folder = data.get("folder")
            workspace_uri = data.get("workspace")
            if isinstance(folder, str) and _uri_to_path(folder) == project_path:
                found.append(ws_dir / "state.vscdb")
            elif isinstance(workspace_uri, str) and workspace_uri:
                members = _read_workspace_folders(Path(_uri_to_path(workspace_uri)))
                if project_path in members:
                    found.append(ws_dir / "state.vscdb")
        return found

    # ── Private helpers ──────────────────────────────────────────────

    def _remove_from_project(self, project_path: str, ids: set[str] | None) -> int:
        db_paths = self.find_project_dbs(project_path)
        if not db_paths:
            raise StoreError(f"No database found for project {project_path}")

        removed: list[str] = []
        for db_path in db_paths:
            removed.extend(self._remove_composers(db_path, project_path, ids))

        if ids is not None:
            missing = ids.difference(removed)
            if missing:
                logger.info("Sessions already gone from %s: %s", project_path, sorted(missing))
        return len(removed)

    def _remove_composers(self, db_path: Path, trash_label: str, ids: set[str] | None) -> list[str]:
        """Trash and remove composers from one workspace database.

        ``ids=None`` empties the list, trashing only the "head" entries that
        are listed as sessions. Ids not present are ignored. Returns the ids
        of the sessions removed.
        """
        try:
            conn = sqlite3.connect(str(db_path))
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open {db_path}: {e}") from e

        try:
            row = conn.execute(
                "SELECT value FROM ItemTable WHERE key = ?", (COMPOSER_KEY,)
            ).fetchone()
            if row is None:
                logger.info("No composer data in %s, nothing to delete", db_path)
                return []
            data = json.loads(_decode(row[0]))
            composers = data.get("allComposers", [])

            if ids is None:
                removed = [c for c in composers if c.get("type") == "head" and c.get("composerId")]
                kept: list = []
            else:
                removed = [c for c in composers if c.get("composerId") in ids]
                kept = [c for c in composers if c.get("composerId") not in ids]
                if not removed:
                    return []

            for composer in removed:
                self.trash.add(composer, trash_label)

            data["allComposers"] = kept
            conn.execute(
                "UPDATE ItemTable SET value = ? WHERE key = ?",
                (json.dumps(data, ensure_ascii=False), COMPOSER_KEY),
            )
            for composer in removed:
                composer_id = composer["composerId"]
                for prefix in ("bubbleId", "checkpointId"):
                    conn.execute(
                        "DELETE FROM cursorDiskKV WHERE key LIKE ?",
                        (f"{prefix}:{composer_id}:%",),
                    )
            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to delete sessions in {db_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt composerData in {db_path}: {e}") from e
        finally:
            conn.close()

        logger.info("Removed %d sessions from %s (%s)", len(removed), trash_label, db_path.parent.name)
        return [c["composerId"] for c in removed]

    def _workspace_dirs(self) -> list[Path]:
        base = self.get_base_path()
        if not base.is_dir():
            return []
        return sorted(
            d for d in base.iterdir()
            if d.is_dir() and (d / "state.vscdb").exists()
        )

    def _read_workspace_json(self, ws_dir: Path) -> dict | None:
        ws_json = ws_dir / "workspace.json"
        if not ws_json.exists():
            return None
        try:
            data = json.loads(ws_json.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else None
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read workspace.json in %s: %s", ws_dir, e)
            return None

    def _read_workspace_path(self, ws_dir: Path) -> str | None:
        """Project folder of a single-folder workspace, or None."""
        data = self._read_workspace_json(ws_dir) or {}
        folder = data.get("folder")
        if isinstance(folder, str) and folder:
            return _uri_to_path(folder)
        return None

    def _query_item_table(self, db_path: Path, key: str) -> str | None:
        """Read a single key from the ItemTable."""
        try:
            conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
            try:
                row = conn.execute("SELECT value FROM ItemTable WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
            return _decode(row[0]) if row else None
        except (sqlite3.Error, OSError) as e:
            logger.warning("Failed to read key '%s' from %s: %s", key, db_path, e)
            return None

    def _read_sessions(self, db_path: Path) -> list[Session]:
        """Sessions of one workspace database, most recently updated first."""
        raw = self._query_item_table(db_path, COMPOSER_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt composerData in %s: %s", db_path, e)
            return []
        return parse_composers(data.get("allComposers", []))


def parse_composers(composers: list) -> list[Session]:
    """Turn ``allComposers`` entries into sessions; only "head" entries count."""
    sessions = []
    for comp in composers:
        if not isinstance(comp, dict) or comp.get("type") != "head":
            continue
        context = comp.get("contextUsagePercent")
        sessions.append(Session(
            id=comp.get("composerId") or "",
            name=comp.get("name") or "Unnamed",
            mode=comp.get("unifiedMode") or "unknown",
            created_at=_ms_to_string(comp.get("createdAt")),
            updated_at=_ms_to_string(comp.get("lastUpdatedAt")),
            lines_added=_int(comp.get("totalLinesAdded")),
            lines_removed=_int(comp.get("totalLinesRemoved")),
            files_changed=_int(comp.get("filesChangedCount")),
            context_usage=float(context) if isinstance(context, (int, float)) else None,
            branch=comp.get("createdOnBranch") or "",
            is_archived=bool(comp.get("isArchived", False)),
            subtitle=(comp.get("subtitle") or "")[:SUBTITLE_MAX_LEN],
        ))
    sessions.sort(key=lambda s: s.updated_at or "", reverse=True)
    return sessions


def _uri_to_path(uri: str) -> str:
    if uri.startswith("file://"):
        return urllib.parse.unquote(uri[7:])
    return urllib.parse.unquote(uri)


def _read_workspace_folders(ws_file: Path) -> list[str]:
    """Folder paths listed in a .code-workspace file."""
    try:
        data = json.loads(ws_file.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.debug("Cannot read workspace file %s: %s", ws_file, e)
        return []
    folders = []
    for f in data.get("folders", []) if isinstance(data, dict) else []:
        value = f.get("path") or f.get("uri") if isinstance(f, dict) else None
        if isinstance(value, str) and value:
            folders.append(_uri_to_path(value))
    return folders


def _created_from_workspace_file(ws_file: str) -> str:
    """Untitled workspaces live under a millisecond-timestamp directory."""
    for segment in ws_file.split("/"):
        if len(segment) > 10 and segment.isdigit():
            return _ms_to_string(int(segment)) or ""
    return ""


def _ms_to_string(ms) -> str | None:
    """Convert a millisecond timestamp to 'YYYY-MM-DD HH:MM' UTC, or None."""
    if not isinstance(ms, (int, float)) or isinstance(ms, bool) or ms <= 0:
        return None
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
    except (ValueError, OSError, OverflowError):
        return None


def _int(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def _decode(value) -> str:
    return value if isinstance(value, str) else value.decode("utf-8", errors="replace")


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0


def _dir_size(path: Path) -> int:
    if not path.is_dir():
        return 0
    total = 0
    for f in path.rglob("*"):
        try:
            if f.is_file():
                total += f.stat().st_size
        except OSError:
            continue
    return total
