"""In-memory test doubles shared across the test modules."""

import json
import sqlite3
from datetime import datetime, timezone

from aichat_cleanup.core import AnalysisResult, OverviewStats, Project, Session, TrashItem, Workspace
from aichat_cleanup.store import SessionStore, StoreError

PROJECT_PATH = "/Users/testuser/dev/my-project"


def ms(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


def make_cursor_db(db_path, composers=None, kv_rows=()):
    """Write a state.vscdb with Cursor's two tables and optional composer data."""
    conn = sqlite3.connect(str(db_path))
    conn.execute("CREATE TABLE ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
    conn.execute("CREATE TABLE cursorDiskKV (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
    if composers is not None:
        conn.execute(
            "INSERT INTO ItemTable VALUES (?, ?)",
            ("composer.composerData", json.dumps({"allComposers": composers, "selectedComposerIds": []})),
        )
    for key, value in kv_rows:
        conn.execute("INSERT INTO cursorDiskKV VALUES (?, ?)", (key, value))
    conn.commit()
    conn.close()


def make_session(session_id, **kwargs) -> Session:
    kwargs.setdefault("name", session_id)
    kwargs.setdefault("mode", "agent")
    return Session(id=session_id, **kwargs)


class FakeStore(SessionStore):
    """In-memory store; ids listed in ``failing`` raise StoreError on delete."""

    name = "fake"

    def __init__(self, projects=(), workspaces=(), failing=()):
        self.projects = {p.path: p for p in projects}
        self.workspaces = {w.id: w for w in workspaces}
        self.failing = set(failing)
        self.trash: list[TrashItem] = []
        self.calls: list[tuple] = []
        self.snapshot_loads = 0
        self._next_trash_id = 1

    def get_snapshot(self) -> AnalysisResult:
        self.snapshot_loads += 1
        projects = [p for p in self.projects.values() if p.chats]
        return AnalysisResult(
            overview=OverviewStats.from_projects(projects),
            projects=projects,
            workspaces=[w for w in self.workspaces.values() if w.recent_chats],
        )

    def get_app_version(self) -> str:
        return "9.9.9"

    def list_trash(self) -> list[TrashItem]:
        return list(reversed(self.trash))

    def _check(self, target):
        if target in self.failing:
            raise StoreError(f"database is locked: {target}")

    def _trash(self, session: Session, project_path: str):
        self.trash.append(TrashItem(
            id=self._next_trash_id,
            chat_id=session.id,
            chat_name=session.name,
            project_path=project_path,
            mode=session.mode,
            lines_added=session.lines_added,
            lines_removed=session.lines_removed,
            files_changed=session.files_changed,
            deleted_at="2025-03-01 12:00:00",
            original_data=json.dumps(session.to_dict()),
        ))
        self._next_trash_id += 1

    def _remove(self, project_path, ids):
        project = self.projects.get(project_path)
        if project is None:
            raise StoreError(f"No database found for project {project_path}")
        removed = [c for c in project.chats if ids is None or c.id in ids]
        for c in removed:
            self._trash(c, project_path)
        kept = [c for c in project.chats if c not in removed]
        self.projects[project_path] = Project(
            name=project.name,
            path=project.path,
            chat_count=len(kept),
            lines_added=sum(c.lines_added for c in kept),
            lines_removed=sum(c.lines_removed for c in kept),
            files_changed=sum(c.files_changed for c in kept),
            chats=kept,
        )
        return len(removed)

    def delete_session(self, project_path, session_id):
        self.calls.append(("delete_session", project_path, session_id))
        self._check(session_id)
        return self._remove(project_path, {session_id})

    def delete_sessions(self, project_path, session_ids):
        self.calls.append(("delete_sessions", project_path, tuple(session_ids)))
        self._check(project_path)
        return self._remove(project_path, set(session_ids))

    def delete_project_sessions(self, project_path):
        self.calls.append(("delete_project_sessions", project_path))
        self._check(project_path)
        return self._remove(project_path, None)

    def delete_workspace_sessions(self, workspace_id):
        self.calls.append(("delete_workspace_sessions", workspace_id))
        self._check(workspace_id)
        workspace = self.workspaces.get(workspace_id)
        if workspace is None:
            raise StoreError(f"No database found for workspace {workspace_id}")
        for c in workspace.recent_chats:
            self._trash(c, f"[workspace] {workspace_id}")
        self.workspaces[workspace_id] = Workspace(id=workspace_id, projects=workspace.projects)
        return len(workspace.recent_chats)

    def clear_trash(self):
        count = len(self.trash)
        self.trash = []
        return count

    def delete_trash_item(self, trash_id):
        before = len(self.trash)
        self.trash = [t for t in self.trash if t.id != trash_id]
        return len(self.trash) < before


def make_project(path, sessions) -> Project:
    return Project(
        name=path.rstrip("/").split("/")[-1],
        path=path,
        chat_count=len(sessions),
        lines_added=sum(s.lines_added for s in sessions),
        lines_removed=sum(s.lines_removed for s in sessions),
        files_changed=sum(s.files_changed for s in sessions),
        chats=list(sessions),
    )


