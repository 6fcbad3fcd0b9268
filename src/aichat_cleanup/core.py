"""Core data models for aichat-cleanup."""

from dataclasses import asdict, dataclass, field, fields
from typing import Optional


def _pick(cls, data: dict) -> dict:
    """Keep only the keys that are fields of ``cls``."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass(frozen=True)
class Session:
    """A single chat/agent conversation with its code-change metrics."""

    id: str  # composerId, unique within a project
    name: str
    mode: str  # "agent" | "chat" | anything newer Cursor adds
    created_at: Optional[str] = None  # "YYYY-MM-DD HH:MM" (UTC)
    updated_at: Optional[str] = None
    lines_added: int = 0
    lines_removed: int = 0
    files_changed: int = 0
    context_usage: Optional[float] = None
    branch: str = ""
    is_archived: bool = False
    subtitle: str = ""

    @property
    def net_lines(self) -> int:
        return self.lines_added - self.lines_removed

    @property
    def has_changes(self) -> bool:
        return bool(self.lines_added or self.lines_removed or self.files_changed)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(**_pick(cls, data))


@dataclass(frozen=True)
class Project:
    """A folder path with the sessions recorded against it.

    Counters arrive pre-aggregated from the scanner and are never recomputed.
    """

    name: str
    path: str  # external identifier
    chat_count: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    files_changed: int = 0
    chats: list[Session] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        kwargs = _pick(cls, data)
        kwargs["chats"] = [Session.from_dict(c) for c in data.get("chats", [])]
        return cls(**kwargs)


@dataclass(frozen=True)
class Workspace:
    """A workspaceStorage entry: one folder or a multi-root .code-workspace."""

    id: str  # workspaceStorage directory hash
    created_at: str = ""
    projects: list[str] = field(default_factory=list)
    chat_count: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    files_changed: int = 0
    recent_chats: list[Session] = field(default_factory=list)
    is_multi_project: bool = False

    @property
    def label(self) -> str:
        """Basename of the first project, or a short id when there is none."""
        if self.projects:
            name = self.projects[0].rstrip("/").split("/")[-1]
            if name:
                return name
        return self.id[:8]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Workspace":
        kwargs = _pick(cls, data)
        kwargs["recent_chats"] = [Session.from_dict(c) for c in data.get("recent_chats", [])]
        return cls(**kwargs)


@dataclass(frozen=True)
class TrashItem:
    """A soft-deleted session kept by the trash store."""

    id: int  # assigned by the trash store, sole handle for purging
    chat_id: str
    chat_name: str
    project_path: str
    mode: str
    lines_added: int
    lines_removed: int
    files_changed: int
    deleted_at: str
    original_data: str  # raw composer JSON

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TrashItem":
        return cls(**_pick(cls, data))


@dataclass(frozen=True)
class StorageInfo:
    total_size: int = 0
    total_size_human: str = "0 B"
    global_storage_size: int = 0
    global_storage_size_human: str = "0 B"
    history_size: int = 0
    history_size_human: str = "0 B"
    workspace_storage_size: int = 0
    workspace_storage_size_human: str = "0 B"
    state_vscdb_size: int = 0
    state_vscdb_backup_size: int = 0


@dataclass(frozen=True)
class DatabaseStats:
    item_table_count: int = 0
    item_table_size: int = 0
    cursor_disk_kv_count: int = 0
    cursor_disk_kv_size: int = 0
    bubble_count: int = 0
    bubble_size: int = 0
    composer_count: int = 0
    composer_size: int = 0
    checkpoint_count: int = 0
    checkpoint_size: int = 0
    agent_kv_count: int = 0
    agent_kv_size: int = 0


@dataclass(frozen=True)
class OverviewStats:
    total_projects: int = 0
    total_chats: int = 0
    total_lines_added: int = 0
    total_lines_removed: int = 0
    net_lines: int = 0
    total_files_changed: int = 0
    agent_mode_count: int = 0
    chat_mode_count: int = 0

    @classmethod
    def from_projects(cls, projects: list[Project]) -> "OverviewStats":
        """Totals across projects; every non-agent session counts as chat."""
        added = sum(p.lines_added for p in projects)
        removed = sum(p.lines_removed for p in projects)
        agent = sum(1 for p in projects for c in p.chats if c.mode == "agent")
        total_chats = sum(p.chat_count for p in projects)
        return cls(
            total_projects=len(projects),
            total_chats=total_chats,
            total_lines_added=added,
            total_lines_removed=removed,
            net_lines=added - removed,
            total_files_changed=sum(p.files_changed for p in projects),
            agent_mode_count=agent,
            chat_mode_count=sum(len(p.chats) for p in projects) - agent,
        )


@dataclass(frozen=True)
class AnalysisResult:
    """Point-in-time snapshot of everything the scanner found.

    Never mutated: a deletion invalidates it and a fresh one must be loaded.
    """

    storage: StorageInfo = field(default_factory=StorageInfo)
    overview: OverviewStats = field(default_factory=OverviewStats)
    database: DatabaseStats = field(default_factory=DatabaseStats)
    projects: list[Project] = field(default_factory=list)
    workspaces: list[Workspace] = field(default_factory=list)

    def find_project(self, path: str) -> Optional[Project]:
        return next((p for p in self.projects if p.path == path), None)

    def find_workspace(self, workspace_id: str) -> Optional[Workspace]:
        return next((w for w in self.workspaces if w.id == workspace_id), None)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResult":
        return cls(
            storage=StorageInfo(**_pick(StorageInfo, data.get("storage", {}))),
            overview=OverviewStats(**_pick(OverviewStats, data.get("overview", {}))),
            database=DatabaseStats(**_pick(DatabaseStats, data.get("database", {}))),
            projects=[Project.from_dict(p) for p in data.get("projects", [])],
            workspaces=[Workspace.from_dict(w) for w in data.get("workspaces", [])],
        )
