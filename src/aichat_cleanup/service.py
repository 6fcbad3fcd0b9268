"""Application state and the delete actions built on top of it.

AppService is the one object callers hold: the current snapshot, the trash
listing, per-context selections and list views, and the orchestrator that
every delete goes through. After any delete the snapshot is reloaded from
the store; it is never patched in place.
"""

import logging

from .core import AnalysisResult, Project, TrashItem, Workspace
from .events import EventBus, SnapshotInvalidated
from .format import path_basename
from .orchestrator import BatchDeleteOrchestrator, Summary
from .query import Page
from .selection import SelectionManager
from .store import SessionStore, StoreError
from .views import ProjectListView, SelectableList, SessionListView, WorkspaceListView

logger = logging.getLogger(__name__)


class AppService:
    """Explicit application context shared by the HTTP API and the CLI."""

    def __init__(self, store: SessionStore, events: EventBus | None = None, yield_delay: float = 0.0):
        self.store = store
        self.events = events or EventBus()
        self.orchestrator = BatchDeleteOrchestrator(self.events, yield_delay=yield_delay)

        self.snapshot: AnalysisResult | None = None
        self.trash_items: list[TrashItem] = []
        self.app_version = ""
        self.error: str | None = None
        self.stale = True  # no snapshot yet, or a delete happened since

        self.project_list = ProjectListView("projects")
        self.workspace_list = WorkspaceListView("workspaces")
        self._views: dict[str, SessionListView] = {}

        self.events.subscribe(self._on_event)

    @property
    def project_selection(self) -> SelectionManager:
        return self.project_list.selection

    @property
    def workspace_selection(self) -> SelectionManager:
        return self.workspace_list.selection

    # ── Loading ──────────────────────────────────────────────────────

    def load_data(self) -> AnalysisResult:
        """Fetch a fresh snapshot, version and trash listing.

        Every selection and list view is reset against the new snapshot.
        Session views of projects or workspaces that are gone are dropped.
        """
        self.error = None
        try:
            snapshot = self.store.get_snapshot()
            self.app_version = self.store.get_app_version()
            self.trash_items = self.store.list_trash()
        except StoreError as e:
            self.error = str(e)
            logger.error("Failed to load data: %s", e)
            raise

        self.snapshot = snapshot
        self.stale = False
        self.project_list.reload(snapshot.projects)
        self.workspace_list.reload(snapshot.workspaces)
        for key in list(self._views):
            sessions = self._sessions_for(key)
            if sessions is None:
                self._views.pop(key).selection.clear()
                logger.debug("Dropped list view %s", key)
            else:
                self._views[key].reload(sessions)
        return snapshot

    def refresh(self) -> bool:
        """Reload after a delete; a failure is kept in ``error`` instead of raised."""
        try:
            self.load_data()
        except StoreError:
            return False
        return True

    def load_trash(self) -> list[TrashItem]:
        self.trash_items = self.store.list_trash()
        return self.trash_items

    def require_snapshot(self) -> AnalysisResult:
        if self.snapshot is None:
            return self.load_data()
        return self.snapshot

    # ── Lists ────────────────────────────────────────────────────────

    def project_page(self, sort_field: str | None = None, page: int | None = None) -> Page:
        """Sorted project list; a new sort order clears the project selection."""
        self.require_snapshot()
        return self.project_list.update(sort_field, page)

    def workspaces(self) -> list[Workspace]:
        self.require_snapshot()
        return list(self.workspace_list.render().items)

    def project(self, path: str) -> Project | None:
        return self.require_snapshot().find_project(path)

    def workspace(self, workspace_id: str) -> Workspace | None:
        return self.require_snapshot().find_workspace(workspace_id)

    def project_view(self, path: str) -> SessionListView:
        """Session list view of one project; created on first use.

        Raises KeyError when the project is not in the snapshot.
        """
        return self._view(f"project:{path}")

    def workspace_view(self, workspace_id: str) -> SessionListView:
        return self._view(f"workspace:{workspace_id}")

    def list_view(self, context: str) -> SelectableList:
        """The list behind a selection context.

        ``context`` is "projects", "workspaces", "project:<path>" or
        "workspace:<id>". Raises KeyError for anything else.
        """
        if context == self.project_list.context:
            self.require_snapshot()
            return self.project_list
        if context == self.workspace_list.context:
            self.require_snapshot()
            return self.workspace_list
        return self._view(context)

    def _view(self, key: str) -> SessionListView:
        if key not in self._views:
            sessions = self._sessions_for(key)
            if sessions is None:
                raise KeyError(f"Unknown list: {key}")
            self._views[key] = SessionListView(key, sessions)
        return self._views[key]

    def _sessions_for(self, key: str) -> list | None:
        kind, _, ident = key.partition(":")
        snapshot = self.require_snapshot()
        if kind == "project":
            project = snapshot.find_project(ident)
            return project.chats if project else None
        if kind == "workspace":
            workspace = snapshot.find_workspace(ident)
            return workspace.recent_chats if workspace else None
        return None

    # ── Labels ───────────────────────────────────────────────────────

    def project_label(self, path: str) -> str:
        project = self.snapshot.find_project(path) if self.snapshot else None
        if project is not None and project.name:
            return project.name
        return path_basename(path)

    def workspace_label(self, workspace_id: str) -> str | None:
        workspace = self.snapshot.find_workspace(workspace_id) if self.snapshot else None
        return workspace.label if workspace is not None else None

    # ── Single deletes: errors reach the caller ──────────────────────

    async def delete_session(self, project_path: str, session_id: str) -> Summary:
        summary = await self.orchestrator.run_single(
            session_id, lambda sid: self.store.delete_session(project_path, sid)
        )
        self.refresh()
        return summary

    async def delete_sessions(self, project_path: str, session_ids: list[str]) -> Summary:
        """Native batch: one store call covering all ids of one project."""
        ids = list(session_ids)
        summary = await self.orchestrator.run_single(
            project_path, lambda path: self.store.delete_sessions(path, ids)
        )
        self.refresh()
        return summary

    async def delete_selected_sessions(self, project_path: str) -> Summary:
        """Delete the sessions selected in a project's session list."""
        ids = self.project_view(project_path).selected_ids()
        if not ids:
            return Summary()
        return await self.delete_sessions(project_path, ids)

    async def delete_project_sessions(self, project_path: str) -> Summary:
        summary = await self.orchestrator.run_single(project_path, self.store.delete_project_sessions)
        self.refresh()
        return summary

    async def delete_workspace_sessions(self, workspace_id: str) -> Summary:
        summary = await self.orchestrator.run_single(workspace_id, self.store.delete_workspace_sessions)
        self.refresh()
        return summary

    # ── Batch deletes: failures are counted ──────────────────────────

    async def delete_projects(self, project_paths: list[str]) -> Summary:
        self.require_snapshot()
        summary = await self.orchestrator.run_batch(
            project_paths,
            self.store.delete_project_sessions,
            label_for=self.project_label,
            selection=self.project_selection,
        )
        self._after_batch(summary)
        return summary

    async def delete_workspaces(self, workspace_ids: list[str]) -> Summary:
        self.require_snapshot()
        summary = await self.orchestrator.run_batch(
            workspace_ids,
            self.store.delete_workspace_sessions,
            label_for=self.workspace_label,
            selection=self.workspace_selection,
        )
        self._after_batch(summary)
        return summary

    async def delete_selected_projects(self) -> Summary:
        return await self.delete_projects(self.list_view("projects").selected_ids())

    async def delete_selected_workspaces(self) -> Summary:
        return await self.delete_workspaces(self.list_view("workspaces").selected_ids())

    def _after_batch(self, summary: Summary) -> None:
        if summary.failed:
            logger.warning("Delete finished with errors: %s", summary.message())
        self.refresh()

    # ── Trash ────────────────────────────────────────────────────────

    def clear_trash(self) -> int:
        count = self.store.clear_trash()
        self.trash_items = []
        logger.info("Cleared %d trash items", count)
        return count

    def delete_trash_item(self, trash_id: int) -> bool:
        existed = self.store.delete_trash_item(trash_id)
        if not existed:
            logger.debug("Trash item %s was already gone", trash_id)
        self.load_trash()
        return existed

    def _on_event(self, event) -> None:
        if isinstance(event, SnapshotInvalidated):
            logger.debug("Snapshot invalidated (%s)", event.reason)
            self.stale = True
