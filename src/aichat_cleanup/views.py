"""Stateful list views: a collection, its current page and a selection over it.

There is one view per list context: the project list, the workspace list,
and the session list of each project or workspace. Anything that changes
what a view lists, other than turning the page, clears its selection.
"""

import dataclasses
from typing import Sequence

from .core import Project, Session, Workspace
from .query import PROJECT_SORT_FIELDS, Criteria, Page, active_workspaces, render, render_projects
from .selection import SelectionManager


class SelectableList:
    """Selection operations shared by every list view.

    Subclasses implement ``render()`` and keep the last page in ``_last_page``.
    """

    def __init__(self, context: str):
        self.context = context
        self.selection = SelectionManager(context)
        self._last_page: Page | None = None

    def render(self) -> Page:
        raise NotImplementedError

    @property
    def page(self) -> Page:
        """The last rendered page, rendering once if nothing was rendered yet."""
        if self._last_page is None:
            return self.render()
        return self._last_page

    def toggle(self, item_id: str) -> None:
        """Flip one id. Only listed ids can be selected; KeyError otherwise."""
        if item_id not in self.selection and item_id not in self.page.filtered_ids:
            raise KeyError(item_id)
        self.selection.toggle(item_id)

    def toggle_page(self) -> None:
        """Select the current page, or clear when it is already fully selected."""
        page_ids = self.page.item_ids
        if self.selection.is_page_fully_selected(page_ids):
            self.selection.clear()
        else:
            self.selection.select_all(page_ids)

    def select_all_filtered(self) -> None:
        self.selection.select_all_filtered(self.page.filtered_ids)

    def selected_ids(self) -> list[str]:
        """Selected ids in current list order."""
        return self.selection.ordered(self.page.filtered_ids)


class SessionListView(SelectableList):
    """The session list of one project or workspace.

    Changing any criterion other than the page number, or reloading the
    collection, clears the selection and goes back to page 1. Turning pages
    keeps the selection.
    """

    def __init__(self, context: str, sessions: Sequence[Session] = (), criteria: Criteria | None = None):
        super().__init__(context)
        self._sessions = list(sessions)
        self._criteria = criteria or Criteria()

    @property
    def criteria(self) -> Criteria:
        return self._criteria

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    def render(self) -> Page:
        self._last_page = render(self._sessions, self._criteria)
        return self._last_page

    def update_criteria(self, **changes) -> Page:
        """Apply criteria changes and re-render.

        A ``page`` entry alone behaves like set_page(); any other change
        clears the selection and resets to page 1.
        """
        new = dataclasses.replace(self._criteria, **changes)
        if new.view_key() != self._criteria.view_key():
            new = dataclasses.replace(new, page=1)
            self.selection.clear()
        self._criteria = new
        return self.render()

    def set_page(self, page: int) -> Page:
        self._criteria = dataclasses.replace(self._criteria, page=page)
        return self.render()

    def reload(self, sessions: Sequence[Session]) -> Page:
        """Swap in a fresh collection after a snapshot reload."""
        self._sessions = list(sessions)
        self.selection.clear()
        self._criteria = dataclasses.replace(self._criteria, page=1)
        return self.render()


class ProjectListView(SelectableList):
    """Sorted, paged project list; items are identified by path."""

    def __init__(self, context: str = "projects", projects: Sequence[Project] = (), sort_field: str = "lines_added"):
        super().__init__(context)
        self._projects = list(projects)
        self.sort_field = sort_field
        self.page_number = 1

    def render(self) -> Page:
        self._last_page = render_projects(self._projects, self.sort_field, self.page_number)
        return self._last_page

    def update(self, sort_field: str | None = None, page: int | None = None) -> Page:
        """Re-sort and/or turn the page. A new sort order clears the selection."""
        if sort_field is not None and sort_field not in PROJECT_SORT_FIELDS:
            raise ValueError(f"Unknown project sort field: {sort_field!r}")
        if page is not None and page < 1:
            raise ValueError(f"Page numbers start at 1, got {page}")

        if sort_field is not None and sort_field != self.sort_field:
            self.sort_field = sort_field
            self.page_number = 1
            self.selection.clear()
        if page is not None:
            self.page_number = page
        return self.render()

    def reload(self, projects: Sequence[Project]) -> Page:
        self._projects = list(projects)
        self.selection.clear()
        self.page_number = 1
        return self.render()


class WorkspaceListView(SelectableList):
    """Workspaces that still have sessions, on a single page."""

    def __init__(self, context: str = "workspaces", workspaces: Sequence[Workspace] = ()):
        super().__init__(context)
        self._workspaces = list(workspaces)

    def render(self) -> Page:
        items = active_workspaces(self._workspaces)
        self._last_page = Page(
            items=items,
            total_filtered=len(items),
            total_pages=1 if items else 0,
            page=1,
            filtered_ids=tuple(w.id for w in items),
        )
        return self._last_page

    def reload(self, workspaces: Sequence[Workspace]) -> Page:
        self._workspaces = list(workspaces)
        self.selection.clear()
        return self.render()
