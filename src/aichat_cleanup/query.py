"""Filtering, sorting and pagination of session and project lists.

Everything here is a pure function of its inputs: the same collection and
criteria always produce the same page, in the same order.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Sequence, TypeVar

from .core import Project, Session, Workspace

PAGE_SIZE = 20

MODES = ("all", "agent", "chat")
ARCHIVE_STATES = ("all", "active", "archived")
SORT_ORDERS = ("asc", "desc")

# Timestamps are compared as strings; a missing one is "" and sorts first.
_SESSION_SORT_KEYS: dict[str, Callable[[Session], object]] = {
    "files_changed": lambda s: s.files_changed,
    "lines_added": lambda s: s.lines_added,
    "lines_removed": lambda s: s.lines_removed,
    "net_lines": lambda s: s.net_lines,
    "updated_at": lambda s: s.updated_at or "",
    "created_at": lambda s: s.created_at or "",
    "context_usage": lambda s: s.context_usage if s.context_usage is not None else 0.0,
    "name": lambda s: s.name,
}
SORT_FIELDS = tuple(_SESSION_SORT_KEYS)

# Numeric project fields sort largest first, names alphabetically.
_PROJECT_SORT_KEYS: dict[str, tuple[Callable[[Project], object], bool]] = {
    "lines_added": (lambda p: p.lines_added, True),
    "lines_removed": (lambda p: p.lines_removed, True),
    "chat_count": (lambda p: p.chat_count, True),
    "files_changed": (lambda p: p.files_changed, True),
    "name": (lambda p: p.name, False),
}
PROJECT_SORT_FIELDS = tuple(_PROJECT_SORT_KEYS)

T = TypeVar("T")


@dataclass(frozen=True)
class Criteria:
    """Filter, sort and page parameters for one session list render."""

    hide_zero_change: bool = True
    search_term: str = ""
    mode: str = "all"
    archive_state: str = "all"
    sort_field: str = "files_changed"
    sort_order: str = "desc"
    page: int = 1
    page_size: int = PAGE_SIZE

    def __post_init__(self):
        if self.mode not in MODES:
            raise ValueError(f"Unknown mode filter: {self.mode!r}")
        if self.archive_state not in ARCHIVE_STATES:
            raise ValueError(f"Unknown archive filter: {self.archive_state!r}")
        if self.sort_field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field: {self.sort_field!r}")
        if self.sort_order not in SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {self.sort_order!r}")
        if self.page < 1:
            raise ValueError(f"Page numbers start at 1, got {self.page}")
        if self.page_size < 1:
            raise ValueError(f"Page size must be positive, got {self.page_size}")

    def view_key(self) -> tuple:
        """Everything except the page number; a change here redefines the view."""
        return (
            self.hide_zero_change,
            self.search_term,
            self.mode,
            self.archive_state,
            self.sort_field,
            self.sort_order,
            self.page_size,
        )


@dataclass(frozen=True)
class Page:
    """One rendered page plus what is needed to page through the rest."""

    items: list = field(default_factory=list)
    total_filtered: int = 0
    total_pages: int = 0
    page: int = 1
    filtered_ids: tuple[str, ...] = ()

    @property
    def item_ids(self) -> list[str]:
        return [_item_id(i) for i in self.items]


def matches(session: Session, criteria: Criteria) -> bool:
    """True when the session passes every filter in criteria."""
    if criteria.hide_zero_change and not session.has_changes:
        return False

    if criteria.search_term:
        term = criteria.search_term.lower()
        if term not in session.name.lower() and term not in session.subtitle.lower():
            return False

    if criteria.mode != "all" and session.mode != criteria.mode:
        return False

    if criteria.archive_state == "archived" and not session.is_archived:
        return False
    if criteria.archive_state == "active" and session.is_archived:
        return False

    return True


def filter_and_sort(sessions: Sequence[Session], criteria: Criteria) -> list[Session]:
    """Apply the filters, then a stable sort on the chosen field."""
    result = [s for s in sessions if matches(s, criteria)]
    key = _SESSION_SORT_KEYS[criteria.sort_field]
    # sorted() is stable for reverse=True too: ties keep input order.
    return sorted(result, key=key, reverse=criteria.sort_order == "desc")


def paginate(items: Sequence[T], page: int, page_size: int = PAGE_SIZE) -> tuple[list[T], int]:
    """Return the slice for a 1-based page and the total page count."""
    if page < 1:
        raise ValueError(f"Page numbers start at 1, got {page}")
    total_pages = math.ceil(len(items) / page_size)
    start = (page - 1) * page_size
    return list(items[start: start + page_size]), total_pages


def render(sessions: Sequence[Session], criteria: Criteria) -> Page:
    """Produce the filtered, sorted page of sessions described by criteria."""
    ordered = filter_and_sort(sessions, criteria)
    items, total_pages = paginate(ordered, criteria.page, criteria.page_size)
    return Page(
        items=items,
        total_filtered=len(ordered),
        total_pages=total_pages,
        page=criteria.page,
        filtered_ids=tuple(s.id for s in ordered),
    )


def sort_projects(projects: Sequence[Project], sort_field: str = "lines_added") -> list[Project]:
    if sort_field not in _PROJECT_SORT_KEYS:
        raise ValueError(f"Unknown project sort field: {sort_field!r}")
    key, descending = _PROJECT_SORT_KEYS[sort_field]
    return sorted(projects, key=key, reverse=descending)


def render_projects(
    projects: Sequence[Project],
    sort_field: str = "lines_added",
    page: int = 1,
    page_size: int = PAGE_SIZE,
) -> Page:
    """Sorted, paged project list; items are identified by path."""
    ordered = sort_projects(projects, sort_field)
    items, total_pages = paginate(ordered, page, page_size)
    return Page(
        items=items,
        total_filtered=len(ordered),
        total_pages=total_pages,
        page=page,
        filtered_ids=tuple(p.path for p in ordered),
    )


def active_workspaces(workspaces: Sequence[Workspace]) -> list[Workspace]:
    """Workspaces that still have at least one session."""
    return [w for w in workspaces if w.chat_count > 0]


def _item_id(item) -> str:
    if isinstance(item, Project):
        return item.path
    return item.id
