"""Selected-identifier tracking for one list context."""

from typing import Iterable


class SelectionManager:
    """Set of selected ids for a single collection.

    One instance per context: a project's sessions, a workspace's sessions,
    or the project/workspace list itself. Callers clear it whenever the view
    it was made against changes.
    """

    def __init__(self, context: str = ""):
        self.context = context
        self._selected: set[str] = set()

    @property
    def selected(self) -> frozenset[str]:
        return frozenset(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._selected

    def __bool__(self) -> bool:
        return bool(self._selected)

    def toggle(self, item_id: str) -> None:
        if item_id in self._selected:
            self._selected.discard(item_id)
        else:
            self._selected.add(item_id)

    def select_all(self, visible_ids: Iterable[str]) -> None:
        """Replace the selection with exactly the ids on the current page."""
        self._selected = set(visible_ids)

    def select_all_filtered(self, all_filtered_ids: Iterable[str]) -> None:
        """Replace the selection with every id passing the filters, all pages."""
        self._selected = set(all_filtered_ids)

    def clear(self) -> None:
        self._selected.clear()

    def is_page_fully_selected(self, page_ids: Iterable[str]) -> bool:
        page_ids = list(page_ids)
        return bool(page_ids) and all(i in self._selected for i in page_ids)

    def ordered(self, ids_in_order: Iterable[str]) -> list[str]:
        """Selected ids in the order they appear in ``ids_in_order``."""
        return [i for i in ids_in_order if i in self._selected]

    def __repr__(self) -> str:
        return f"SelectionManager({self.context!r}, {sorted(self._selected)!r})"
