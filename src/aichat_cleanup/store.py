"""Abstract base class for the storage backend the cleanup core talks to."""

from abc import ABC, abstractmethod

from .core import AnalysisResult, TrashItem


class StoreError(Exception):
    """A storage operation failed; the message is shown to the user as-is."""


class SessionStore(ABC):
    """Request/response operations consumed by the service layer.

    Every method may raise StoreError. Deleting an identifier that is no
    longer present is not an error: it simply affects nothing.
    """

    name: str  # "cursor"

    @abstractmethod
    def get_snapshot(self) -> AnalysisResult:
        """Scan storage and return a fresh snapshot."""
        ...

    @abstractmethod
    def get_app_version(self) -> str:
        ...

    @abstractmethod
    def list_trash(self) -> list[TrashItem]:
        ...

    @abstractmethod
    def delete_session(self, project_path: str, session_id: str) -> int:
        """Move one session of a project to the trash. Returns rows removed."""
        ...

    @abstractmethod
    def delete_sessions(self, project_path: str, session_ids: list[str]) -> int:
        """Move several sessions of one project to the trash in one call.

        Not guaranteed to be atomic.
        """
        ...

    @abstractmethod
    def delete_project_sessions(self, project_path: str) -> int:
        ...

    @abstractmethod
    def delete_workspace_sessions(self, workspace_id: str) -> int:
        ...

    @abstractmethod
    def clear_trash(self) -> int:
        """Purge every trash item. Returns how many were removed."""
        ...

    @abstractmethod
    def delete_trash_item(self, trash_id: int) -> bool:
        """Purge one trash item. Returns False when it was already gone."""
        ...
