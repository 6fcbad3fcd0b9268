"""Events published while deleting, and the bus that carries them.

Whatever owns presentation subscribes to the bus; nothing polls shared state.
"""

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeleteProgress:
    """Published before each batch item starts."""

    current: int  # 1-based
    total: int
    current_label: str


@dataclass(frozen=True)
class BatchFinished:
    succeeded: int
    failed: int


@dataclass(frozen=True)
class SnapshotInvalidated:
    """The loaded snapshot no longer reflects storage and must be reloaded."""

    reason: str = ""


Event = DeleteProgress | BatchFinished | SnapshotInvalidated
Listener = Callable[[Event], None]


class EventBus:
    """Synchronous fan-out to subscribed listeners, in subscription order."""

    def __init__(self):
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: Event) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # An observer must not break a running delete.
                logger.exception("Event listener %r failed on %r", listener, event)
