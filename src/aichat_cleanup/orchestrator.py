"""Sequential batch deletion with progress reporting.

Items are deleted one at a time, in the order given. A failing item is
logged and counted, never fatal: the batch always runs to the end and
reports a Summary. There is no cancellation once a batch has started.
"""

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, Union

from .events import BatchFinished, DeleteProgress, EventBus, SnapshotInvalidated
from .selection import SelectionManager

logger = logging.getLogger(__name__)

DeleteOne = Callable[[str], Union[Any, Awaitable[Any]]]
LabelFor = Callable[[str], str | None]

FALLBACK_LABEL_LEN = 8


class DeleteState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class BatchInProgressError(RuntimeError):
    """A delete was requested while another one is still running."""


@dataclass(frozen=True)
class Summary:
    succeeded: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    def message(self) -> str:
        return f"Deleted {self.succeeded}, failed {self.failed}"


class BatchDeleteOrchestrator:
    """Drives a per-item delete operation over a list of targets."""

    def __init__(self, events: EventBus | None = None, yield_delay: float = 0.0):
        self.events = events or EventBus()
        self.yield_delay = yield_delay
        self.state = DeleteState.IDLE
        self.progress: DeleteProgress | None = None

    @property
    def running(self) -> bool:
        return self.state is DeleteState.RUNNING

    def _start(self) -> None:
        if self.running:
            raise BatchInProgressError("A delete is already running")
        self.state = DeleteState.RUNNING
        self.progress = None

    def _finish(self) -> None:
        self.state = DeleteState.IDLE
        self.progress = None

    async def run_batch(
        self,
        targets: Sequence[str],
        delete_one: DeleteOne,
        label_for: LabelFor | None = None,
        selection: SelectionManager | None = None,
    ) -> Summary:
        """Delete every target in order and return the tally.

        ``label_for`` resolves a display label from the snapshot taken before
        the batch; unknown targets fall back to a truncated identifier.
        """
        targets = list(targets)
        self._start()
        succeeded = failed = 0
        try:
            for index, target in enumerate(targets):
                label = _resolve_label(target, label_for)
                self.progress = DeleteProgress(
                    current=index + 1, total=len(targets), current_label=label
                )
                self.events.emit(self.progress)

                try:
                    await _call(delete_one, target)
                    succeeded += 1
                    logger.debug("Deleted %s (%d/%d)", label, index + 1, len(targets))
                except Exception as e:
                    failed += 1
                    logger.error("Failed to delete %s: %s", label, e)

                # Let observers render this item's progress before the next one.
                await asyncio.sleep(self.yield_delay)
        finally:
            if selection is not None:
                selection.clear()
            self._finish()

        summary = Summary(succeeded=succeeded, failed=failed)
        logger.info("Batch delete finished: %s", summary.message())
        self.events.emit(BatchFinished(succeeded=succeeded, failed=failed))
        self.events.emit(SnapshotInvalidated(reason="batch delete"))
        return summary

    async def run_single(self, target: str, delete_one: DeleteOne) -> Summary:
        """Delete one target. Errors propagate to the caller.

        Same state machine as a batch, without progress events.
        """
        self._start()
        try:
            await _call(delete_one, target)
        finally:
            self._finish()
            self.events.emit(SnapshotInvalidated(reason="delete"))
        return Summary(succeeded=1, failed=0)


async def _call(delete_one: DeleteOne, target: str) -> Any:
    result = delete_one(target)
    if inspect.isawaitable(result):
        result = await result
    return result


def _resolve_label(target: str, label_for: LabelFor | None) -> str:
    label = None
    if label_for is not None:
        try:
            label = label_for(target)
        except Exception as e:
            logger.warning("Cannot resolve a label for %s: %s", target, e)
    return label or target[:FALLBACK_LABEL_LEN]
