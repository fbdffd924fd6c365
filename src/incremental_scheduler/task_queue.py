"""
FIFO queue of atomic commands, executed one per host-scheduler invocation.

The queue registers itself with its host scheduler whenever work is added to
an idle queue, and deregisters once it is drained. A failing command is
isolated: the error is routed to :meth:`IncrementalTaskQueue.handle_failed_task`,
which decides whether the queue keeps going.
"""

import logging
from collections import deque
from typing import Any, Callable, Protocol, Union

from .host import HostScheduler, describe

logger = logging.getLogger(__name__)


class Command(Protocol):
    """An atomic unit of work."""

    def execute(self) -> None:
        ...


QueueItem = Union[Command, Callable[[], Any]]


def run_command(command: QueueItem) -> None:
    """Run a command object, or a plain zero-arg callable."""
    execute = getattr(command, "execute", None)
    if execute is not None and callable(execute):
        execute()
    else:
        command()


class IncrementalTaskQueue:
    """Executes queued commands one at a time, in FIFO order.

    Args:
        scheduler: Host scheduler the queue registers itself with

    Example:
        queue = IncrementalTaskQueue(scheduler)
        queue.add(save_draft).add(refresh_sidebar)
    """

    def __init__(self, scheduler: HostScheduler):
        self.scheduler = scheduler
        self._queue: deque[QueueItem] = deque()
        self._running = False

    def execute(self) -> bool:
        """Execute the next queued command.

        Returns:
            True if the queue should be invoked again
        """
        if not self._queue:
            self._running = False
            return False

        command = self._queue.popleft()
        try:
            try:
                run_command(command)
            except Exception as error:
                keep_going = self.handle_failed_task(command, error)
            else:
                keep_going = bool(self._queue)
        except BaseException:
            # the host drops a command that raises, so the next add() must re-register
            self._running = False
            raise

        if not keep_going:
            self._running = False
            logger.debug(f"Task queue idle with {len(self._queue)} commands remaining")
        return keep_going

    def handle_failed_task(self, command: QueueItem, error: Exception) -> bool:
        """Decide what happens after a command raised.

        The default implementation logs the error and keeps going as long as
        there are more commands in the queue.

        Args:
            command: The command that failed
            error: The exception it raised

        Returns:
            True to continue executing the queue, False to stop it
        """
        logger.error(f"Queued command {describe(command)} failed: {error}", exc_info=error)
        return bool(self._queue)

    def add(self, command: QueueItem) -> "IncrementalTaskQueue":
        """Enqueue a command, scheduling the queue if it isn't already running."""
        self._queue.append(command)
        self.start_if_not_running()
        return self

    def start_if_not_running(self) -> bool:
        """Register with the host scheduler unless already running or empty.

        Returns:
            True if this call scheduled the queue
        """
        if self._running or not self._queue:
            return False
        self.scheduler.schedule_repeating(self)
        self._running = True
        logger.debug(f"Task queue scheduled with {len(self._queue)} commands")
        return True

    def examine_tasks(self) -> list[QueueItem]:
        """Snapshot of the queued commands, in execution order."""
        return list(self._queue)

    def size(self) -> int:
        return len(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def is_running(self) -> bool:
        """True while the queue is registered with its host scheduler."""
        return self._running
