"""
Incremental jobs: a sequence of multi-step tasks run as one incremental loop.

During each increment the job performs as many task steps as fit in the
budget and resumes with the next step on the following increment. Processing
a job is similar to draining a chain of iterators.
"""

import logging
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence

from .clock import Clock
from .errors import ConfigurationError, JobNotInitializedError, TaskExhaustedError
from .loop import IncrementalLoop, LoopListener

logger = logging.getLogger(__name__)


class Task(Protocol):
    """A unit of work that can be split into one or more sequential steps."""

    def has_next(self) -> bool:
        """Return True if there's more work to do."""
        ...

    def next(self) -> None:
        """Perform the next step."""
        ...


class SingletonTask:
    """A task with exactly one step.

    Subclasses override :meth:`execute`, or pass the step as ``fn``.
    """

    def __init__(self, fn: Optional[Callable[[], Any]] = None):
        self._fn = fn
        self._executed = False

    def has_next(self) -> bool:
        return not self._executed

    def next(self) -> None:
        self.execute()
        self._executed = True

    def execute(self) -> None:
        if self._fn is None:
            raise NotImplementedError(
                f"{type(self).__name__} must override execute() or be given a callable"
            )
        self._fn()

    @property
    def executed(self) -> bool:
        return self._executed


_UNKNOWN = object()
_EXHAUSTED = object()


class IteratorTask:
    """A task that processes the elements of an iterable, one per step.

    Subclasses override :meth:`accept`, or pass a ``consumer`` callable.
    """

    def __init__(self, iterable: Iterable[Any], consumer: Optional[Callable[[Any], Any]] = None):
        self._it = iter(iterable)
        self._consumer = consumer
        self._peeked: Any = _UNKNOWN

    def has_next(self) -> bool:
        if self._peeked is _UNKNOWN:
            self._peeked = next(self._it, _EXHAUSTED)
        return self._peeked is not _EXHAUSTED

    def next(self) -> None:
        if not self.has_next():
            raise TaskExhaustedError(f"{type(self).__name__} has no more elements")
        item = self._peeked
        self._peeked = _UNKNOWN
        self.accept(item)

    def accept(self, item: Any) -> None:
        if self._consumer is None:
            raise NotImplementedError(
                f"{type(self).__name__} must override accept() or be given a consumer"
            )
        self._consumer(item)


class JobState(Enum):
    """Readiness of the job's next step."""

    NOT_READY = "not_ready"  # next step unknown, or already executed
    READY = "ready"  # current task has a pending step
    DONE = "done"  # all tasks exhausted


def advance_tasks(tasks: Sequence[Task], cursor: int) -> tuple[JobState, int]:
    """Find the first task at or after ``cursor`` that has pending work.

    Each task's ``has_next()`` is called at most once.

    Returns:
        ``(READY, index)`` of that task, or ``(DONE, index)`` of the last task
        if none has work left
    """
    while cursor < len(tasks):
        if tasks[cursor].has_next():
            return JobState.READY, cursor
        cursor += 1
    return JobState.DONE, max(len(tasks) - 1, 0)


class IncrementalJob(IncrementalLoop):
    """Runs a sequence of tasks as a single incremental command.

    Tasks are consumed in order; tasks without any work are skipped without
    ever having ``next()`` called. Subclasses may override :meth:`job_started`
    and :meth:`job_finished`.

    The tasks may be supplied to the constructor, or later via
    :meth:`init_tasks` (which must happen before the first ``execute()``).

    Example:
        job = IncrementalJob(
            [SingletonTask(load), IteratorTask(rows, process), SingletonTask(report)],
            increment_millis=20,
        )
        job.start(scheduler)
    """

    def __init__(
        self,
        tasks: Optional[Iterable[Task]] = None,
        increment_millis: Optional[float] = None,
        clock: Optional[Clock] = None,
        listener: Optional[LoopListener] = None,
    ):
        super().__init__(increment_millis, clock=clock, listener=listener)
        self._tasks: Optional[tuple[Task, ...]] = None
        self._cursor = 0
        self._state = JobState.NOT_READY
        if tasks is not None:
            self.init_tasks(tasks)

    def init_tasks(self, tasks: Iterable[Task]) -> None:
        """Set the task sequence.

        Raises:
            ConfigurationError: If the job has already started
        """
        if self.is_started:
            raise ConfigurationError("Cannot replace the tasks of a job that has already started")
        self._tasks = tuple(tasks)
        self._cursor = 0
        self._state = JobState.NOT_READY

    def _check_init(self) -> tuple[Task, ...]:
        if self._tasks is None:
            raise JobNotInitializedError()
        return self._tasks

    # ------------------------------------------------------------------
    # Loop implementation
    # ------------------------------------------------------------------
    def loop_started(self) -> None:
        self._check_init()
        self.job_started()

    def loop_finished(self, interrupted: bool) -> None:
        self.job_finished(interrupted)

    def job_started(self) -> None:
        """Called when the job starts."""

    def job_finished(self, interrupted: bool) -> None:
        """Called after the job terminated.

        Args:
            interrupted: True if the job was stopped before finishing all tasks
        """

    def has_more_work(self) -> bool:
        if self._state is JobState.DONE:
            return False
        if self._state is JobState.READY:
            return True
        return self._advance()

    def _advance(self) -> bool:
        tasks = self._check_init()
        previous = self._cursor
        self._state, self._cursor = advance_tasks(tasks, self._cursor)
        if self._cursor != previous:
            logger.debug(f"{type(self).__name__} advanced from task {previous} to task {self._cursor}")
        return self._state is JobState.READY

    def loop_body(self, i: int) -> None:
        if self.has_more_work():
            self._state = JobState.NOT_READY
            self._check_init()[self._cursor].next()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> JobState:
        return self._state

    @property
    def current_task(self) -> Optional[Task]:
        if not self._tasks:
            return None
        return self._tasks[self._cursor]

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self._check_init()
