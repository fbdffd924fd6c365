"""
Time-sliced loops for cooperative host schedulers.

An IncrementalLoop behaves like::

    loop_started()
    i = 0
    while has_more_work():
        loop_body(i)
        i += 1
    loop_finished(False)

except that the body is preempted whenever the current increment runs longer
than its budget, and resumed the next time the host scheduler invokes
``execute()``.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from .clock import DEFAULT_CLOCK, Clock, Duration
from .errors import ConfigurationError
from .host import HostScheduler

logger = logging.getLogger(__name__)

DEFAULT_INCREMENT_MILLIS = 100.0


@dataclass
class LoopListener:
    """Callbacks notified of loop lifecycle events.

    An alternative to overriding the hook methods of IncrementalLoop. Every
    field is optional; missing callbacks are skipped.
    """

    on_loop_started: Optional[Callable[[], None]] = None
    on_loop_finished: Optional[Callable[[bool], None]] = None
    on_increment_started: Optional[Callable[[], None]] = None
    on_increment_finished: Optional[Callable[[float], None]] = None


@dataclass(frozen=True)
class IncrementStats:
    """Summary of the increments executed by a loop (all values in millis)."""

    count: int
    total_millis: float
    mean_millis: Optional[float]
    min_millis: Optional[float]
    max_millis: Optional[float]

    @classmethod
    def from_durations(cls, durations: list[float]) -> "IncrementStats":
        if not durations:
            return cls(count=0, total_millis=0.0, mean_millis=None, min_millis=None, max_millis=None)
        total = sum(durations)
        return cls(
            count=len(durations),
            total_millis=total,
            mean_millis=total / len(durations),
            min_millis=min(durations),
            max_millis=max(durations),
        )

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "total_millis": self.total_millis,
            "mean_millis": self.mean_millis,
            "min_millis": self.min_millis,
            "max_millis": self.max_millis,
        }


class IncrementalLoop(ABC):
    """Base class for loops executed as a series of bounded increments.

    Subclasses implement :meth:`has_more_work` and :meth:`loop_body`, and may
    override the lifecycle hooks :meth:`loop_started`, :meth:`loop_finished`,
    :meth:`increment_started` and :meth:`increment_finished` (or supply a
    LoopListener instead).

    Exceptions raised by the body or the loop condition are not caught; they
    propagate to the host scheduler.

    Args:
        increment_millis: The running increment is preempted once it has
            taken longer than this, and the loop resumes on the next call
        clock: Time source for measuring increments
        listener: Optional lifecycle callbacks
    """

    def __init__(
        self,
        increment_millis: Optional[float] = None,
        clock: Optional[Clock] = None,
        listener: Optional[LoopListener] = None,
    ):
        if increment_millis is None:
            increment_millis = DEFAULT_INCREMENT_MILLIS
        if increment_millis < 0:
            raise ConfigurationError(f"increment_millis must be >= 0, got {increment_millis}")
        self.increment_millis = increment_millis
        self.clock = clock or DEFAULT_CLOCK
        self.listener = listener

        self._count = 0
        self._increment_durations: list[float] = []
        self._started = False
        self._stopped = False
        self._finish_reported = False

    # ------------------------------------------------------------------
    # Repeating command
    # ------------------------------------------------------------------
    def execute(self) -> bool:
        """Run one increment of the loop.

        Returns:
            True if the loop should be invoked again, False when it is done
        """
        if self._stopped:
            # interrupted externally
            if self._started and not self._finish_reported:
                self._fire_loop_finished(True)
            return False
        if self._finish_reported:
            return False
        if not self._started:
            self._fire_loop_started()
            self._started = True

        self._fire_increment_started()
        duration = Duration(self.clock)
        while self.has_more_work():
            # the body runs before the time check so that every increment makes progress
            self.loop_body(self.compute_loop_variable())
            self._count += 1
            if duration.elapsed_millis() > self.increment_millis:
                self._finish_increment(duration)
                if self.has_more_work():
                    return True
                self._fire_loop_finished(False)
                return False

        # ran out of work before running out of time
        self._finish_increment(duration)
        self._fire_loop_finished(False)
        return False

    def start(self, scheduler: HostScheduler) -> "IncrementalLoop":
        """Register this loop with a host scheduler."""
        scheduler.schedule_repeating(self)
        return self

    def stop(self) -> None:
        """Cancel all future increments, even if the loop isn't finished.

        Takes effect the next time :meth:`execute` is invoked.
        """
        if not self._stopped:
            logger.debug(f"{type(self).__name__} stop requested after {self._count} iterations")
        self._stopped = True

    # ------------------------------------------------------------------
    # Subclass API
    # ------------------------------------------------------------------
    @abstractmethod
    def has_more_work(self) -> bool:
        """The loop condition: the loop keeps running while this is True."""

    @abstractmethod
    def loop_body(self, i: int) -> None:
        """Execute the next iteration of the loop.

        Args:
            i: The value of the loop variable on this iteration
        """

    def compute_loop_variable(self) -> int:
        """Map the ordinal of the current iteration to the argument of :meth:`loop_body`."""
        return self._count

    def loop_started(self) -> None:
        """Called once, before the first iteration."""

    def loop_finished(self, interrupted: bool) -> None:
        """Called once, after the loop terminated.

        Args:
            interrupted: True if the loop was stopped before finishing its work
        """

    def increment_started(self) -> None:
        """Called at the start of every increment."""

    def increment_finished(self, duration_millis: float) -> None:
        """Called at the end of every increment, whether it ran out of time or out of work."""

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def is_started(self) -> bool:
        """True if :meth:`execute` started the loop."""
        return self._started

    @property
    def is_stopped(self) -> bool:
        """True if :meth:`stop` was called."""
        return self._stopped

    @property
    def is_finished(self) -> bool:
        """True if there is no more work to do.

        A loop that was stopped early is not finished; it still has work left.
        """
        return not self.has_more_work()

    @property
    def iteration_count(self) -> int:
        return self._count

    @property
    def increment_count(self) -> int:
        return len(self._increment_durations)

    @property
    def increment_durations(self) -> list[float]:
        """Durations of the executed increments, in chronological order."""
        return list(self._increment_durations)

    def summarize_increments(self) -> IncrementStats:
        return IncrementStats.from_durations(self._increment_durations)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _finish_increment(self, duration: Duration) -> None:
        elapsed = duration.elapsed_millis()
        self._increment_durations.append(elapsed)
        self.increment_finished(elapsed)
        if self.listener and self.listener.on_increment_finished:
            self.listener.on_increment_finished(elapsed)

    def _fire_loop_started(self) -> None:
        logger.debug(f"{type(self).__name__} started (increment budget {self.increment_millis} ms)")
        self.loop_started()
        if self.listener and self.listener.on_loop_started:
            self.listener.on_loop_started()

    def _fire_loop_finished(self, interrupted: bool) -> None:
        self._finish_reported = True
        logger.debug(
            f"{type(self).__name__} finished after {self._count} iterations in "
            f"{self.increment_count} increments (interrupted={interrupted})"
        )
        self.loop_finished(interrupted)
        if self.listener and self.listener.on_loop_finished:
            self.listener.on_loop_finished(interrupted)

    def _fire_increment_started(self) -> None:
        self.increment_started()
        if self.listener and self.listener.on_increment_started:
            self.listener.on_increment_started()
