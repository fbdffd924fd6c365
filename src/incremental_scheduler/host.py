"""
Host schedulers: the run-loops that drive incremental commands.

A host scheduler repeatedly invokes registered *repeating commands* (zero-arg
callables, or objects with an ``execute()`` method, returning ``True`` to be
invoked again and ``False`` to be deregistered) and fires one-shot timers.
Everything happens on the caller's thread; two commands are never invoked at
the same time.

Two hosts are bundled:
- StubScheduler: does nothing on its own; tests step it explicitly.
- RunLoop: a blocking single-threaded loop that runs until no work is left.
"""

import heapq
import itertools
import logging
import time
from typing import Any, Callable, Optional, Protocol, Union

from .clock import DEFAULT_CLOCK, Clock

logger = logging.getLogger(__name__)

RepeatingCommand = Union[Callable[[], bool], Any]


def invoke_repeating(command: RepeatingCommand) -> bool:
    """Invoke a repeating command, accepting objects with ``execute()`` or plain callables."""
    execute = getattr(command, "execute", None)
    if execute is not None and callable(execute):
        return bool(execute())
    return bool(command())


def describe(command: Any) -> str:
    name = getattr(command, "__qualname__", None) or type(command).__name__
    return str(name)


class TimerHandle:
    """A pending one-shot timer callback."""

    def __init__(self, callback: Callable[[], None], deadline: float):
        self.callback = callback
        self.deadline = deadline
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        return f"TimerHandle(deadline={self.deadline}, active={self.active})"


class HostScheduler(Protocol):
    """The callback contract consumed by the incremental primitives."""

    clock: Clock

    def schedule_repeating(self, command: RepeatingCommand) -> None:
        ...

    def schedule_timer(self, callback: Callable[[], None], delay_millis: float) -> TimerHandle:
        ...


class _BaseScheduler:
    """Bookkeeping shared by the bundled host schedulers."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or DEFAULT_CLOCK
        self._repeating: list[RepeatingCommand] = []
        self._timers: list[tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()

    # ------------------------------------------------------------------
    # HostScheduler API
    # ------------------------------------------------------------------
    def schedule_repeating(self, command: RepeatingCommand) -> None:
        logger.debug(f"Registering repeating command {describe(command)}")
        self._repeating.append(command)

    def schedule_timer(self, callback: Callable[[], None], delay_millis: float) -> TimerHandle:
        if delay_millis < 0:
            delay_millis = 0
        handle = TimerHandle(callback, self.clock.now() + delay_millis)
        heapq.heappush(self._timers, (handle.deadline, next(self._sequence), handle))
        return handle

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------
    @property
    def repeating_commands(self) -> list[RepeatingCommand]:
        """Snapshot of the currently registered repeating commands."""
        return list(self._repeating)

    @property
    def pending_timers(self) -> list[TimerHandle]:
        return [handle for _, _, handle in sorted(self._timers) if handle.active]

    def next_timer_deadline(self) -> Optional[float]:
        self._discard_inactive_timers()
        if not self._timers:
            return None
        return self._timers[0][0]

    @property
    def has_pending_work(self) -> bool:
        return bool(self._repeating) or self.next_timer_deadline() is not None

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def _discard_inactive_timers(self) -> None:
        while self._timers and not self._timers[0][2].active:
            heapq.heappop(self._timers)

    def fire_timers(self) -> int:
        """Fire every timer whose deadline has passed.

        Timers scheduled by the fired callbacks are not fired in the same pass.

        Returns:
            Number of timers fired
        """
        now = self.clock.now()
        due = []
        while self._timers and self._timers[0][0] <= now:
            _, _, handle = heapq.heappop(self._timers)
            if handle.active:
                due.append(handle)
        for handle in due:
            if not handle.active:
                # cancelled by an earlier callback in this pass
                continue
            handle.fired = True
            self._run_timer(handle)
        return len(due)

    def _run_timer(self, handle: TimerHandle) -> None:
        handle.callback()

    def _run_repeating(self, command: RepeatingCommand) -> bool:
        return invoke_repeating(command)

    def execute_repeating_commands(self) -> bool:
        """Invoke each registered repeating command once.

        Commands that return False (or raise) are deregistered.

        Returns:
            True if any repeating command is still registered
        """
        for command in list(self._repeating):
            try:
                keep = self._run_repeating(command)
            except BaseException:
                self._deregister(command)
                raise
            if not keep:
                self._deregister(command)
        return bool(self._repeating)

    def _deregister(self, command: RepeatingCommand) -> None:
        for i, registered in enumerate(self._repeating):
            if registered is command:
                del self._repeating[i]
                logger.debug(f"Deregistered repeating command {describe(command)}")
                return


class StubScheduler(_BaseScheduler):
    """Host scheduler that never runs anything on its own.

    Callers drive it with :meth:`execute_repeating_commands` and
    :meth:`fire_timers`, which makes it the host of choice for tests.

    Example:
        scheduler = StubScheduler(ManualClock())
        queue = IncrementalTaskQueue(scheduler)
        queue.add(lambda: print("hello"))
        scheduler.execute_repeating_commands()
    """


class RunLoop(_BaseScheduler):
    """Blocking single-threaded run-loop.

    Each pass fires the due timers and then invokes every registered repeating
    command once, round-robin. When only timers remain, the loop sleeps until
    the earliest deadline.

    Args:
        clock: Time source used for timer deadlines
        sleep: Function taking seconds, used to wait for the next timer
        isolate_failures: Log and deregister callbacks that raise, instead of
            propagating the error to the caller of ``run_once``
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        sleep: Optional[Callable[[float], None]] = None,
        isolate_failures: bool = False,
    ):
        super().__init__(clock)
        self.sleep = sleep or time.sleep
        self.isolate_failures = isolate_failures
        self.passes = 0

    def _run_timer(self, handle: TimerHandle) -> None:
        if not self.isolate_failures:
            handle.callback()
            return
        try:
            handle.callback()
        except Exception:
            logger.exception(f"Timer callback {describe(handle.callback)} failed")

    def _run_repeating(self, command: RepeatingCommand) -> bool:
        if not self.isolate_failures:
            return invoke_repeating(command)
        try:
            return invoke_repeating(command)
        except Exception:
            logger.exception(f"Repeating command {describe(command)} failed; deregistering it")
            return False

    def run_once(self) -> bool:
        """Run a single pass of the loop.

        Returns:
            True if there is still work pending afterwards
        """
        self.passes += 1
        self.fire_timers()
        if self._repeating:
            self.execute_repeating_commands()
        return self.has_pending_work

    def run_until_idle(self, max_passes: Optional[int] = None) -> int:
        """Run passes until no repeating commands or timers remain.

        Args:
            max_passes: Optional upper bound on the number of passes

        Returns:
            Number of passes executed
        """
        executed = 0
        while self.has_pending_work:
            if max_passes is not None and executed >= max_passes:
                logger.debug(f"RunLoop stopping after {executed} passes with work pending")
                break
            if not self._repeating:
                deadline = self.next_timer_deadline()
                wait = deadline - self.clock.now() if deadline is not None else 0
                if wait > 0:
                    self.sleep(wait / 1000.0)
            self.run_once()
            executed += 1
        return executed
