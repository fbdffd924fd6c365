"""
Timers built on top of a host scheduler.

SmartTimer is a timer that knows its own schedule (whether it's pending,
when it fires next, and at what period). Waiter polls a condition with a
SmartTimer until the condition holds or a timeout elapses.
"""

import logging
from typing import Any, Callable, Optional

from .clock import Clock, Duration
from .errors import ConfigurationError, TimerStateError
from .host import HostScheduler, TimerHandle

logger = logging.getLogger(__name__)


class SmartTimer:
    """One-shot or repeating timer that exposes its own schedule.

    Subclasses implement :meth:`do_run`, or pass a ``callback``.

    Args:
        scheduler: Host scheduler that fires the timer
        clock: Time source; defaults to the scheduler's clock
        callback: Called each time the timer fires
    """

    def __init__(
        self,
        scheduler: HostScheduler,
        clock: Optional[Clock] = None,
        callback: Optional[Callable[[], Any]] = None,
    ):
        self.scheduler = scheduler
        self.clock = clock or scheduler.clock
        self._callback = callback
        self._handle: Optional[TimerHandle] = None
        self._next_firing_time = 0.0
        self._period_millis = 0.0

    def schedule(self, delay_millis: float) -> None:
        """Fire once, after ``delay_millis``. Replaces any pending schedule."""
        self.cancel()
        self._arm(self.clock.now() + delay_millis)

    def schedule_repeating(self, period_millis: float, initial_delay_millis: Optional[float] = None) -> None:
        """Fire every ``period_millis``, the first time after ``initial_delay_millis``.

        Raises:
            ConfigurationError: If the period isn't positive
        """
        if period_millis <= 0:
            raise ConfigurationError(f"period_millis must be positive, got {period_millis}")
        if initial_delay_millis is None:
            initial_delay_millis = period_millis
        self.cancel()
        self._period_millis = period_millis
        self._arm(self.clock.now() + initial_delay_millis)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._next_firing_time = 0.0
        self._period_millis = 0.0

    def _arm(self, firing_time: float) -> None:
        self._next_firing_time = firing_time
        delay = max(firing_time - self.clock.now(), 0.0)
        self._handle = self.scheduler.schedule_timer(self._fire, delay)

    def _fire(self) -> None:
        if self._period_millis > 0:
            # measured from the previous firing time so the period doesn't drift
            self._arm(self._next_firing_time + self._period_millis)
        else:
            self._handle = None
            self._next_firing_time = 0.0
        self.do_run()

    def do_run(self) -> None:
        if self._callback is None:
            raise NotImplementedError(
                f"{type(self).__name__} must override do_run() or be given a callback"
            )
        self._callback()

    @property
    def is_scheduled(self) -> bool:
        return self._handle is not None and self._handle.active

    @property
    def is_repeating(self) -> bool:
        return self.is_scheduled and self._period_millis > 0

    @property
    def next_firing_time(self) -> float:
        """Clock reading at which the timer fires next, or 0.0 if not scheduled."""
        return self._next_firing_time if self.is_scheduled else 0.0

    @property
    def period_millis(self) -> float:
        """Period of a repeating timer, or 0 for a one-shot or idle timer."""
        return self._period_millis if self.is_scheduled else 0.0


class Waiter:
    """Polls a condition until it holds or a timeout elapses.

    Exactly one of ``on_ready`` / ``on_timeout`` is called, once.

    Args:
        condition: Zero-arg predicate to poll
        scheduler: Host scheduler that drives the polling
        clock: Time source; defaults to the scheduler's clock
        poll_millis: Interval between checks
        timeout_millis: Give up after this long (None waits forever)
        on_ready: Called when the condition holds
        on_timeout: Called when the timeout elapses first
    """

    def __init__(
        self,
        condition: Callable[[], bool],
        scheduler: HostScheduler,
        clock: Optional[Clock] = None,
        poll_millis: float = 50.0,
        timeout_millis: Optional[float] = 5000.0,
        on_ready: Optional[Callable[[], Any]] = None,
        on_timeout: Optional[Callable[[], Any]] = None,
    ):
        if poll_millis <= 0:
            raise ConfigurationError(f"poll_millis must be positive, got {poll_millis}")
        if timeout_millis is not None and timeout_millis < 0:
            raise ConfigurationError(f"timeout_millis must be >= 0, got {timeout_millis}")
        self.condition = condition
        self.clock = clock or scheduler.clock
        self.poll_millis = poll_millis
        self.timeout_millis = timeout_millis
        self.on_ready = on_ready
        self.on_timeout = on_timeout
        self._timer = SmartTimer(scheduler, clock=self.clock, callback=self._poll)
        self._duration: Optional[Duration] = None
        self.result: Optional[bool] = None
        self.polls = 0

    def start(self) -> "Waiter":
        """Check the condition now, then keep polling until done.

        Raises:
            TimerStateError: If the waiter was already started
        """
        if self._duration is not None:
            raise TimerStateError("Waiter already started")
        self._duration = Duration(self.clock)
        if not self._check():
            self._timer.schedule_repeating(self.poll_millis)
        return self

    def cancel(self) -> None:
        self._timer.cancel()

    @property
    def is_waiting(self) -> bool:
        return self._timer.is_scheduled

    @property
    def elapsed_millis(self) -> float:
        return self._duration.elapsed_millis() if self._duration else 0.0

    def _poll(self) -> None:
        self._check()

    def _check(self) -> bool:
        self.polls += 1
        if self.condition():
            self._finish(True)
            return True
        if self.timeout_millis is not None and self.elapsed_millis >= self.timeout_millis:
            self._finish(False)
            return True
        return False

    def _finish(self, ready: bool) -> None:
        self._timer.cancel()
        self.result = ready
        logger.debug(f"Waiter finished after {self.polls} polls (ready={ready})")
        callback = self.on_ready if ready else self.on_timeout
        if callback is not None:
            callback()
