"""Commands that are retried on a fixed delay until they succeed or run out of attempts."""

import logging
from typing import Callable, Optional

from .clock import Clock
from .errors import ConfigurationError, TimerStateError
from .host import HostScheduler
from .timers import SmartTimer

logger = logging.getLogger(__name__)


class RetryableCommand:
    """Runs :meth:`execute_iteration` every ``delay_millis`` until it returns False.

    Gives up after ``max_attempts`` iterations. Subclasses override
    :meth:`execute_iteration`, or pass an ``iteration`` callable.

    An exception raised by an iteration stops the command and propagates to
    the host scheduler.

    Example:
        command = RetryableCommand(5, scheduler, iteration=lambda: not server.is_ready())
        command.start(200)
    """

    def __init__(
        self,
        max_attempts: int,
        scheduler: HostScheduler,
        clock: Optional[Clock] = None,
        iteration: Optional[Callable[[], bool]] = None,
    ):
        if max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self._iteration = iteration
        self._timer = SmartTimer(scheduler, clock=clock, callback=self._attempt)
        self._attempts_remaining = max_attempts
        self._started = False
        self._stopped = False

    def start(self, delay_millis: float) -> None:
        """Schedule the attempts, the first one ``delay_millis`` from now.

        Raises:
            TimerStateError: If the command was already started
            ConfigurationError: If the delay isn't positive
        """
        if self._started:
            raise TimerStateError(f"{type(self).__name__} already started")
        if delay_millis <= 0:
            raise ConfigurationError(f"delay_millis must be positive, got {delay_millis}")
        self._timer.schedule_repeating(delay_millis)
        self._started = True
        logger.debug(f"{type(self).__name__} starting: {self.max_attempts} attempts every {delay_millis} ms")

    def stop(self) -> None:
        self._stopped = True
        self._timer.cancel()

    def execute_iteration(self) -> bool:
        """Make one attempt.

        Returns:
            True if another attempt should be made
        """
        if self._iteration is None:
            raise NotImplementedError(
                f"{type(self).__name__} must override execute_iteration() or be given a callable"
            )
        return bool(self._iteration())

    def _attempt(self) -> None:
        if self._stopped:
            return
        self._attempts_remaining -= 1
        try:
            again = self.execute_iteration()
        except Exception:
            self.stop()
            raise
        if not again:
            self.stop()
        elif self._attempts_remaining <= 0:
            logger.debug(f"{type(self).__name__} gave up after {self.max_attempts} attempts")
            self.stop()

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    @property
    def attempts_remaining(self) -> int:
        return self._attempts_remaining
