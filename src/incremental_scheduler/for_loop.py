"""Indexed ``for``-loop semantics on top of IncrementalLoop."""

from typing import Callable, Optional

from .clock import Clock
from .errors import ConfigurationError
from .loop import IncrementalLoop, LoopListener


class IncrementalForLoop(IncrementalLoop):
    """Incremental equivalent of ``for i in range(start, limit, step)``.

    Like ``range``, a single positional argument is taken as the limit, with
    ``start=0`` and ``step=1``.

    The body can be given either by overriding :meth:`loop_body` or by passing
    a ``body`` callable.

    Example:
        values = []
        loop = IncrementalForLoop(5, -5, -2, increment_millis=1000, body=values.append)
        while loop.execute():
            pass
        assert values == [5, 3, 1, -1, -3]
    """

    def __init__(
        self,
        start: int,
        limit: Optional[int] = None,
        step: int = 1,
        increment_millis: Optional[float] = None,
        clock: Optional[Clock] = None,
        listener: Optional[LoopListener] = None,
        body: Optional[Callable[[int], None]] = None,
    ):
        if limit is None:
            start, limit = 0, start
        if step == 0:
            raise ConfigurationError("IncrementalForLoop step must not be zero")
        super().__init__(increment_millis, clock=clock, listener=listener)
        self.start_value = start
        self.limit = limit
        self.step = step
        self._body = body

    @property
    def current(self) -> int:
        """Value of the loop variable for the next iteration."""
        return self.start_value + self.iteration_count * self.step

    def has_more_work(self) -> bool:
        current = self.current
        if self.step > 0:
            return current < self.limit
        if self.step < 0:
            return current > self.limit
        return False

    def compute_loop_variable(self) -> int:
        return self.current

    def loop_body(self, i: int) -> None:
        if self._body is None:
            raise NotImplementedError(
                f"{type(self).__name__} must override loop_body() or be given a body callable"
            )
        self._body(i)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(start={self.start_value}, limit={self.limit}, "
            f"step={self.step}, iterations={self.iteration_count})"
        )
