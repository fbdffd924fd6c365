"""Tests for the IncrementalLoop primitive."""

from collections import Counter

import pytest

from incremental_scheduler import (
    ConfigurationError,
    IncrementalLoop,
    IncrementStats,
    LoopListener,
    ManualClock,
)


class RecordingLoop(IncrementalLoop):
    """Loop producing n values, advancing a manual clock by ``work_millis`` per iteration."""

    def __init__(self, n, increment_millis, clock, work_millis=0.0, **kwargs):
        super().__init__(increment_millis, clock=clock, **kwargs)
        self.n = n
        self.work_millis = work_millis
        self.values = []
        self.calls = Counter()
        self.finished_with = []
        self.increments = []

    def has_more_work(self):
        self.calls["has_more_work"] += 1
        return len(self.values) < self.n

    def loop_body(self, i):
        self.calls["loop_body"] += 1
        self.values.append(i)
        self.clock.advance(self.work_millis)

    def loop_started(self):
        self.calls["loop_started"] += 1

    def loop_finished(self, interrupted):
        self.calls["loop_finished"] += 1
        self.finished_with.append(interrupted)

    def increment_started(self):
        self.calls["increment_started"] += 1

    def increment_finished(self, duration_millis):
        self.calls["increment_finished"] += 1
        self.increments.append(duration_millis)


def run_to_completion(loop, max_calls=1000):
    results = []
    for _ in range(max_calls):
        keep_going = loop.execute()
        results.append(keep_going)
        if not keep_going:
            return results
    raise AssertionError("loop never finished")


class TestSingleIncrement:
    """A quick loop that finishes within one increment."""

    def test_runs_all_iterations_in_one_increment(self):
        loop = RecordingLoop(20, increment_millis=1000, clock=ManualClock())

        assert loop.execute() is False

        assert loop.values == list(range(20))
        assert loop.iteration_count == 20
        assert loop.increment_count == 1
        assert loop.calls["loop_started"] == 1
        assert loop.calls["increment_started"] == 1
        assert loop.calls["increment_finished"] == 1
        assert loop.calls["loop_body"] == 20
        # one extra check when the loop condition breaks
        assert loop.calls["has_more_work"] == 21
        assert loop.finished_with == [False]

    def test_state_after_natural_finish(self):
        loop = RecordingLoop(3, increment_millis=1000, clock=ManualClock())
        loop.execute()

        assert loop.is_started
        assert not loop.is_stopped
        assert loop.is_finished
        assert not loop.has_more_work()

    def test_loop_without_work(self):
        loop = RecordingLoop(0, increment_millis=1000, clock=ManualClock())

        assert loop.execute() is False
        assert loop.values == []
        assert loop.increment_count == 1
        assert loop.finished_with == [False]

    def test_not_started_before_execute(self):
        loop = RecordingLoop(3, increment_millis=1000, clock=ManualClock())

        assert not loop.is_started
        assert not loop.is_stopped
        assert not loop.is_finished
        assert loop.iteration_count == 0
        assert loop.increment_count == 0


class TestMultipleIncrements:
    """Loops that have to preempt themselves."""

    def test_preempts_when_budget_exceeded(self):
        # 20ms per iteration with a 100ms budget: the 6th iteration exceeds it
        loop = RecordingLoop(20, increment_millis=100, clock=ManualClock(), work_millis=20)

        results = run_to_completion(loop)

        assert results == [True, True, True, False]
        assert loop.values == list(range(20))
        assert loop.increment_durations == [120, 120, 120, 40]
        assert loop.calls["increment_started"] == 4
        assert loop.calls["increment_finished"] == 4
        assert loop.calls["loop_started"] == 1
        assert loop.finished_with == [False]
        # one extra check per timed-out increment, plus one when the condition breaks
        assert loop.calls["has_more_work"] == 20 + 4

    def test_budget_is_exclusive(self):
        # elapsed == budget does not preempt
        loop = RecordingLoop(10, increment_millis=50, clock=ManualClock(), work_millis=10)

        assert loop.execute() is True
        assert loop.iteration_count == 6

    def test_always_makes_progress(self):
        # every iteration alone exceeds the budget
        loop = RecordingLoop(20, increment_millis=20, clock=ManualClock(), work_millis=21)

        results = run_to_completion(loop)

        assert len(results) == 20
        assert loop.increment_count == 20
        assert loop.iteration_count == 20
        assert loop.calls["has_more_work"] == 20 + 20
        assert loop.finished_with == [False]

    def test_finishing_on_a_timed_out_increment(self):
        loop = RecordingLoop(6, increment_millis=100, clock=ManualClock(), work_millis=20)

        assert loop.execute() is False
        assert loop.increment_count == 1
        assert loop.finished_with == [False]

    def test_increment_durations_are_copies(self):
        loop = RecordingLoop(20, increment_millis=100, clock=ManualClock(), work_millis=20)
        loop.execute()

        durations = loop.increment_durations
        durations.append(999)

        assert loop.increment_durations == [120]

    def test_summarize_increments(self):
        loop = RecordingLoop(20, increment_millis=100, clock=ManualClock(), work_millis=20)
        run_to_completion(loop)

        stats = loop.summarize_increments()

        assert stats == IncrementStats(
            count=4, total_millis=400, mean_millis=100, min_millis=40, max_millis=120
        )
        assert stats.to_dict()["count"] == 4

    def test_summarize_without_increments(self):
        loop = RecordingLoop(20, increment_millis=100, clock=ManualClock())

        stats = loop.summarize_increments()

        assert stats.count == 0
        assert stats.mean_millis is None


class TestStop:
    """Cancellation with stop()."""

    def test_stop_takes_effect_on_next_execute(self):
        clock = ManualClock()

        class StopAtSeven(RecordingLoop):
            def loop_body(self, i):
                super().loop_body(i)
                if i == 7:
                    self.stop()

        loop = StopAtSeven(10000, increment_millis=100, clock=clock, work_millis=1)

        assert loop.execute() is True
        # the running increment is not cut short
        assert loop.iteration_count == 101
        assert loop.is_stopped
        assert loop.finished_with == []

        assert loop.execute() is False
        assert loop.finished_with == [True]
        assert loop.increment_count == 1
        assert not loop.is_finished
        assert loop.has_more_work()

    def test_stop_is_idempotent(self):
        loop = RecordingLoop(100, increment_millis=10, clock=ManualClock(), work_millis=5)
        loop.execute()

        loop.stop()
        loop.stop()

        assert loop.execute() is False
        assert loop.execute() is False
        assert loop.finished_with == [True]
        assert loop.is_stopped

    def test_stop_after_natural_finish(self):
        loop = RecordingLoop(3, increment_millis=1000, clock=ManualClock())
        loop.execute()

        loop.stop()

        assert loop.execute() is False
        assert loop.finished_with == [False]
        assert loop.is_stopped
        assert loop.is_finished

    def test_stop_before_start(self):
        loop = RecordingLoop(3, increment_millis=1000, clock=ManualClock())
        loop.stop()

        assert loop.execute() is False
        assert loop.calls["loop_started"] == 0
        assert loop.calls["loop_finished"] == 0
        assert not loop.is_started

    def test_execute_after_finish_does_nothing(self):
        loop = RecordingLoop(3, increment_millis=1000, clock=ManualClock())
        loop.execute()

        assert loop.execute() is False
        assert loop.increment_count == 1
        assert loop.calls["loop_finished"] == 1


class TestLoopListener:
    def test_listener_receives_lifecycle_events(self):
        events = []
        listener = LoopListener(
            on_loop_started=lambda: events.append("loop_started"),
            on_loop_finished=lambda interrupted: events.append(("loop_finished", interrupted)),
            on_increment_started=lambda: events.append("increment_started"),
            on_increment_finished=lambda millis: events.append(("increment_finished", millis)),
        )
        loop = RecordingLoop(
            4, increment_millis=15, clock=ManualClock(), work_millis=10, listener=listener
        )

        run_to_completion(loop)

        assert events == [
            "loop_started",
            "increment_started",
            ("increment_finished", 20),
            "increment_started",
            ("increment_finished", 20),
            ("loop_finished", False),
        ]

    def test_partial_listener(self):
        finished = []
        loop = RecordingLoop(
            2,
            increment_millis=100,
            clock=ManualClock(),
            listener=LoopListener(on_loop_finished=finished.append),
        )

        loop.execute()

        assert finished == [False]
        # overridden hooks still run alongside the listener
        assert loop.finished_with == [False]


class TestErrors:
    def test_body_errors_propagate(self):
        class FailingLoop(RecordingLoop):
            def loop_body(self, i):
                super().loop_body(i)
                if i == 2:
                    raise RuntimeError("boom")

        loop = FailingLoop(5, increment_millis=100, clock=ManualClock())

        with pytest.raises(RuntimeError, match="boom"):
            loop.execute()
        assert loop.values == [0, 1, 2]
        assert loop.finished_with == []

    def test_negative_budget_rejected(self):
        with pytest.raises(ConfigurationError):
            RecordingLoop(3, increment_millis=-1, clock=ManualClock())

    def test_abstract_methods_required(self):
        with pytest.raises(TypeError):
            IncrementalLoop(100)

    def test_default_budget(self):
        loop = RecordingLoop(1, increment_millis=None, clock=ManualClock())

        assert loop.increment_millis == 100
