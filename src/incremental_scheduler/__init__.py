"""
incremental-scheduler: time-sliced cooperative execution for single-threaded run-loops.

This package provides:
- IncrementalLoop: a loop that yields to its host scheduler whenever an
  increment exceeds its time budget
- IncrementalForLoop: indexed ``for``-loop semantics on top of it
- IncrementalJob: a sequence of multi-step tasks run as one loop
- IncrementalTaskQueue: a FIFO of atomic commands, one per invocation
- SmartTimer, Waiter, RetryableCommand: timer helpers
- StubScheduler, RunLoop: bundled host schedulers

Quick Start:
    from incremental_scheduler import IncrementalForLoop, RunLoop

    results = []
    loop = IncrementalForLoop(0, 100_000, increment_millis=15, body=results.append)

    host = RunLoop()
    loop.start(host)
    host.run_until_idle()
"""

__version__ = "0.1.0"

from incremental_scheduler.clock import Clock, Duration, ManualClock, MonotonicClock
from incremental_scheduler.config import Config, SchedulerSettings, configure_logging
from incremental_scheduler.errors import (
    ConfigurationError,
    JobNotInitializedError,
    SchedulerError,
    TaskExhaustedError,
    TimerStateError,
)
from incremental_scheduler.for_loop import IncrementalForLoop
from incremental_scheduler.host import HostScheduler, RunLoop, StubScheduler, TimerHandle
from incremental_scheduler.job import (
    IncrementalJob,
    IteratorTask,
    JobState,
    SingletonTask,
    Task,
    advance_tasks,
)
from incremental_scheduler.loop import IncrementalLoop, IncrementStats, LoopListener
from incremental_scheduler.retry import RetryableCommand
from incremental_scheduler.task_queue import Command, IncrementalTaskQueue
from incremental_scheduler.timers import SmartTimer, Waiter

__all__ = [
    # Version info
    "__version__",
    # Clocks
    "Clock",
    "Duration",
    "ManualClock",
    "MonotonicClock",
    # Host schedulers
    "HostScheduler",
    "RunLoop",
    "StubScheduler",
    "TimerHandle",
    # Loops
    "IncrementalLoop",
    "IncrementStats",
    "LoopListener",
    "IncrementalForLoop",
    # Jobs
    "IncrementalJob",
    "Task",
    "SingletonTask",
    "IteratorTask",
    "JobState",
    "advance_tasks",
    # Queue
    "IncrementalTaskQueue",
    "Command",
    # Timers
    "SmartTimer",
    "Waiter",
    "RetryableCommand",
    # Configuration
    "Config",
    "SchedulerSettings",
    "configure_logging",
    # Errors
    "SchedulerError",
    "ConfigurationError",
    "JobNotInitializedError",
    "TaskExhaustedError",
    "TimerStateError",
]
