"""Exception types raised by the incremental scheduler."""


class SchedulerError(Exception):
    """Base class for all scheduler errors."""


class ConfigurationError(SchedulerError, ValueError):
    """Raised when a primitive is constructed or configured with invalid values."""


class JobNotInitializedError(ConfigurationError, RuntimeError):
    """Raised when an IncrementalJob is used before its tasks were initialized."""

    def __init__(self, message: str = "init_tasks() hasn't been called yet"):
        super().__init__(message)


class TimerStateError(SchedulerError, RuntimeError):
    """Raised when a timer or retry command is used in an invalid state."""


class TaskExhaustedError(SchedulerError, IndexError):
    """Raised when a task is asked for a step after it ran out of work."""
