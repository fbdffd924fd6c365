import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Union

import yaml

from .errors import ConfigurationError
from .for_loop import IncrementalForLoop
from .host import HostScheduler
from .job import IncrementalJob, Task
from .loop import DEFAULT_INCREMENT_MILLIS
from .retry import RetryableCommand
from .timers import Waiter


class Config:
    """
    Scheduler configuration read from a YAML file.
    """

    def __init__(self, config_path: Optional[str] = None, data: Optional[dict] = None):
        self.config_path = config_path
        self.config = data if data is not None else self.load_config()

    def load_config(self) -> dict:
        """
        Loads the configuration from a YAML file.

        Returns:
            A dictionary containing the configuration.
        """
        if self.config_path is None:
            return {}
        try:
            with open(self.config_path) as f:
                loaded = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {self.config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {self.config_path} must contain a mapping")
        return loaded

    def get(self, key: str, default=None):
        """
        Gets a configuration value.

        Args:
            key: The dotted key of the configuration value, e.g. "scheduler.retry.max_attempts".
            default: The default value to return if the key is not found.

        Returns:
            The configuration value.
        """
        keys = key.split(".")
        value = self.config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k, default)
            else:
                return default
        return value


@dataclass
class SchedulerSettings:
    """Defaults applied to the scheduler primitives."""

    increment_millis: float = DEFAULT_INCREMENT_MILLIS
    retry_max_attempts: int = 10
    retry_delay_millis: float = 100.0
    waiter_poll_millis: float = 50.0
    waiter_timeout_millis: float = 5000.0
    log_level: Union[str, int] = "WARNING"

    def __post_init__(self):
        if self.increment_millis <= 0:
            raise ConfigurationError(f"increment_millis must be positive, got {self.increment_millis}")
        if self.retry_max_attempts < 1:
            raise ConfigurationError(f"retry.max_attempts must be >= 1, got {self.retry_max_attempts}")
        for name in ("retry_delay_millis", "waiter_poll_millis", "waiter_timeout_millis"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        resolve_log_level(self.log_level)

    @classmethod
    def from_config(cls, config: Config) -> "SchedulerSettings":
        defaults = cls()

        def value(key: str, fallback: Any) -> Any:
            return config.get(f"scheduler.{key}", fallback)

        try:
            return cls(
                increment_millis=float(value("increment_millis", defaults.increment_millis)),
                retry_max_attempts=int(value("retry.max_attempts", defaults.retry_max_attempts)),
                retry_delay_millis=float(value("retry.delay_millis", defaults.retry_delay_millis)),
                waiter_poll_millis=float(value("waiter.poll_millis", defaults.waiter_poll_millis)),
                waiter_timeout_millis=float(
                    value("waiter.timeout_millis", defaults.waiter_timeout_millis)
                ),
                log_level=value("log_level", defaults.log_level),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"Invalid scheduler configuration: {e}") from e

    @classmethod
    def load(cls, config_path: str) -> "SchedulerSettings":
        return cls.from_config(Config(config_path))

    # ------------------------------------------------------------------
    # Factories applying these defaults
    # ------------------------------------------------------------------
    def for_loop(self, start: int, limit: Optional[int] = None, step: int = 1, **kwargs) -> IncrementalForLoop:
        kwargs.setdefault("increment_millis", self.increment_millis)
        return IncrementalForLoop(start, limit, step, **kwargs)

    def job(self, tasks: Optional[Iterable[Task]] = None, **kwargs) -> IncrementalJob:
        kwargs.setdefault("increment_millis", self.increment_millis)
        return IncrementalJob(tasks, **kwargs)

    def retry_command(
        self, scheduler: HostScheduler, iteration: Callable[[], bool], start: bool = False, **kwargs
    ) -> RetryableCommand:
        """Build a RetryableCommand, started with ``retry_delay_millis`` when ``start`` is True."""
        command = RetryableCommand(self.retry_max_attempts, scheduler, iteration=iteration, **kwargs)
        if start:
            command.start(self.retry_delay_millis)
        return command

    def waiter(self, condition: Callable[[], bool], scheduler: HostScheduler, **kwargs) -> Waiter:
        kwargs.setdefault("poll_millis", self.waiter_poll_millis)
        kwargs.setdefault("timeout_millis", self.waiter_timeout_millis)
        return Waiter(condition, scheduler, **kwargs)

    def apply_log_level(self) -> logging.Logger:
        """Apply ``log_level`` to the package logger."""
        return configure_logging(self.log_level)


def resolve_log_level(level: Union[str, int]) -> int:
    """
    Converts a level name ("debug", "INFO") or number to a logging level.

    Raises:
        ConfigurationError: If the level is unknown.
    """
    if isinstance(level, bool):
        raise ConfigurationError(f"Unknown log level: {level}")
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if isinstance(resolved, int):
            return resolved
    raise ConfigurationError(f"Unknown log level: {level}")


def configure_logging(level: Union[str, int] = "WARNING") -> logging.Logger:
    """Set the level of the package logger, leaving the root logger alone."""
    logger = logging.getLogger("incremental_scheduler")
    logger.setLevel(resolve_log_level(level))
    return logger
