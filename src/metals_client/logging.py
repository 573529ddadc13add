"""Logging infrastructure for the Metals client.

Components never print directly; they receive a Logger by injection so the
same code can write to a terminal, to the editor's output panel, or to a stub
in tests.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod

__all__ = ["Logger", "LogLevel"]


class LogLevel(enum.Enum):
    """Log verbosity levels for client diagnostic messages.

    Lower numeric values represent higher severity / less verbosity.
    """
    FATAL = 0  # Session cannot start or continue
    ERROR = 1  # Fatal errors plus failed requests
    WARN = 2   # Errors plus protocol oddities (unknown messages, bad params)
    INFO = 3   # Warnings plus lifecycle progress (default)
    DEBUG = 4  # Info plus every routed message
    TRACE = 5  # Debug plus slow-task ticks


class Logger(ABC):
    """Abstract leveled logger."""

    @abstractmethod
    def log(self, level: LogLevel = LogLevel.INFO, *args, **kwargs) -> None:
        """Log a message if it meets the current level threshold.

        Args:
            level: The severity level of this message
            *args: Positional arguments forwarded to the output sink
            **kwargs: Keyword arguments forwarded to the output sink
        """
        ...

    @abstractmethod
    def push_level(self, level: LogLevel) -> None:
        """Temporarily switch to a new log level."""
        ...

    @abstractmethod
    def pop_level(self) -> LogLevel:
        """Return to the previous log level."""
        ...


def parse_log_level(name: str) -> LogLevel:
    """Convert a case-insensitive level name (e.g. "debug") into a LogLevel.

    Raises:
        ValueError: If the name is not a known level
    """
    try:
        return LogLevel[name.strip().upper()]
    except KeyError:
        valid = ", ".join(level.name.lower() for level in LogLevel)
        raise ValueError(f"Invalid log level '{name}'. Valid levels: {valid}") from None
