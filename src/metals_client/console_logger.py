from metals_client.logging import Logger, LogLevel
from rich.console import Console

__all__ = ["ConsoleLogger", "OutputChannelLogger"]


class _LevelStack:
    def __init__(self, level: LogLevel) -> None:
        self._levels = [level]

    def enabled(self, level: LogLevel) -> bool:
        return self._levels[-1].value >= level.value

    def push(self, level: LogLevel) -> None:
        self._levels.append(level)

    def pop(self) -> LogLevel:
        if len(self._levels) <= 1:
            raise RuntimeError("Cannot pop the base log level")
        return self._levels.pop()


class ConsoleLogger(Logger):
    """Console-based logger implementation using Rich for formatting.

    Filters log messages based on the current log level. Messages with severity
    lower than the current level are suppressed. Supports a stack-based level
    management system for temporary verbosity changes.
    """

    def __init__(self, console: Console, level: LogLevel = LogLevel.INFO) -> None:
        """Initialize the console logger.

        Args:
            console: Rich Console instance to use for output
            level: Initial log level (default: INFO)
        """
        self._console = console
        self._levels = _LevelStack(level)

    def log(self, level: LogLevel = LogLevel.INFO, *args, **kwargs) -> None:
        """Log a message to the console if it meets the current level threshold.

        Args:
            level: The severity level of this message (default: INFO)
            *args: Positional arguments passed to Rich Console.print()
            **kwargs: Keyword arguments passed to Rich Console.print()
        """
        if self._levels.enabled(level):
            self._console.print(*args, **kwargs)

    def push_level(self, level: LogLevel) -> None:
        self._levels.push(level)

    def pop_level(self) -> LogLevel:
        """Pop the current log level and return to the previous level.

        Raises:
            RuntimeError: If attempting to pop the base (initial) log level
        """
        return self._levels.pop()


class OutputChannelLogger(Logger):
    """Logger writing plain lines to the host's output panel.

    This is the panel that the status line's default action toggles, so
    everything the client logs here is what the user sees under "show logs".
    """

    def __init__(self, channel, level: LogLevel = LogLevel.INFO) -> None:
        self._channel = channel
        self._levels = _LevelStack(level)

    def log(self, level: LogLevel = LogLevel.INFO, *args, **kwargs) -> None:
        if self._levels.enabled(level):
            sep = kwargs.get("sep", " ")
            self._channel.append_line(sep.join(str(arg) for arg in args))

    def push_level(self, level: LogLevel) -> None:
        self._levels.push(level)

    def pop_level(self) -> LogLevel:
        return self._levels.pop()
