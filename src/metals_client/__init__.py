"""Metals client - keeps an editor session in sync with a Metals language server."""

__version__ = "0.1.0"

from metals_client.commands import CommandDispatcher, RequestFailure
from metals_client.config import ClientConfig, ConfigError, load_config
from metals_client.decorations import DecorationSynchronizer, StaleTargetError
from metals_client.extension import MetalsExtension, SessionComponents
from metals_client.notifications import NotificationRouter
from metals_client.protocol import UnrecognizedMessage
from metals_client.session import ConnectionFailure, Session, SessionManager
from metals_client.slow_task import SlowTaskTracker, readable_seconds
from metals_client.status import StatusPresenter

__all__ = [
    "__version__",
    "ClientConfig",
    "CommandDispatcher",
    "ConfigError",
    "ConnectionFailure",
    "DecorationSynchronizer",
    "MetalsExtension",
    "NotificationRouter",
    "RequestFailure",
    "Session",
    "SessionComponents",
    "SessionManager",
    "SlowTaskTracker",
    "StaleTargetError",
    "StatusPresenter",
    "UnrecognizedMessage",
    "load_config",
    "readable_seconds",
]
