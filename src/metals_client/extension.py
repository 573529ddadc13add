"""Activation entry points tying the session to its components."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlsplit

from metals_client.commands import CommandDispatcher
from metals_client.config import ClientConfig
from metals_client.decorations import DecorationSynchronizer
from metals_client.focus import FocusTracker
from metals_client.host import Disposable, Host
from metals_client.logging import Logger, LogLevel
from metals_client.notifications import NotificationRouter
from metals_client.prompts import PromptHandler
from metals_client.protocol import METALS_SLOW_TASK
from metals_client.session import (
    Connection,
    ConnectionFailure,
    PyglsConnection,
    Session,
    SessionManager,
)
from metals_client.slow_task import SlowTaskTracker
from metals_client.status import StatusPresenter

__all__ = [
    "OPEN_SETTINGS_ACTION",
    "OPEN_SETTINGS_COMMAND",
    "RETRY_ACTION",
    "RESTART_SERVER_COMMAND",
    "SessionComponents",
    "MetalsExtension",
]

OPEN_SETTINGS_ACTION = "Open settings"
OPEN_SETTINGS_COMMAND = "workbench.action.openSettings"
RETRY_ACTION = "Retry"
RESTART_SERVER_COMMAND = "metals.restartServer"


@dataclass
class SessionComponents:
    commands: CommandDispatcher
    status: StatusPresenter
    decorations: DecorationSynchronizer
    slow_tasks: SlowTaskTracker
    router: NotificationRouter
    focus: FocusTracker
    prompts: PromptHandler


def _workspace_path(folder: str) -> Path:
    if "://" in folder:
        return Path(unquote(urlsplit(folder).path))
    return Path(folder)


class MetalsExtension:
    """Activation/deactivation of the client inside a host."""

    def __init__(
        self,
        host: Host,
        logger: Logger,
        connection_factory: Callable[[ClientConfig, Optional[Path], Logger], Connection] = PyglsConnection,
    ) -> None:
        self._host = host
        self._logger = logger
        self._config: Optional[ClientConfig] = None
        self._workspace: Optional[Path] = None
        self.manager = SessionManager(host, logger, connection_factory)
        self.manager.on_ready(self._wire)

    @property
    def session(self) -> Optional[Session]:
        return self.manager.session

    async def activate(self, config: ClientConfig) -> Optional[Session]:
        """Start the session for the host's first workspace folder.

        Returns:
            The ready Session, or None if nothing was started
        """
        folders = self._host.workspace_folders()
        if not folders:
            self._logger.log(
                LogLevel.WARN,
                "Metals will not start because you've opened a single file and not a project directory.",
            )
            return None
        self._config = config
        self._workspace = _workspace_path(folders[0])
        return await self._start()

    async def deactivate(self) -> None:
        await self.manager.stop()

    async def restart(self, *_) -> Optional[Session]:
        if self._config is None:
            return None
        self._logger.log(LogLevel.INFO, "Restarting Metals server")
        return await self._start()

    async def _start(self) -> Optional[Session]:
        # Retries only ever happen because the user asked for one
        while True:
            try:
                return await self.manager.start(self._config, self._workspace)
            except ConnectionFailure as e:
                self._logger.log(LogLevel.FATAL, str(e))
                self._host.output.show(preserve_focus=True)
                choice = await self._host.show_error_message(str(e), OPEN_SETTINGS_ACTION, RETRY_ACTION)
                if choice == OPEN_SETTINGS_ACTION:
                    self._host.execute_command(OPEN_SETTINGS_COMMAND, "metals")
                if choice != RETRY_ACTION:
                    return None

    def _wire(self, session: Session) -> None:
        commands = CommandDispatcher(session)
        status = StatusPresenter(session, commands)
        decorations = DecorationSynchronizer(session)
        slow_tasks = SlowTaskTracker(session)
        router = NotificationRouter(session, status, decorations)
        focus = FocusTracker(session)
        prompts = PromptHandler(session)

        commands.register_static_commands()
        session.register_command(RESTART_SERVER_COMMAND, self.restart)
        router.subscribe()
        session.connection.on_request(METALS_SLOW_TASK, slow_tasks.handle)
        session.subscribe(Disposable(slow_tasks.dispose))
        prompts.subscribe()
        focus.subscribe()

        session.components = SessionComponents(
            commands=commands,
            status=status,
            decorations=decorations,
            slow_tasks=slow_tasks,
            router=router,
            focus=focus,
            prompts=prompts,
        )
