"""Session lifecycle: one live connection to the language server per workspace.

The SessionManager is the only place that creates or destroys connections.
Every other component is handed the active Session once it is ready and
talks to the server exclusively through ``Session.connection``.
"""

from __future__ import annotations

import asyncio
import itertools
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from lsprotocol.types import (
    ClientCapabilities,
    ExecuteCommandParams,
    InitializedParams,
    InitializeParams,
    WorkspaceFolder,
)
from pygls.lsp.client import LanguageClient

import metals_client
from metals_client.config import ClientConfig
from metals_client.host import Disposable, Host
from metals_client.logging import Logger, LogLevel

if TYPE_CHECKING:
    from metals_client.extension import SessionComponents

__all__ = [
    "ConnectionFailure",
    "Connection",
    "PyglsConnection",
    "Session",
    "SessionManager",
    "initialization_options",
]

NotificationHandler = Callable[[Any], None]
RequestHandler = Callable[[Any], Awaitable[Any]]


class ConnectionFailure(Exception):
    """Raised when the server process cannot be spawned or the handshake fails."""

    pass


def initialization_options(overrides: Optional[dict] = None) -> dict:
    """Build the Metals initializationOptions advertising the client's providers."""
    options = {
        "compilerOptions": {
            "completionCommand": "editor.action.triggerSuggest",
            "overrideDefFormat": "unicode",
            "parameterHintsCommand": "editor.action.triggerParameterHints",
        },
        "decorationProvider": True,
        "debuggingProvider": False,
        "doctorProvider": "html",
        "didFocusProvider": True,
        "executeClientCommandProvider": True,
        "globSyntax": "vscode",
        "icons": "vscode",
        "inputBoxProvider": True,
        "openFilesOnRenameProvider": True,
        "openNewWindowProvider": True,
        "quickPickProvider": True,
        "slowTaskProvider": True,
        "statusBarProvider": "on",
        "treeViewProvider": False,
    }
    options.update(overrides or {})
    return options


class Connection(ABC):
    """Bidirectional message channel to the language server."""

    @abstractmethod
    async def start(self) -> None:
        """Spawn the server and complete the initialize handshake.

        Raises:
            ConnectionFailure: If either step fails
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Shut the server down. Calling it more than once is harmless."""
        ...

    @abstractmethod
    async def send_request(self, method: str, params: Any) -> Any: ...

    @abstractmethod
    async def execute_command(self, command: str, arguments: Optional[list] = None) -> Any: ...

    @abstractmethod
    def notify(self, method: str, params: Any) -> None: ...

    @abstractmethod
    def on_notification(self, method: str, handler: NotificationHandler) -> None: ...

    @abstractmethod
    def on_request(self, method: str, handler: RequestHandler) -> None:
        """Register a handler for a server-initiated request.

        The handler's return value is sent back as the response. A server
        ``$/cancelRequest`` for that request cancels the handler's task.
        """
        ...


class PyglsConnection(Connection):
    """Connection over stdio using pygls' LanguageClient."""

    def __init__(
        self,
        config: ClientConfig,
        workspace: Optional[Path],
        logger: Logger,
        handshake_timeout: float = 120.0,
    ) -> None:
        self._config = config
        self._workspace = workspace
        self._logger = logger
        self._handshake_timeout = handshake_timeout
        self._client = LanguageClient("metals-client", metals_client.__version__)
        self._started = False

    async def start(self) -> None:
        command = self._config.full_server_command()
        self._logger.log(LogLevel.DEBUG, f"Spawning language server: {' '.join(command)}")
        try:
            await self._client.start_io(*command, env=self._config.server_env(dict(os.environ)))
        except OSError as e:
            raise ConnectionFailure(f"Unable to start the language server '{command[0]}': {e}") from e

        self._started = True
        root_uri = self._workspace.resolve().as_uri() if self._workspace else None
        folders = (
            [WorkspaceFolder(uri=root_uri, name=self._workspace.name)] if root_uri else None
        )
        try:
            result = await asyncio.wait_for(
                self._client.initialize_async(
                    InitializeParams(
                        process_id=os.getpid(),
                        capabilities=ClientCapabilities(),
                        root_uri=root_uri,
                        workspace_folders=folders,
                        initialization_options=initialization_options(
                            self._config.initialization_options
                        ),
                    )
                ),
                timeout=self._handshake_timeout,
            )
        except Exception as e:
            await self.stop()
            raise ConnectionFailure(f"Language server handshake failed: {e}") from e

        self._client.initialized(InitializedParams())
        server_info = getattr(result, "server_info", None)
        if server_info is not None:
            self._logger.log(LogLevel.INFO, f"Connected to {server_info.name} {server_info.version or ''}".rstrip())

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        try:
            await self._client.shutdown_async(None)
            self._client.exit(None)
        except Exception as e:
            self._logger.log(LogLevel.WARN, f"Error during server shutdown: {e}")
        await self._client.stop()

    async def send_request(self, method: str, params: Any) -> Any:
        return await self._client.protocol.send_request_async(method, params)

    async def execute_command(self, command: str, arguments: Optional[list] = None) -> Any:
        return await self._client.workspace_execute_command_async(
            ExecuteCommandParams(command=command, arguments=arguments)
        )

    def notify(self, method: str, params: Any) -> None:
        self._client.protocol.notify(method, params)

    def on_notification(self, method: str, handler: NotificationHandler) -> None:
        self._client.feature(method)(handler)

    def on_request(self, method: str, handler: RequestHandler) -> None:
        self._client.feature(method)(handler)


class Session:
    """One activation's connection plus everything registered against it."""

    def __init__(self, connection: Connection, host: Host, config: ClientConfig, logger: Logger) -> None:
        self.connection = connection
        self.host = host
        self.config = config
        self.logger = logger
        self.ready = False
        self.subscriptions: list[Disposable] = []
        self.components: Optional["SessionComponents"] = None
        self._tasks: set[asyncio.Task] = set()
        self._task_ids = itertools.count(1)

    def register_command(self, command: str, callback: Callable[..., Any]) -> Disposable:
        """Register a host command whose lifetime is bound to this session."""
        disposable = self.host.register_command(command, callback)
        self.subscriptions.append(disposable)
        return disposable

    def subscribe(self, disposable: Disposable) -> None:
        self.subscriptions.append(disposable)

    def spawn(self, coro: Awaitable[Any], description: str) -> asyncio.Task:
        """Run a coroutine in the background; failures are logged, not raised."""
        task = asyncio.ensure_future(coro)
        task.set_name(f"{description}#{next(self._task_ids)}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.log(LogLevel.ERROR, f"{task.get_name()} failed: {error}")

    async def close(self) -> None:
        self.ready = False
        for task in list(self._tasks):
            task.cancel()
        while self.subscriptions:
            self.subscriptions.pop().dispose()
        await self.connection.stop()


class SessionManager:
    """Owns the single active Session.

    ``start`` always tears the previous session down first, and start/stop
    calls are serialized so two activations can never overlap.
    """

    def __init__(
        self,
        host: Host,
        logger: Logger,
        connection_factory: Callable[[ClientConfig, Optional[Path], Logger], Connection] = PyglsConnection,
    ) -> None:
        self._host = host
        self._logger = logger
        self._connection_factory = connection_factory
        self._session: Optional[Session] = None
        self._ready_callbacks: list[Callable[[Session], None]] = []
        self._lock = asyncio.Lock()

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def on_ready(self, callback: Callable[[Session], None]) -> Disposable:
        """Subscribe to the ready signal fired after every successful handshake."""
        self._ready_callbacks.append(callback)
        return Disposable(lambda: self._ready_callbacks.remove(callback))

    async def start(self, config: ClientConfig, workspace: Optional[Path] = None) -> Session:
        """Start a new session, replacing any active one.

        Raises:
            ConnectionFailure: If the server cannot be spawned or initialized,
                or a ready subscriber fails to set the session up
        """
        async with self._lock:
            await self._stop_locked()
            progress = self._host.create_progress(
                "Starting Metals server...", cancellable=False, notification=False
            )
            try:
                connection = self._connection_factory(config, workspace, self._logger)
                try:
                    await connection.start()
                except ConnectionFailure:
                    raise
                except Exception as e:
                    raise ConnectionFailure(f"Unable to connect to the language server: {e}") from e

                session = Session(connection, self._host, config, self._logger)
                session.ready = True
                try:
                    for callback in list(self._ready_callbacks):
                        callback(session)
                except Exception as e:
                    await session.close()
                    raise ConnectionFailure(f"Unable to set up the Metals session: {e}") from e
                self._session = session
                self._logger.log(LogLevel.INFO, "Metals session ready")
                return session
            finally:
                progress.close()

    async def stop(self) -> None:
        async with self._lock:
            await self._stop_locked()

    async def _stop_locked(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        self._logger.log(LogLevel.DEBUG, "Stopping Metals session")
        await session.close()
