"""Command dispatch between the editor's command registry and the server."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from metals_client.logging import LogLevel
from metals_client.protocol import ClientCommands, ServerCommands
from metals_client.session import Session

__all__ = [
    "RequestFailure",
    "CommandDispatcher",
    "BUILD_COMMANDS",
    "FOCUS_PROBLEMS_COMMAND",
]

# Server commands exposed as plain "metals.<id>" editor commands
BUILD_COMMANDS = (
    ServerCommands.BUILD_IMPORT,
    ServerCommands.BUILD_RESTART,
    ServerCommands.BUILD_CONNECT,
    ServerCommands.SOURCES_SCAN,
    ServerCommands.DOCTOR_RUN,
    ServerCommands.CASCADE_COMPILE,
    ServerCommands.CLEAN_COMPILE,
    ServerCommands.CANCEL_COMPILATION,
    ServerCommands.AMMONITE_START,
    ServerCommands.AMMONITE_STOP,
)

FOCUS_PROBLEMS_COMMAND = "workbench.action.problems.focus"


class RequestFailure(Exception):
    """Raised when the server rejects or fails an outgoing request."""

    def __init__(self, command: str, cause: BaseException) -> None:
        super().__init__(f"Command '{command}' failed: {cause}")
        self.command = command
        self.cause = cause


class CommandDispatcher:
    """Forwards editor commands to the server and binds server-named commands.

    The dispatcher never computes anything locally: every command it owns
    ends in a ``workspace/executeCommand`` request.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._host = session.host
        self._logger = session.logger
        self._bound: set[str] = set()
        self._logs_visible = False

    async def invoke(self, command_id: str, arguments: Optional[list] = None) -> Any:
        """Execute a command on the server and return its result.

        Raises:
            RequestFailure: If the request is rejected
        """
        self._logger.log(LogLevel.DEBUG, f"executeCommand {command_id} {arguments or ''}".rstrip())
        try:
            return await self._session.connection.execute_command(command_id, arguments)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise RequestFailure(command_id, e) from e

    async def execute(self, command_id: str, arguments: Optional[list] = None) -> Any:
        """Invoke on behalf of the user: failures are logged and shown, not raised."""
        try:
            return await self.invoke(command_id, arguments)
        except RequestFailure as e:
            self._logger.log(LogLevel.ERROR, str(e))
            await self._host.show_error_message(str(e))
            return None

    def bind_if_absent(self, command_id: str) -> bool:
        """Make sure ``command_id`` exists in the editor, forwarding it to the server.

        The check and the registration happen without yielding to the event
        loop, so identical ids arriving in separate pushes register once.

        Returns:
            True if this call registered the command
        """
        if command_id in self._bound:
            return False
        self._bound.add(command_id)

        if command_id in self._host.registered_commands():
            self._logger.log(LogLevel.TRACE, f"Command '{command_id}' already registered")
            return False

        async def forward(*args: Any) -> Any:
            return await self.execute(command_id, list(args) or None)

        try:
            self._session.register_command(command_id, forward)
        except ValueError:
            # Registered by someone else between the check and now
            return False
        self._logger.log(LogLevel.DEBUG, f"Bound server command '{command_id}'")
        return True

    def is_bound(self, command_id: str) -> bool:
        return command_id in self._bound

    def register_static_commands(self) -> None:
        """Register the commands the client always exposes once the session is ready."""
        for command in BUILD_COMMANDS:
            self._register_forwarder(f"metals.{command.value}", command.value)

        self._session.register_command(
            f"metals.{ServerCommands.GOTO_SUPER_METHOD.value}",
            lambda *_: self._execute_at_cursor(ServerCommands.GOTO_SUPER_METHOD.value),
        )
        self._session.register_command(
            f"metals.{ServerCommands.SUPER_METHOD_HIERARCHY.value}",
            lambda *_: self._execute_at_cursor(ServerCommands.SUPER_METHOD_HIERARCHY.value),
        )
        self._session.register_command(
            f"metals.{ServerCommands.RESET_CHOICE.value}",
            lambda args=None: self.execute(ServerCommands.RESET_CHOICE.value, list(args or [])),
        )
        self._session.register_command(
            f"metals.{ServerCommands.GOTO.value}",
            lambda args=None: self.execute(ServerCommands.GOTO.value, args),
        )
        self._session.register_command(
            f"metals.{ServerCommands.NEW_SCALA_FILE.value}",
            lambda directory=None: self.execute(
                ServerCommands.NEW_SCALA_FILE.value, [str(directory) if directory is not None else None]
            ),
        )
        self._register_forwarder(
            f"metals.{ServerCommands.NEW_SCALA_PROJECT.value}", ServerCommands.NEW_SCALA_PROJECT.value
        )
        self._session.register_command(
            ClientCommands.ECHO_COMMAND.value, lambda command: self.execute(command)
        )
        self._session.register_command(ClientCommands.TOGGLE_LOGS.value, self.toggle_logs)
        self._session.register_command(
            ClientCommands.FOCUS_DIAGNOSTICS.value,
            lambda *_: self._host.execute_command(FOCUS_PROBLEMS_COMMAND),
        )

    def toggle_logs(self, *_: Any) -> None:
        if self._logs_visible:
            self._host.output.hide()
        else:
            self._host.output.show(preserve_focus=True)
        self._logs_visible = not self._logs_visible

    def _register_forwarder(self, editor_command: str, server_command: str) -> None:
        async def forward(*_: Any) -> Any:
            return await self.execute(server_command)

        self._session.register_command(editor_command, forward)

    async def _execute_at_cursor(self, server_command: str) -> Any:
        editor = self._host.active_editor()
        if editor is None:
            self._logger.log(LogLevel.WARN, f"'{server_command}' needs an active editor")
            return None
        position = {"line": editor.cursor.line, "character": editor.cursor.character}
        return await self.execute(server_command, [{"document": editor.uri, "position": position}])
