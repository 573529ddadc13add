"""Routing of inbound server notifications to the component that owns them."""

from __future__ import annotations

from functools import partial
from typing import Any, Optional

from metals_client.commands import FOCUS_PROBLEMS_COMMAND
from metals_client.decorations import DecorationSynchronizer
from metals_client.host import ReportPanel
from metals_client.logging import LogLevel
from metals_client.protocol import (
    METALS_DECORATION_TYPE_DID_CHANGE,
    METALS_EXECUTE_CLIENT_COMMAND,
    METALS_PUBLISH_DECORATIONS,
    METALS_STATUS,
    ClientCommands,
    DecorationsChanged,
    DecorationTypeChanged,
    ExecuteClientCommand,
    InboundNotification,
    StatusUpdate,
    UnrecognizedMessage,
    decode_location,
    decode_notification,
    decode_open_window,
)
from metals_client.session import Session
from metals_client.status import StatusPresenter

__all__ = ["ROUTED_METHODS", "NotificationRouter"]

ROUTED_METHODS = (
    METALS_STATUS,
    METALS_EXECUTE_CLIENT_COMMAND,
    METALS_DECORATION_TYPE_DID_CHANGE,
    METALS_PUBLISH_DECORATIONS,
)


class NotificationRouter:
    """Single entry point for server notifications.

    Nothing the server sends can make the router raise: malformed payloads,
    unknown methods and unknown client commands are logged and dropped.
    """

    def __init__(
        self,
        session: Session,
        status: StatusPresenter,
        decorations: DecorationSynchronizer,
    ) -> None:
        self._session = session
        self._host = session.host
        self._logger = session.logger
        self._status = status
        self._decorations = decorations
        self._doctor: Optional[ReportPanel] = None

    def subscribe(self) -> None:
        for method in ROUTED_METHODS:
            self._session.connection.on_notification(method, partial(self.route, method))

    def route(self, method: str, params: Any) -> None:
        try:
            message = decode_notification(method, params)
        except UnrecognizedMessage as e:
            self._logger.log(LogLevel.WARN, f"Ignoring malformed notification: {e}")
            return
        self.dispatch(message)

    def dispatch(self, message: InboundNotification) -> None:
        self._logger.log(LogLevel.TRACE, f"notification: {message}")
        if isinstance(message, StatusUpdate):
            self._status.update(message)
        elif isinstance(message, ExecuteClientCommand):
            self._execute_client_command(message)
        elif isinstance(message, DecorationTypeChanged):
            self._decorations.set_decoration_type(message.options)
        elif isinstance(message, DecorationsChanged):
            self._decorations.publish(message)
        else:
            self._logger.log(LogLevel.WARN, f"unknown notification: {message.method}")

    def _execute_client_command(self, message: ExecuteClientCommand) -> None:
        command = message.command
        first = message.arguments[0] if message.arguments else None
        try:
            if command == ClientCommands.GOTO_LOCATION.value:
                if first is not None:
                    location = decode_location(first)
                    self._session.spawn(
                        self._host.open_document(location.uri, location.range), "goto-location"
                    )
            elif command == ClientCommands.REFRESH_MODEL.value:
                self._host.refresh_code_lenses()
            elif command == ClientCommands.OPEN_FOLDER.value:
                if first is not None:
                    window = decode_open_window(first)
                    self._host.open_folder(window.uri, window.open_new_window)
            elif command in (ClientCommands.RUN_DOCTOR.value, ClientCommands.RELOAD_DOCTOR.value):
                self._show_doctor(first, reload=command == ClientCommands.RELOAD_DOCTOR.value)
            elif command == ClientCommands.FOCUS_DIAGNOSTICS.value:
                self._host.execute_command(FOCUS_PROBLEMS_COMMAND)
            else:
                self._logger.log(LogLevel.INFO, f"unknown command: {command}")
        except UnrecognizedMessage as e:
            self._logger.log(LogLevel.WARN, f"Ignoring client command '{command}': {e}")

    def _show_doctor(self, html: Any, reload: bool) -> None:
        # A reload only refreshes a panel the user already has open
        if reload and self._doctor is None:
            return
        if not isinstance(html, str):
            self._logger.log(LogLevel.WARN, "Doctor report without HTML content")
            return
        if self._doctor is None:
            panel = self._host.create_report_panel("Metals Doctor")
            panel.on_dispose(self._doctor_closed)
            self._doctor = panel
        elif not reload:
            self._doctor.reveal()
        self._doctor.set_html(html)

    def _doctor_closed(self) -> None:
        self._doctor = None
