"""The single status line driven by ``metals/status`` pushes."""

from __future__ import annotations

from typing import Optional

from metals_client.commands import CommandDispatcher
from metals_client.host import Disposable
from metals_client.logging import LogLevel
from metals_client.protocol import ClientCommands, StatusUpdate
from metals_client.session import Session

__all__ = ["StatusPresenter"]


class StatusPresenter:
    """Applies status pushes to the host's status item.

    Field rules for each push:
    - text is always replaced
    - ``show`` shows the item, otherwise ``hide`` hides it, otherwise
      visibility is left as it was
    - tooltip is replaced only when present
    - command is bound when present and cleared when absent

    Until the first push names a command, clicking the item toggles the logs.
    """

    def __init__(self, session: Session, commands: CommandDispatcher) -> None:
        self._commands = commands
        self._logger = session.logger
        self._item = session.host.create_status_item()
        self._item.command = ClientCommands.TOGGLE_LOGS.value
        self._item.hide()
        self._visible = False
        session.subscribe(Disposable(self._item.hide))

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def text(self) -> str:
        return self._item.text

    @property
    def tooltip(self) -> Optional[str]:
        return self._item.tooltip

    @property
    def command(self) -> Optional[str]:
        return self._item.command

    def update(self, status: StatusUpdate) -> None:
        self._logger.log(LogLevel.TRACE, f"status: {status.text}")
        self._item.text = status.text

        if status.show:
            self._item.show()
            self._visible = True
        elif status.hide:
            self._item.hide()
            self._visible = False

        if status.tooltip:
            self._item.tooltip = status.tooltip

        if status.command:
            self._commands.bind_if_absent(status.command)
            self._item.command = status.command
        else:
            self._item.command = None
