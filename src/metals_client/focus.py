"""Tells the server which document and window have focus."""

from __future__ import annotations

from typing import Optional

from metals_client.host import ActiveEditor
from metals_client.logging import LogLevel
from metals_client.protocol import METALS_DID_FOCUS, METALS_WINDOW_STATE_DID_CHANGE
from metals_client.session import Session

__all__ = ["SUPPORTED_LANGUAGES", "FocusTracker"]

SUPPORTED_LANGUAGES = frozenset({"scala", "sc", "java"})


class FocusTracker:
    def __init__(self, session: Session) -> None:
        self._session = session
        self._logger = session.logger

    def subscribe(self) -> None:
        host = self._session.host
        self._session.subscribe(host.on_active_editor_changed(self.active_editor_changed))
        self._session.subscribe(host.on_window_state_changed(self.window_state_changed))

    def active_editor_changed(self, editor: Optional[ActiveEditor]) -> None:
        if editor is None or editor.language_id not in SUPPORTED_LANGUAGES:
            return
        self._logger.log(LogLevel.TRACE, f"didFocus {editor.uri}")
        self._session.connection.notify(METALS_DID_FOCUS, editor.uri)

    def window_state_changed(self, focused: bool) -> None:
        self._session.connection.notify(METALS_WINDOW_STATE_DID_CHANGE, {"focused": focused})
