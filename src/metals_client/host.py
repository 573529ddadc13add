"""Editor host abstraction.

The client never talks to editor widgets directly. Everything it needs from
the editor (command registry, status line, progress, decorations, panels) is
reached through the ``Host`` interface so that the protocol layer can be
driven by a real editor, by the headless console host, or by test doubles.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from lsprotocol.types import Range

__all__ = [
    "Disposable",
    "OutputChannel",
    "StatusItem",
    "Progress",
    "DecorationType",
    "ReportPanel",
    "ActiveEditor",
    "Host",
]

CommandCallback = Callable[..., Any]


class Disposable:
    """Releases a registration when disposed. Disposing twice is harmless."""

    def __init__(self, on_dispose: Optional[Callable[[], None]] = None) -> None:
        self._on_dispose = on_dispose

    def dispose(self) -> None:
        if self._on_dispose is not None:
            callback, self._on_dispose = self._on_dispose, None
            callback()


class OutputChannel(ABC):
    """The log panel the client writes to."""

    @abstractmethod
    def append_line(self, line: str) -> None: ...

    @abstractmethod
    def show(self, preserve_focus: bool = True) -> None: ...

    @abstractmethod
    def hide(self) -> None: ...


class StatusItem(ABC):
    """A single mutable status line element.

    Attributes:
        text: Visible text
        tooltip: Hover text, or None
        command: Command id run when the item is clicked, or None
    """

    text: str = ""
    tooltip: Optional[str] = None
    command: Optional[str] = None

    @abstractmethod
    def show(self) -> None: ...

    @abstractmethod
    def hide(self) -> None: ...


class Progress(ABC):
    """A progress indicator owned by one long-running operation."""

    @abstractmethod
    def report(self, message: Optional[str] = None, increment: Optional[int] = None) -> None: ...

    @abstractmethod
    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback for the user pressing the cancel button."""
        ...

    @abstractmethod
    def close(self) -> None: ...


class DecorationType(ABC):
    """Opaque rendering style handle created by the host."""

    options: dict


class ReportPanel(ABC):
    """HTML panel used for the doctor report."""

    @abstractmethod
    def set_html(self, html: str) -> None: ...

    @abstractmethod
    def reveal(self) -> None: ...

    @abstractmethod
    def on_dispose(self, callback: Callable[[], None]) -> None: ...


class ActiveEditor(ABC):
    """Read-only view of the editor that currently has focus."""

    uri: str
    language_id: str
    cursor: Any  # lsprotocol Position


class Host(ABC):
    """Everything the client consumes from the editor."""

    output: OutputChannel

    # Commands

    @abstractmethod
    def registered_commands(self) -> set[str]:
        """Return the ids of every command currently known to the editor."""
        ...

    @abstractmethod
    def register_command(self, command: str, callback: CommandCallback) -> Disposable:
        """Register a command.

        Raises:
            ValueError: If the command id is already registered
        """
        ...

    @abstractmethod
    def execute_command(self, command: str, *args: Any) -> Any: ...

    # Window

    @abstractmethod
    def create_status_item(self) -> StatusItem: ...

    @abstractmethod
    def create_progress(self, title: str, cancellable: bool, notification: bool = True) -> Progress:
        """Create a progress indicator.

        Args:
            title: Title shown next to the indicator
            cancellable: Whether the user can cancel it
            notification: True for a notification toast, False for the
                indeterminate window indicator
        """
        ...

    @abstractmethod
    def show_error_message(self, message: str, *choices: str) -> Awaitable[Optional[str]]: ...

    @abstractmethod
    def show_input_box(self, options: dict) -> Awaitable[Optional[str]]: ...

    @abstractmethod
    def show_quick_pick(self, items: list[dict], options: dict) -> Awaitable[Optional[dict]]: ...

    @abstractmethod
    def create_report_panel(self, title: str) -> ReportPanel: ...

    # Documents

    @abstractmethod
    def active_editor(self) -> Optional[ActiveEditor]: ...

    @abstractmethod
    def create_decoration_type(self, options: dict) -> DecorationType: ...

    @abstractmethod
    def set_decorations(self, uri: str, decoration_type: DecorationType, decorations: list) -> None: ...

    @abstractmethod
    def open_document(self, uri: str, selection: Range) -> Awaitable[None]: ...

    @abstractmethod
    def open_folder(self, uri: str, new_window: bool) -> None: ...

    @abstractmethod
    def refresh_code_lenses(self) -> None: ...

    @abstractmethod
    def workspace_folders(self) -> list[str]: ...

    # Events

    @abstractmethod
    def on_active_editor_changed(self, callback: Callable[[Optional[ActiveEditor]], None]) -> Disposable: ...

    @abstractmethod
    def on_window_state_changed(self, callback: Callable[[bool], None]) -> Disposable:
        """Subscribe to window focus changes; the callback receives ``focused``."""
        ...
