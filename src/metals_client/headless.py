"""A terminal host for running the client without an editor.

Used by the ``metals-client`` CLI. Widgets degrade to console output: the
status line and progress are printed, prompts are answered as cancelled, and
decorations are kept in memory and summarized.
"""

from __future__ import annotations

import asyncio
import inspect
from pathlib import Path
from typing import Any, Callable, Optional

from lsprotocol.types import Position, Range
from rich.console import Console

from metals_client.focus import SUPPORTED_LANGUAGES
from metals_client.host import (
    ActiveEditor,
    DecorationType,
    Disposable,
    Host,
    OutputChannel,
    Progress,
    ReportPanel,
    StatusItem,
)

__all__ = ["ConsoleHost", "FileEditor"]


class _ConsoleOutputChannel(OutputChannel):
    def __init__(self, console: Console, visible: bool) -> None:
        self._console = console
        self._visible = visible
        self._pending: list[str] = []

    @property
    def visible(self) -> bool:
        return self._visible

    def append_line(self, line: str) -> None:
        if self._visible:
            self._console.print(line, markup=False, highlight=False)
        else:
            self._pending.append(line)

    def show(self, preserve_focus: bool = True) -> None:
        self._visible = True
        pending, self._pending = self._pending, []
        for line in pending:
            self._console.print(line, markup=False, highlight=False)

    def hide(self) -> None:
        self._visible = False


class _ConsoleStatusItem(StatusItem):
    def __init__(self, console: Console) -> None:
        self._console = console
        self._shown = False
        self._text = ""
        self._last: Optional[str] = None

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: str) -> None:
        self._text = value
        if self._shown:
            self._render()

    def _render(self) -> None:
        if self.text and self.text != self._last:
            self._last = self.text
            self._console.print(f"[cyan]status[/cyan] {self.text}", highlight=False)

    def show(self) -> None:
        self._shown = True
        self._render()

    def hide(self) -> None:
        self._shown = False


class _ConsoleProgress(Progress):
    def __init__(self, console: Console, title: str) -> None:
        self._console = console
        self._title = title
        self._callbacks: list[Callable[[], None]] = []
        self._closed = False
        self._console.print(f"[yellow]…[/yellow] {title}", highlight=False)

    def report(self, message: Optional[str] = None, increment: Optional[int] = None) -> None:
        if self._closed:
            return
        if increment == 100:
            self._console.print(f"[green]✓[/green] {self._title}", highlight=False)
        elif message:
            self._console.print(f"  {self._title}: {message}", style="dim", highlight=False)

    def on_cancel(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def cancel(self) -> None:
        for callback in list(self._callbacks):
            callback()

    def close(self) -> None:
        self._closed = True


class _ConsoleDecorationType(DecorationType):
    def __init__(self, options: dict) -> None:
        self.options = options


class _ConsoleReportPanel(ReportPanel):
    def __init__(self, console: Console, title: str) -> None:
        self._console = console
        self._title = title
        self._dispose_callbacks: list[Callable[[], None]] = []

    def set_html(self, html: str) -> None:
        self._console.print(f"[bold]{self._title}[/bold] updated ({len(html)} bytes of HTML)")

    def reveal(self) -> None:
        pass

    def on_dispose(self, callback: Callable[[], None]) -> None:
        self._dispose_callbacks.append(callback)


class FileEditor(ActiveEditor):
    """An "editor" for a file on disk, used to focus a document from the CLI."""

    def __init__(self, path: Path) -> None:
        self.uri = path.resolve().as_uri()
        suffix = path.suffix.lstrip(".")
        self.language_id = suffix if suffix in SUPPORTED_LANGUAGES else "plaintext"
        self.cursor = Position(line=0, character=0)


class ConsoleHost(Host):
    def __init__(self, console: Console, workspace: Path, show_logs: bool = True) -> None:
        self._console = console
        self._workspace = workspace
        self.output = _ConsoleOutputChannel(console, show_logs)
        self._commands: dict[str, Callable[..., Any]] = {}
        self._editor: Optional[ActiveEditor] = None
        self._editor_listeners: list[Callable[[Optional[ActiveEditor]], None]] = []
        self._window_listeners: list[Callable[[bool], None]] = []
        self.decorations: dict[str, list] = {}

    # Commands

    def registered_commands(self) -> set[str]:
        return set(self._commands)

    def register_command(self, command: str, callback: Callable[..., Any]) -> Disposable:
        if command in self._commands:
            raise ValueError(f"command '{command}' already exists")
        self._commands[command] = callback
        return Disposable(lambda: self._commands.pop(command, None))

    def execute_command(self, command: str, *args: Any) -> Any:
        callback = self._commands.get(command)
        if callback is None:
            self._console.print(f"[dim]editor command not available: {command}[/dim]")
            return None
        result = callback(*args)
        if inspect.isawaitable(result):
            return asyncio.ensure_future(result)
        return result

    async def run_command(self, command: str, *args: Any) -> Any:
        """Run a registered command to completion."""
        if command not in self._commands:
            raise KeyError(command)
        result = self._commands[command](*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    # Window

    def create_status_item(self) -> StatusItem:
        return _ConsoleStatusItem(self._console)

    def create_progress(self, title: str, cancellable: bool, notification: bool = True) -> Progress:
        return _ConsoleProgress(self._console, title)

    async def show_error_message(self, message: str, *choices: str) -> Optional[str]:
        self._console.print(f"[red]{message}[/red]", highlight=False)
        return None

    async def show_input_box(self, options: dict) -> Optional[str]:
        self._console.print(f"[dim]input requested: {options.get('prompt', '')} (cancelled)[/dim]")
        return None

    async def show_quick_pick(self, items: list[dict], options: dict) -> Optional[dict]:
        self._console.print(f"[dim]choice requested among {len(items)} items (cancelled)[/dim]")
        return None

    def create_report_panel(self, title: str) -> ReportPanel:
        return _ConsoleReportPanel(self._console, title)

    # Documents

    def active_editor(self) -> Optional[ActiveEditor]:
        return self._editor

    def focus(self, editor: Optional[ActiveEditor]) -> None:
        self._editor = editor
        for listener in list(self._editor_listeners):
            listener(editor)

    def create_decoration_type(self, options: dict) -> DecorationType:
        return _ConsoleDecorationType(options)

    def set_decorations(self, uri: str, decoration_type: DecorationType, decorations: list) -> None:
        self.decorations[uri] = list(decorations)
        self._console.print(f"[dim]{len(decorations)} decorations for {uri}[/dim]")

    async def open_document(self, uri: str, selection: Range) -> None:
        line = selection.start.line + 1
        column = selection.start.character + 1
        self._console.print(f"open {uri}:{line}:{column}", highlight=False)

    def open_folder(self, uri: str, new_window: bool) -> None:
        self._console.print(f"open folder {uri}{' (new window)' if new_window else ''}", highlight=False)

    def refresh_code_lenses(self) -> None:
        pass

    def workspace_folders(self) -> list[str]:
        return [self._workspace.resolve().as_uri()]

    # Events

    def on_active_editor_changed(self, callback: Callable[[Optional[ActiveEditor]], None]) -> Disposable:
        self._editor_listeners.append(callback)
        return Disposable(lambda: self._editor_listeners.remove(callback))

    def on_window_state_changed(self, callback: Callable[[bool], None]) -> Disposable:
        self._window_listeners.append(callback)
        return Disposable(lambda: self._window_listeners.remove(callback))
