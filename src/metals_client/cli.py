"""Command-line interface for the Metals client."""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from metals_client import __version__
from metals_client.commands import RequestFailure
from metals_client.config import (
    PROJECT_CONFIG_NAME,
    ClientConfig,
    ConfigError,
    SettingsStore,
    get_user_config_path,
    load_config,
    parse_config_file,
)
from metals_client.console_logger import ConsoleLogger, OutputChannelLogger
from metals_client.extension import MetalsExtension
from metals_client.headless import ConsoleHost, FileEditor
from metals_client.logging import LogLevel, parse_log_level
from metals_client.protocol import to_plain

app = typer.Typer(
    help="Metals client - drive a Metals language server from the terminal",
    add_completion=False,
    no_args_is_help=True,
)
config_app = typer.Typer(help="Read and write client settings", no_args_is_help=True)
app.add_typer(config_app, name="config")
console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"metals-client version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", callback=_version_callback, is_eager=True, help="Show version"
    ),
) -> None:
    """Metals client."""


def _resolve_config(workspace: Path, log_level: Optional[str]) -> ClientConfig:
    try:
        config = load_config(workspace)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if log_level:
        try:
            config = replace(config, log_level=parse_log_level(log_level))
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
    return config


def _parse_argument(raw: str) -> Any:
    """Command arguments are JSON when they parse as JSON, plain strings otherwise."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@app.command()
def run(
    workspace: Path = typer.Argument(Path("."), help="Workspace root"),
    focus: Optional[Path] = typer.Option(None, "--focus", "-f", help="Document to focus after startup"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-L", help="fatal, error, warn, info, debug or trace"),
) -> None:
    """Start a session and keep it running until interrupted."""
    config = _resolve_config(workspace, log_level)
    logger = ConsoleLogger(console, config.log_level)
    logger.log(LogLevel.DEBUG, f"Server command: {' '.join(config.full_server_command())}", highlight=False)
    try:
        asyncio.run(_run(workspace, config, focus))
    except KeyboardInterrupt:
        logger.log(LogLevel.INFO, "Stopped")


async def _run(workspace: Path, config: ClientConfig, focus: Optional[Path]) -> None:
    host = ConsoleHost(console, workspace)
    extension = MetalsExtension(host, OutputChannelLogger(host.output, config.log_level))
    session = await extension.activate(config)
    if session is None:
        raise typer.Exit(1)
    try:
        if focus is not None:
            host.focus(FileEditor(focus))
        await asyncio.Event().wait()
    finally:
        await extension.deactivate()


@app.command("exec")
def exec_command(
    command: str = typer.Argument(..., help="Server command id, e.g. build-import"),
    arguments: Optional[List[str]] = typer.Argument(None, help="Arguments, parsed as JSON when possible"),
    workspace: Path = typer.Option(Path("."), "--workspace", "-w", help="Workspace root"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-L", help="fatal, error, warn, info, debug or trace"),
) -> None:
    """Run one server command and print its result."""
    config = _resolve_config(workspace, log_level)
    parsed = [_parse_argument(raw) for raw in arguments or []]
    result = asyncio.run(_exec(workspace, config, command, parsed))
    if result is not None:
        console.print_json(data=to_plain(result))


async def _exec(workspace: Path, config: ClientConfig, command: str, arguments: list) -> Any:
    host = ConsoleHost(console, workspace, show_logs=config.log_level.value >= LogLevel.DEBUG.value)
    extension = MetalsExtension(host, OutputChannelLogger(host.output, config.log_level))
    session = await extension.activate(config)
    if session is None:
        raise typer.Exit(1)
    try:
        return await session.components.commands.invoke(command, arguments or None)
    except RequestFailure as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        await extension.deactivate()


def _settings_store(project: Optional[Path]) -> SettingsStore:
    if project is not None:
        return SettingsStore(project / PROJECT_CONFIG_NAME)
    return SettingsStore(get_user_config_path())


@config_app.command("list")
def config_list(
    project: Optional[Path] = typer.Option(None, "--project", "-p", help="Use the project file in this directory"),
) -> None:
    """Show stored settings."""
    store = _settings_store(project)
    table = Table(title=str(store.path))
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    try:
        items = store.items()
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    for key in sorted(items):
        table.add_row(key, json.dumps(items[key]))
    console.print(table)


@config_app.command("get")
def config_get(
    key: str,
    project: Optional[Path] = typer.Option(None, "--project", "-p", help="Use the project file in this directory"),
) -> None:
    """Print one setting."""
    try:
        value = _settings_store(project).get(key)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if value is None:
        console.print(f"[yellow]{key} is not set[/yellow]")
        raise typer.Exit(1)
    console.print(json.dumps(value))


@config_app.command("set")
def config_set(
    key: str,
    value: str = typer.Argument(..., help="YAML value, e.g. debug or '[-Xss4m]'"),
    project: Optional[Path] = typer.Option(None, "--project", "-p", help="Use the project file in this directory"),
) -> None:
    """Store one setting; an empty value removes it."""
    store = _settings_store(project)
    try:
        previous = store.get(key)
        store.update(key, yaml.safe_load(value) if value else None)
        try:
            parse_config_file(store.path)
        except ConfigError:
            store.update(key, previous)
            raise
    except (ConfigError, yaml.YAMLError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Updated {store.path}[/green]")


if __name__ == "__main__":
    app()
