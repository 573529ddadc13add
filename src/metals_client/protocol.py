"""Metals protocol extensions: method names, command identifiers and messages.

Inbound server messages are decoded into a closed set of frozen dataclasses so
that routing is a matter of checking the variant instead of comparing strings
all over the code base. Anything the decoder does not know becomes
``Unrecognized`` and is logged by the router, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from lsprotocol.converters import get_converter
from lsprotocol.types import Location, Range

__all__ = [
    "METALS_STATUS",
    "METALS_EXECUTE_CLIENT_COMMAND",
    "METALS_SLOW_TASK",
    "METALS_PUBLISH_DECORATIONS",
    "METALS_DECORATION_TYPE_DID_CHANGE",
    "METALS_DID_FOCUS",
    "METALS_WINDOW_STATE_DID_CHANGE",
    "METALS_INPUT_BOX",
    "METALS_QUICK_PICK",
    "ServerCommands",
    "ClientCommands",
    "StatusUpdate",
    "ExecuteClientCommand",
    "DecorationTypeChanged",
    "DecorationOption",
    "DecorationsChanged",
    "Unrecognized",
    "InboundNotification",
    "SlowTaskParams",
    "OpenWindowParams",
    "UnrecognizedMessage",
    "decode_notification",
    "decode_slow_task",
    "decode_location",
    "decode_open_window",
    "to_plain",
]

METALS_STATUS = "metals/status"
METALS_EXECUTE_CLIENT_COMMAND = "metals/executeClientCommand"
METALS_SLOW_TASK = "metals/slowTask"
METALS_PUBLISH_DECORATIONS = "metals/publishDecorations"
METALS_DECORATION_TYPE_DID_CHANGE = "metals/decorationTypeDidChange"
METALS_DID_FOCUS = "metals/didFocusTextDocument"
METALS_WINDOW_STATE_DID_CHANGE = "metals/windowStateDidChange"
METALS_INPUT_BOX = "metals/inputBox"
METALS_QUICK_PICK = "metals/quickPick"


class ServerCommands(str, Enum):
    """Commands executed by the server through workspace/executeCommand."""

    BUILD_IMPORT = "build-import"
    BUILD_RESTART = "build-restart"
    BUILD_CONNECT = "build-connect"
    SOURCES_SCAN = "sources-scan"
    DOCTOR_RUN = "doctor-run"
    CASCADE_COMPILE = "compile-cascade"
    CLEAN_COMPILE = "compile-clean"
    CANCEL_COMPILATION = "compile-cancel"
    AMMONITE_START = "ammonite-start"
    AMMONITE_STOP = "ammonite-stop"
    GOTO_SUPER_METHOD = "goto-super-method"
    SUPER_METHOD_HIERARCHY = "super-method-hierarchy"
    RESET_CHOICE = "reset-choice"
    GOTO = "goto"
    NEW_SCALA_FILE = "new-scala-file"
    NEW_SCALA_PROJECT = "new-scala-project"


class ClientCommands(str, Enum):
    """Commands the server asks the client to run, or that the client exposes."""

    GOTO_LOCATION = "metals-goto-location"
    REFRESH_MODEL = "metals-model-refresh"
    OPEN_FOLDER = "metals-open-folder"
    RUN_DOCTOR = "metals-doctor-run"
    RELOAD_DOCTOR = "metals-doctor-reload"
    FOCUS_DIAGNOSTICS = "metals-diagnostics-focus"
    TOGGLE_LOGS = "metals-toggle-logs"
    ECHO_COMMAND = "metals-echo-command"


class UnrecognizedMessage(Exception):
    """Raised when a known message kind carries a payload that cannot be decoded."""

    pass


@dataclass(frozen=True)
class StatusUpdate:
    text: str
    show: bool = False
    hide: bool = False
    tooltip: Optional[str] = None
    command: Optional[str] = None


@dataclass(frozen=True)
class ExecuteClientCommand:
    command: str
    arguments: list = field(default_factory=list)


@dataclass(frozen=True)
class DecorationTypeChanged:
    options: dict


@dataclass(frozen=True)
class DecorationOption:
    range: Range
    hover_message: Any = None
    render_options: Optional[dict] = None


@dataclass(frozen=True)
class DecorationsChanged:
    uri: str
    options: list[DecorationOption]


@dataclass(frozen=True)
class Unrecognized:
    method: str
    params: Any = None


InboundNotification = Union[
    StatusUpdate,
    ExecuteClientCommand,
    DecorationTypeChanged,
    DecorationsChanged,
    Unrecognized,
]


@dataclass(frozen=True)
class SlowTaskParams:
    message: str
    seconds_elapsed: int = 0
    quiet_logs: bool = False


@dataclass(frozen=True)
class OpenWindowParams:
    uri: str
    open_new_window: bool = False


def to_plain(value: Any) -> Any:
    """Convert transport-level params into plain dicts, lists and scalars.

    pygls hands params of non-standard methods over as nested namedtuples,
    lsprotocol params are attrs classes, and tests send plain dicts. All of
    them end up as JSON-like structures with the wire (camelCase) keys.
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if hasattr(value, "_asdict"):
        return {key: to_plain(item) for key, item in value._asdict().items()}
    if hasattr(type(value), "__attrs_attrs__"):
        return get_converter().unstructure(value)
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


def _require_mapping(method: str, params: Any) -> dict:
    data = to_plain(params)
    if not isinstance(data, dict):
        raise UnrecognizedMessage(f"{method}: expected an object, got {type(data).__name__}")
    return data


def _structure(method: str, data: Any, cls: type):
    try:
        return get_converter().structure(data, cls)
    except Exception as e:
        raise UnrecognizedMessage(f"{method}: invalid {cls.__name__}: {data!r}") from e


def _decode_status(params: Any) -> StatusUpdate:
    data = _require_mapping(METALS_STATUS, params)
    return StatusUpdate(
        text=str(data.get("text") or ""),
        show=bool(data.get("show")),
        hide=bool(data.get("hide")),
        tooltip=data.get("tooltip") or None,
        command=data.get("command") or None,
    )


def _decode_client_command(params: Any) -> ExecuteClientCommand:
    data = _require_mapping(METALS_EXECUTE_CLIENT_COMMAND, params)
    command = data.get("command")
    if not isinstance(command, str):
        raise UnrecognizedMessage(f"{METALS_EXECUTE_CLIENT_COMMAND}: missing 'command'")
    arguments = data.get("arguments") or []
    if not isinstance(arguments, list):
        arguments = [arguments]
    return ExecuteClientCommand(command=command, arguments=arguments)


def _decode_decorations(params: Any) -> DecorationsChanged:
    data = _require_mapping(METALS_PUBLISH_DECORATIONS, params)
    uri = data.get("uri", data.get("documentUri"))
    if not isinstance(uri, str):
        raise UnrecognizedMessage(f"{METALS_PUBLISH_DECORATIONS}: missing document uri")
    options = []
    for option in data.get("options") or []:
        if not isinstance(option, dict):
            raise UnrecognizedMessage(f"{METALS_PUBLISH_DECORATIONS}: bad option {option!r}")
        options.append(
            DecorationOption(
                range=_structure(METALS_PUBLISH_DECORATIONS, option.get("range"), Range),
                hover_message=option.get("hoverMessage", option.get("hoverText")),
                render_options=option.get("renderOptions"),
            )
        )
    return DecorationsChanged(uri=uri, options=options)


def _decode_decoration_type(params: Any) -> DecorationTypeChanged:
    return DecorationTypeChanged(options=_require_mapping(METALS_DECORATION_TYPE_DID_CHANGE, params))


_DECODERS = {
    METALS_STATUS: _decode_status,
    METALS_EXECUTE_CLIENT_COMMAND: _decode_client_command,
    METALS_PUBLISH_DECORATIONS: _decode_decorations,
    METALS_DECORATION_TYPE_DID_CHANGE: _decode_decoration_type,
}


def decode_notification(method: str, params: Any) -> InboundNotification:
    """Decode an inbound server notification into its variant.

    Unknown methods decode to ``Unrecognized``.

    Raises:
        UnrecognizedMessage: If a known method carries a malformed payload
    """
    decoder = _DECODERS.get(method)
    if decoder is None:
        return Unrecognized(method=method, params=to_plain(params))
    return decoder(params)


def decode_slow_task(params: Any) -> SlowTaskParams:
    data = _require_mapping(METALS_SLOW_TASK, params)
    seconds = data.get("secondsElapsed", data.get("secondsElapsedSoFar")) or 0
    return SlowTaskParams(
        message=str(data.get("message", "")),
        seconds_elapsed=int(seconds),
        quiet_logs=bool(data.get("quietLogs")),
    )


def decode_location(value: Any) -> Location:
    return _structure(ClientCommands.GOTO_LOCATION.value, to_plain(value), Location)


def decode_open_window(value: Any) -> OpenWindowParams:
    data = _require_mapping(ClientCommands.OPEN_FOLDER.value, value)
    uri = data.get("uri")
    if not isinstance(uri, str):
        raise UnrecognizedMessage(f"{ClientCommands.OPEN_FOLDER.value}: missing 'uri'")
    return OpenWindowParams(uri=uri, open_new_window=bool(data.get("openNewWindow")))
