"""Inline decorations for the active document.

The server pushes the complete decoration set for a document whenever it
changes. Only the document in the active editor is ever rendered; pushes for
other documents are dropped and the server is expected to re-send once that
document gains focus.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from lsprotocol.types import Range

from metals_client.logging import LogLevel
from metals_client.protocol import DecorationsChanged
from metals_client.session import Session

__all__ = [
    "DEFAULT_DECORATION_OPTIONS",
    "Decoration",
    "StaleTargetError",
    "DecorationSynchronizer",
    "normalize_uri",
]

DEFAULT_DECORATION_OPTIONS = {"isWholeLine": True, "rangeBehavior": "OpenClosed"}


@dataclass(frozen=True)
class Decoration:
    range: Range
    hover_message: Any = None
    render_options: Optional[dict] = None


class StaleTargetError(Exception):
    """A decoration push named a document that is not the active one."""

    def __init__(self, uri: str, active_uri: Optional[str]) -> None:
        super().__init__(f"Ignoring decorations for non-active document '{uri}'.")
        self.uri = uri
        self.active_uri = active_uri


def normalize_uri(uri: str) -> str:
    """Canonical form of a URI so that differently escaped spellings compare equal.

    >>> normalize_uri("FILE:///tmp/a%20b.scala") == normalize_uri("file:///tmp/a b.scala")
    True
    """
    parts = urlsplit(uri)
    path = quote(unquote(parts.path), safe="/:@")
    return urlunsplit((parts.scheme.lower(), parts.netloc, path, parts.query, parts.fragment))


class DecorationSynchronizer:
    def __init__(self, session: Session) -> None:
        self._host = session.host
        self._logger = session.logger
        self._decoration_type = self._host.create_decoration_type(dict(DEFAULT_DECORATION_OPTIONS))
        self._document: Optional[str] = None
        self._decorations: list[Decoration] = []

    @property
    def decoration_type(self):
        return self._decoration_type

    @property
    def document(self) -> Optional[str]:
        """URI of the document the current decoration set belongs to."""
        return self._document

    @property
    def decorations(self) -> list[Decoration]:
        return list(self._decorations)

    def set_decoration_type(self, options: dict) -> None:
        """Use a new rendering style for subsequent pushes.

        Decorations already on screen keep the old style until replaced.
        """
        self._decoration_type = self._host.create_decoration_type(options)
        self._logger.log(LogLevel.DEBUG, "Decoration type changed")

    def publish(self, message: DecorationsChanged) -> None:
        try:
            self._apply(message)
        except StaleTargetError as e:
            self._logger.log(LogLevel.INFO, str(e))

    def _apply(self, message: DecorationsChanged) -> None:
        # Read the active editor at processing time, it may have changed since the push was sent
        editor = self._host.active_editor()
        active_uri = editor.uri if editor is not None else None
        if active_uri is None or normalize_uri(message.uri) != normalize_uri(active_uri):
            raise StaleTargetError(message.uri, active_uri)

        decorations = [
            Decoration(
                range=option.range,
                hover_message=option.hover_message,
                render_options=option.render_options,
            )
            for option in message.options
        ]
        self._host.set_decorations(active_uri, self._decoration_type, decorations)
        self._document = active_uri
        self._decorations = decorations
