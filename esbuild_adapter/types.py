"""Shared type definitions for esbuild_adapter.

This module contains dataclasses, enums, and protocols shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol


class MessageKind(str, Enum):
    """Kind of a bundler diagnostic."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Location:
    """Source location attached to a diagnostic.

    Attributes:
        file: Path of the source file, relative to the working directory.
        line: 1-based line number.
        column: 0-based column number.
        length: Number of characters underlined (0 for a caret marker).
        line_text: Text of the source line.
        suggestion: Optional replacement text offered by the bundler.
    """

    file: str
    line: int
    column: int
    length: int = 0
    line_text: str = ""
    suggestion: str = ""


@dataclass(frozen=True)
class Note:
    """Additional information attached to a diagnostic."""

    text: str
    location: Location | None = None


@dataclass(frozen=True)
class Message:
    """A warning or error reported by the bundler.

    Attributes:
        text: Primary message text.
        id: Bundler message identifier (e.g. ``equals-negative-zero``).
        plugin_name: Name of the plugin that produced the message, if any.
        location: Primary source location, if any.
        notes: Follow-up notes.
        detail: Free-form detail carried along with the message.
    """

    text: str
    id: str = ""
    plugin_name: str = ""
    location: Location | None = None
    notes: tuple[Note, ...] = ()
    detail: object = None


@dataclass(frozen=True)
class OutputFile:
    """An emitted bundle artifact held in memory."""

    path: str
    contents: bytes

    @property
    def text(self) -> str:
        """Contents decoded as UTF-8."""
        return self.contents.decode("utf-8")

    def with_path(self, path: str) -> "OutputFile":
        """Return a copy of this file at another path."""
        return replace(self, path=path)


@dataclass(frozen=True)
class FileInfo:
    """Summary of an initial (entry point) output file.

    Attributes:
        file: Workspace-relative path of the output file.
        name: Leading dot-delimited segment of the base name
            (``polyfills`` for ``polyfills.7S5G3MDY.js``).
        extension: File extension including the leading dot.
    """

    file: str
    name: str
    extension: str


class MessageSink(Protocol):
    """Logging sink with separate warning and error channels.

    ``logging.Logger`` and ``logging.LoggerAdapter`` satisfy this protocol.
    """

    def warning(self, msg: str) -> None: ...

    def error(self, msg: str) -> None: ...


__all__ = [
    "FileInfo",
    "Location",
    "Message",
    "MessageKind",
    "MessageSink",
    "Note",
    "OutputFile",
]
