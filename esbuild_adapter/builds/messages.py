"""Parsing and formatting of esbuild diagnostics.

This module handles:
- Parsing esbuild's terminal log output (stderr) into Message records
- Rendering Message records in esbuild's terminal layout, optionally colorized

esbuild is invoked with ``--color=false`` so its log output contains no
escape sequences. A log entry looks like::

    ✘ [ERROR] Could not resolve "./missing"

        src/main.ts:1:7:
          1 │ import "./missing";
            ╵        ~~~~~~~~~~~

      A note about the error.

"""

from __future__ import annotations

import io
import logging
import re
from typing import Any

from rich.console import Console
from rich.text import Text

from esbuild_adapter.types import Location, Message, MessageKind, Note

logger = logging.getLogger(__name__)

TITLE_RE = re.compile(
    r"^[✘▲X!]\s+\[(ERROR|WARNING)\]\s+"
    r"(?:\[plugin ([^\]]+)\]\s+)?"
    r"(.*?)"
    r"(?:\s+\[([a-z0-9-]+)\])?$"
)
SUMMARY_RE = re.compile(
    r"^\d+ (?:warning|error)s?(?: and \d+ (?:warning|error)s?)?(?: \(.*\))?$"
)
CODE_RE = re.compile(r"^\s+(\d+) │ ?(.*)$")
MARKER_RE = re.compile(r"^\s+[│╵](?: (.*))?$")
LOCATION_RE = re.compile(r"^ {4}(\S.*?):(\d+):(\d+):$")
NOTE_RE = re.compile(r"^ {2}(\S.*)$")

SYMBOLS = {MessageKind.ERROR: "✘", MessageKind.WARNING: "▲"}
STYLES = {MessageKind.ERROR: "bold red", MessageKind.WARNING: "bold yellow"}

# Wide enough that rich never wraps a source line
RENDER_WIDTH = 10_000


class _PendingMessage:
    """Accumulates the lines of one log entry."""

    def __init__(
        self, kind: MessageKind, text: str, plugin_name: str, message_id: str
    ) -> None:
        self.kind = kind
        self.text = text
        self.plugin_name = plugin_name
        self.id = message_id
        self.location: dict[str, Any] | None = None
        self.notes: list[dict[str, Any]] = []

    def _current_location(self) -> dict[str, Any] | None:
        if self.notes:
            return self.notes[-1]["location"]
        return self.location

    def feed(self, line: str) -> None:
        location = self._current_location()

        if match := CODE_RE.match(line):
            if location is not None:
                location["line_text"] = match.group(2)
        elif match := MARKER_RE.match(line):
            if location is not None:
                _apply_marker(location, (match.group(1) or "").strip())
        elif match := LOCATION_RE.match(line):
            parsed = {
                "file": match.group(1),
                "line": int(match.group(2)),
                "column": int(match.group(3)),
            }
            if self.notes:
                self.notes[-1]["location"] = parsed
            else:
                self.location = parsed
        elif match := NOTE_RE.match(line):
            self.notes.append({"text": match.group(1), "location": None})
        elif self.notes:
            self.notes[-1]["text"] += "\n" + line.strip()
        else:
            self.text += "\n" + line.strip()

    def to_message(self) -> Message:
        return Message(
            text=self.text,
            id=self.id,
            plugin_name=self.plugin_name,
            location=Location(**self.location) if self.location else None,
            notes=tuple(
                Note(
                    text=note["text"],
                    location=Location(**note["location"]) if note["location"] else None,
                )
                for note in self.notes
            ),
        )


def _apply_marker(location: dict[str, Any], marker: str) -> None:
    """Record an underline or suggestion line on a location."""
    if not marker:
        return
    if set(marker) == {"~"}:
        location["length"] = len(marker)
    elif marker == "^":
        location["length"] = 0
    else:
        location["suggestion"] = marker


def parse_log_output(output: str) -> tuple[list[Message], list[Message]]:
    """Parse esbuild log output into errors and warnings.

    Lines that do not belong to a log entry (including the trailing
    "1 warning and 1 error" summary) are ignored.

    Args:
        output: Text esbuild wrote to stderr.

    Returns:
        Tuple of (errors, warnings) in the order they were reported.
    """
    errors: list[Message] = []
    warnings: list[Message] = []
    pending: _PendingMessage | None = None

    def flush() -> None:
        if pending is None:
            return
        target = errors if pending.kind is MessageKind.ERROR else warnings
        target.append(pending.to_message())

    for raw_line in output.splitlines():
        line = raw_line.rstrip()
        if not line:
            continue

        if match := TITLE_RE.match(line):
            flush()
            pending = _PendingMessage(
                kind=MessageKind(match.group(1).lower()),
                text=match.group(3),
                plugin_name=match.group(2) or "",
                message_id=match.group(4) or "",
            )
            continue

        if pending is None or SUMMARY_RE.match(line):
            continue
        pending.feed(line)

    flush()
    logger.debug(
        "Parsed %d error(s) and %d warning(s) from esbuild output",
        len(errors),
        len(warnings),
    )
    return errors, warnings


def _append_location(text: Text, location: Location) -> None:
    text.append(
        f"    {location.file}:{location.line}:{location.column}:\n", style="bold"
    )
    if location.line_text:
        gutter = str(location.line)
        pad = " " * len(gutter)
        marker = "~" * location.length if location.length else "^"

        text.append(f"      {gutter} │ ", style="dim")
        text.append(location.line_text + "\n")
        text.append(f"      {pad} {'│' if location.suggestion else '╵'} ", style="dim")
        text.append(" " * location.column + marker + "\n", style="green")
        if location.suggestion:
            text.append(f"      {pad} ╵ ", style="dim")
            text.append(" " * location.column + location.suggestion + "\n", style="green")
    text.append("\n")


def render_message(message: Message, kind: MessageKind) -> Text:
    """Lay out a single message as rich Text."""
    text = Text()
    text.append(f"{SYMBOLS[kind]} [{kind.value.upper()}]", style=STYLES[kind])
    text.append(" ")
    if message.plugin_name:
        text.append(f"[plugin {message.plugin_name}] ", style="bold")
    text.append(message.text, style="bold")
    if message.id:
        text.append(f" [{message.id}]", style="dim")
    text.append("\n\n")

    if message.location is not None:
        _append_location(text, message.location)

    for note in message.notes:
        text.append(f"  {note.text}\n\n")
        if note.location is not None:
            _append_location(text, note.location)

    return text


def _to_string(text: Text, color: bool) -> str:
    console = Console(
        file=io.StringIO(),
        force_terminal=color,
        no_color=not color,
        color_system="standard" if color else None,
        highlight=False,
        markup=False,
        emoji=False,
        soft_wrap=True,
        width=RENDER_WIDTH,
    )
    with console.capture() as capture:
        console.print(text, end="")
    return capture.get()


def format_messages(
    messages: list[Message],
    kind: MessageKind | str,
    color: bool = False,
) -> list[str]:
    """Render messages in esbuild's terminal layout.

    Args:
        messages: Diagnostics to render.
        kind: Whether the messages are errors or warnings.
        color: Include ANSI color sequences.

    Returns:
        One rendered string per message.
    """
    kind = MessageKind(kind)
    return [_to_string(render_message(message, kind), color) for message in messages]


__all__ = [
    "format_messages",
    "parse_log_output",
    "render_message",
]
