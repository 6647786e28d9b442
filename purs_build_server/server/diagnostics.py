import asyncio
import os
from dataclasses import dataclass
from typing import Any, Literal

from rich.console import Console
from rich.text import Text

from .errors import ProtocolError

__all__ = [
    "Position",
    "Diagnostic",
    "RenderedDiagnostic",
    "adjust_span",
    "render",
    "render_file",
]

Severity = Literal["error", "warning"]

_console = Console(
    color_system="standard", force_terminal=True, no_color=False, highlight=False, width=10_000
)


def _style(text: str, style: str, colors: bool) -> str:
    if not colors:
        return text

    with _console.capture() as capture:
        _console.print(Text(text, style=style), end="")
    return capture.get()


@dataclass(frozen=True)
class Position:
    """1-based span reported by the compiler"""

    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    error_code: str
    filename: str
    position: Position
    message: str

    @staticmethod
    def from_json(data: Any, severity: Severity) -> "Diagnostic":
        try:
            position = data["position"]
            return Diagnostic(
                severity=severity,
                error_code=str(data["errorCode"]),
                filename=str(data["filename"]),
                position=Position(
                    start_line=int(position["startLine"]),
                    start_column=int(position["startColumn"]),
                    end_line=int(position["endLine"]),
                    end_column=int(position["endColumn"]),
                ),
                message=str(data["message"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError(f"Malformed diagnostic {data!r}: {exc}") from exc


@dataclass(frozen=True)
class RenderedDiagnostic:
    diagnostic: Diagnostic
    text: str


def adjust_span(lines: list[str], position: Position) -> tuple[list[str], Position]:
    """Drop the artifacts of a span that ends on the line break after its last line.

    A multi-line span whose end column is 1 really ends at the end of the
    previous line; blank lines left at the end of the snippet are trimmed
    too. Returns the retained lines and the adjusted position.
    """
    ends_on_newline = position.end_column == 1 and position.start_line != position.end_line
    if not ends_on_newline or len(lines) < 2:
        return lines, position

    lines = lines[:-1]
    end_line = position.end_line - 1

    trimmed = list(lines)
    while len(trimmed) > 1 and trimmed[-1] == "":
        trimmed.pop()

    end_line -= len(lines) - len(trimmed)
    end_column = len(trimmed[-1]) or 1

    return trimmed, Position(position.start_line, position.start_column, end_line, end_column)


def render(
    source: str,
    diagnostic: Diagnostic,
    index: int,
    total: int,
    context: str | None = None,
    colors: bool = False,
) -> str:
    """Format a diagnostic as a numbered header followed by an annotated source excerpt"""
    pos = diagnostic.position
    lines = source.split("\n")[pos.start_line - 1 : pos.end_line]
    lines, pos = adjust_span(lines, pos)

    filename = diagnostic.filename
    if context is not None:
        filename = os.path.relpath(filename, context)

    header = _style(f"[{index + 1}/{total} {diagnostic.error_code}]", "yellow", colors)
    location = f"{filename}:{pos.start_line}:{pos.start_column}"
    up = _style("^", "red", colors)
    down = _style("v", "red", colors)

    width = len(str(max(pos.end_line, pos.start_line + len(lines) - 1)))
    gutter = f"  {' ' * width}  "

    snippet = "\n".join(
        f"  {str(pos.start_line + i).rjust(width)}  {line}" for i, line in enumerate(lines)
    )

    if len(lines) == 1:
        snippet += f"\n{gutter}{' ' * (pos.start_column - 1)}{up * (pos.end_column - pos.start_column + 1)}"
    else:
        snippet = f"{gutter}{' ' * (pos.start_column - 1)}{down}\n{snippet}"
        snippet += f"\n{gutter}{' ' * (pos.end_column - 1)}{up}"

    return f"\n{header} {location}\n\n{snippet}\n\n{diagnostic.message}"


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as file:
        return file.read()


async def render_file(
    diagnostic: Diagnostic,
    index: int,
    total: int,
    context: str | None = None,
    colors: bool = False,
) -> RenderedDiagnostic:
    source = await asyncio.to_thread(_read, diagnostic.filename)
    return RenderedDiagnostic(
        diagnostic, render(source, diagnostic, index, total, context, colors)
    )
