"""Positional diagnostics for Mole.

Renders compiler-style error messages that reproduce the offending source line
and underline the problem with carets:

       --> _articles/post.md 3:6
       |
     3 | tags: [a, b
       | ^^^^^^^^^^^
       |
      found opening square bracket for list but no closing bracket
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


def _gutter(lineno: int) -> str:
    """Return the blank gutter that lines up with the line number column."""
    digits = len(str(lineno))
    if digits <= 2:
        return "  "
    if digits == 3:
        return "   "
    return "    "


def format_diagnostic(
    message: str,
    path: Path | str,
    line: str,
    start: int,
    end: int,
    lineno: int,
) -> str:
    """Format an error message pointing at ``line[start:end]``.

    Args:
        message: Human-readable description of the problem.
        path: Source file the line came from.
        line: Text of the offending line.
        start: Column where the underline starts.
        end: Column where the underline stops (exclusive). May exceed the
            line length to point at missing input after the line.
        lineno: 1-based line number.

    Returns:
        The multi-line diagnostic string.
    """
    gutter = _gutter(lineno)
    start = max(start, 0)
    underline = " " * start + "^" * max(end - start, 0)
    return (
        f"\n{gutter} --> {path} {lineno}:{start}"
        f"\n{gutter} |"
        f"\n{lineno:>{len(gutter)}} | {line}"
        f"\n{gutter} | {underline}"
        f"\n{gutter} |"
        f"\n{gutter}{message}"
    )


@dataclass(frozen=True)
class Diagnostic:
    """A located problem in a source document.

    Attributes:
        message: Human-readable description of the problem.
        path: Source file.
        lineno: 1-based line number.
        line: Text of the offending line.
        start: First underlined column.
        end: Column after the last underlined one.
    """

    message: str
    path: Path
    lineno: int
    line: str
    start: int
    end: int

    def render(self) -> str:
        return format_diagnostic(
            self.message, self.path, self.line, self.start, self.end, self.lineno
        )

    def __str__(self) -> str:
        return self.render()
