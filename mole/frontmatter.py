"""Front-matter parsing for Mole.

Every article starts with a configuration block delimited by ``---`` lines::

    ---
    title: cats and dogs
    layout: page
    tags: [pets, 'cats, mostly']
    date: 2021-04-30 18:15
    ---
    The Markdown body starts here.

This module scans that block one line at a time and produces a typed
``Config`` plus the remaining body. Any problem raises a ``FrontMatterError``
subclass carrying a ``Diagnostic`` that points at the offending column.

Key functions:
- parse: Split raw text into (Config, body).
- parse_key: Split a configuration line into key and raw value.
- parse_value_string / parse_value_list / parse_value_boolean / parse_value_date:
  The value grammars used by the recognized keys.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .diagnostics import Diagnostic
from .utils import split_lines, title_from_path

DELIMITER = "---"
DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%d %H:%M")


class FrontMatterError(Exception):
    """Base class for front-matter problems.

    Attributes:
        message: Short description of the problem.
        diagnostic: Location of the problem, when it is tied to one line.
    """

    kind = "Front matter error"

    def __init__(self, message: str, diagnostic: Diagnostic | None = None):
        self.message = message
        self.diagnostic = diagnostic
        detail = diagnostic.render() if diagnostic else message
        super().__init__(f"{self.kind}: {detail}")


class InvalidKey(FrontMatterError):
    """Unrecognized key, or a configuration line without a colon."""

    kind = "Invalid key"


class EmptyValue(FrontMatterError):
    """A value is missing where one is required."""

    kind = "Empty value"


class InvalidValue(FrontMatterError):
    """A value is present but does not match its grammar."""

    kind = "Invalid value"


class InvalidConfig(FrontMatterError):
    """The configuration block as a whole is malformed."""

    kind = "Invalid configuration"


@dataclass(frozen=True)
class Config:
    """Typed configuration of one article.

    Attributes:
        layout: Partial or layout rendered inside the base layout.
        base_layout: Outermost layout wrapping the page.
        title: Page title; derived from the file name when absent.
        description: Short description.
        permalink: Output URL; derived from the title when empty.
        categories: Categories in declaration order.
        tags: Tags in declaration order.
        visible: Whether the page gets a title bar / nav entry (``titlebar`` key).
        date: Normalized ``YYYY-MM-DD HH:MM:SS`` timestamp, if given.
    """

    layout: str = ""
    base_layout: str = "default"
    title: str = ""
    description: str = ""
    permalink: str = ""
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    visible: bool = False
    date: str | None = None


@dataclass(frozen=True)
class SourceLine:
    """One physical line of a source document, used to locate errors."""

    path: Path
    lineno: int
    text: str

    def error(
        self,
        error_cls: type[FrontMatterError],
        message: str,
        start: int,
        end: int,
    ) -> FrontMatterError:
        """Build an error whose diagnostic underlines ``text[start:end]``."""
        diagnostic = Diagnostic(message, self.path, self.lineno, self.text, start, end)
        return error_cls(message, diagnostic)


class _State(enum.Enum):
    BEFORE_CONFIG = "before_config"
    IN_CONFIG = "in_config"
    IN_BODY = "in_body"


class _Quote(enum.Enum):
    NORMAL = "normal"
    IN_SINGLE_QUOTE = "'"
    IN_DOUBLE_QUOTE = '"'


def _leading_space(value: str) -> int:
    return len(value) - len(value.lstrip())


def parse_key(source: SourceLine) -> tuple[str, str, int]:
    """Split a configuration line into key and raw value.

    Args:
        source: The configuration line.

    Returns:
        Tuple of (trimmed key, raw value, column where the value starts).

    Raises:
        EmptyValue: If the line is blank.
        InvalidKey: If the line has no colon.
    """
    text = source.text
    if not text.strip():
        raise source.error(EmptyValue, "expected name of key", len(text), len(text) + 5)
    index = text.find(":")
    if index == -1:
        raise source.error(InvalidKey, "no colon found", len(text), len(text) + 1)
    return text[:index].strip(), text[index + 1 :], index + 1


def parse_value_string(value: str, source: SourceLine, column: int = 0) -> str:
    """Parse a string value, stripping matching single or double quotes.

    Args:
        value: Raw value text.
        source: Line the value came from.
        column: Column of ``value[0]`` inside the line.

    Returns:
        The unquoted string.
    """
    stripped = value.strip()
    column += _leading_space(value)
    if not stripped:
        raise source.error(EmptyValue, "empty value", column, column + 1)

    for quote in ("'", '"'):
        if stripped.startswith(quote):
            if len(stripped) < 2 or not stripped.endswith(quote):
                raise source.error(
                    InvalidValue,
                    f"string started with {quote} character but did not close string at the end",
                    column,
                    column + len(stripped),
                )
            return stripped[1:-1]

    if stripped == DELIMITER:
        raise source.error(
            InvalidValue,
            "found '---' can't use configuration start and end identifier as a value",
            column,
            column + len(DELIMITER),
        )
    return stripped


def parse_value_list(value: str, source: SourceLine, column: int = 0) -> list[str]:
    """Parse a comma separated list, optionally enclosed in ``[...]``.

    Elements follow the string grammar, so quoting an element keeps its
    commas: ``',a', 'b'`` parses to ``[",a", "b"]``.

    Args:
        value: Raw value text.
        source: Line the value came from.
        column: Column of ``value[0]`` inside the line.

    Returns:
        The list elements in order.
    """
    stripped = value.strip()
    column += _leading_space(value)
    if not stripped:
        raise source.error(EmptyValue, "empty list", column, column + 1)

    if stripped.startswith("["):
        if len(stripped) < 2 or not stripped.endswith("]"):
            raise source.error(
                InvalidValue,
                "found opening square bracket for list but no closing bracket",
                column,
                column + len(stripped),
            )
        stripped = stripped[1:-1]
        column += 1
        if not stripped.strip():
            raise source.error(EmptyValue, "empty list", column - 1, column + 1)

    items: list[str] = []
    state = _Quote.NORMAL
    start = 0
    for index, char in enumerate(stripped):
        if state is _Quote.NORMAL:
            if char == ",":
                items.append(
                    parse_value_string(stripped[start:index], source, column + start)
                )
                start = index + 1
            elif char == "'":
                state = _Quote.IN_SINGLE_QUOTE
            elif char == '"':
                state = _Quote.IN_DOUBLE_QUOTE
        elif char == state.value:
            state = _Quote.NORMAL

    end = column + len(stripped)
    if state is not _Quote.NORMAL:
        raise source.error(
            InvalidValue, f"found a string but no closing {state.value}", end - 1, end
        )
    if items and not stripped[start:].strip():
        raise source.error(InvalidValue, "value expected after comma", end, end + 1)
    items.append(parse_value_string(stripped[start:], source, column + start))
    return items


def parse_value_boolean(value: str, source: SourceLine, column: int = 0) -> bool:
    """Parse ``true`` or ``false``; nothing else is accepted."""
    stripped = value.strip()
    column += _leading_space(value)
    if stripped == "true":
        return True
    if stripped == "false":
        return False
    raise source.error(
        InvalidValue,
        "expected 'true' or 'false'",
        column,
        column + max(len(stripped), 1),
    )


def parse_value_date(value: str, source: SourceLine, column: int = 0) -> str:
    """Parse ``YYYY-MM-DD`` or ``YYYY-MM-DD HH:MM`` into a normalized timestamp.

    Returns:
        The timestamp formatted as ``YYYY-MM-DD HH:MM:SS``.
    """
    stripped = value.strip()
    column += _leading_space(value)
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(stripped, fmt)
        except ValueError:
            continue
        return parsed.strftime("%Y-%m-%d %H:%M:%S")
    raise source.error(
        InvalidValue,
        f"date error: could not parse {stripped!r}, expected Y-m-d or Y-m-d H:M "
        "(e.g. 2021-04-30 or 2021-04-30 18:15)",
        column,
        column + max(len(stripped), 1),
    )


def _parse_tuple(value: str, source: SourceLine, column: int = 0) -> tuple[str, ...]:
    return tuple(parse_value_list(value, source, column))


# key -> (Config field, value grammar)
KEYS: dict[str, tuple[str, Callable[[str, SourceLine, int], Any]]] = {
    "layout": ("layout", parse_value_string),
    "base_layout": ("base_layout", parse_value_string),
    "title": ("title", parse_value_string),
    "description": ("description", parse_value_string),
    "permalink": ("permalink", parse_value_string),
    "categories": ("categories", _parse_tuple),
    "tags": ("tags", _parse_tuple),
    "titlebar": ("visible", parse_value_boolean),
    "date": ("date", parse_value_date),
}


def parse(text: str, path: Path | str) -> tuple[Config, str]:
    """Parse an article into its configuration and body.

    Args:
        text: Raw file content.
        path: Path of the source file, used for diagnostics and as the
            title fallback.

    Returns:
        Tuple of (Config, body). Each body line is followed by a newline.

    Raises:
        FrontMatterError: If the configuration block is malformed.
    """
    path = Path(path)
    state = _State.BEFORE_CONFIG
    fields: dict[str, Any] = {}
    pairs = 0
    body: list[str] = []

    for lineno, line in enumerate(split_lines(text), start=1):
        if state is _State.IN_BODY:
            body.append(line + "\n")
            continue
        if line == DELIMITER:
            state = _State.IN_CONFIG if state is _State.BEFORE_CONFIG else _State.IN_BODY
            continue

        source = SourceLine(path, lineno, line)
        if state is _State.BEFORE_CONFIG:
            raise source.error(
                InvalidConfig,
                "configuration needs to start with '---' for the first line",
                0,
                len(line),
            )

        key, value, column = parse_key(source)
        if key not in KEYS:
            start = line.find(key)
            raise source.error(InvalidKey, "unknown key", start, start + len(key))
        field_name, grammar = KEYS[key]
        fields[field_name] = grammar(value, source, column)
        pairs += 1

    if not fields.get("title"):
        try:
            fields["title"] = title_from_path(path)
        except ValueError as exc:
            raise InvalidValue(
                f"No 'title' found so defaulted to using filename as title "
                f"but failed to get the filename from {str(path)!r}: {exc}"
            ) from exc

    if state is not _State.BEFORE_CONFIG and pairs == 0:
        raise InvalidConfig(f"empty config no key value pairs found in {str(path)!r}")
    if state is not _State.IN_BODY:
        raise InvalidConfig("no at '---' for the last line of the configuration")
    if not fields["title"]:
        raise InvalidConfig("missing configuration 'title' field")

    return Config(**fields), "".join(body)
