"""Utility functions for Mole.

This module contains small helpers used throughout the Mole codebase:
line splitting, file name handling, URL and output path derivation, and
directory management.

Key functions:
    split_lines: Split text into physical lines, tolerating CRLF endings.
    title_from_path: Derive a page title from a source file name.
    escape_url: Percent-escape spaces in a page URL.
    output_path_for_url: Map a page URL to a file under the output directory.
    is_markdown: Check if a path is a Markdown file.
    is_internal: Check if a file name marks a draft or private file.
    search_dir: List files with a given extension in a directory.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import shutil
from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown")


def split_lines(text: str) -> list[str]:
    """Split text into lines, dropping ``\\n`` and a single ``\\r`` before it.

    A trailing newline does not produce an extra empty line.

    Examples:
        >>> split_lines("---\\r\\ntitle: a\\n---")
        ['---', 'title: a', '---']
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def title_from_path(path: Path) -> str:
    """Derive a title from a file name by stripping its Markdown extension.

    Args:
        path: Source file path.

    Returns:
        The file name without ``.md`` or ``.markdown``.

    Raises:
        ValueError: If the path has no file name component.
    """
    name = Path(path).name
    if not name:
        raise ValueError(f"{str(path)!r} has no file name")
    for suffix in MARKDOWN_SUFFIXES:
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return name


def escape_url(url: str) -> str:
    """Replace literal spaces with ``%20``. No other character is escaped."""
    return url.replace(" ", "%20")


def output_path_for_url(output_dir: Path, url: str) -> Path:
    """Map a page URL to its output file.

    Args:
        output_dir: Root output directory.
        url: Page URL, e.g. ``about.html`` or ``/blog/``.

    Returns:
        The target path; URLs ending in ``/`` resolve to ``index.html``.
    """
    relative = url.lstrip("/")
    if not relative or relative.endswith("/"):
        relative += "index.html"
    return output_dir / relative


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file (``.md`` or ``.markdown``)."""
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_internal(path: Path) -> bool:
    """Check if a file or directory name starts with ``_``."""
    return path.name.startswith("_")


def search_dir(path: Path, suffix: str) -> list[Path]:
    """List files directly inside ``path`` with the given suffix.

    Args:
        path: Directory to search.
        suffix: Extension including the dot, e.g. ``.html``.

    Returns:
        Sorted list of matching file paths.
    """
    return sorted(
        entry for entry in path.iterdir() if entry.is_file() and entry.suffix == suffix
    )


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path))
    path.mkdir(parents=True, exist_ok=True)
