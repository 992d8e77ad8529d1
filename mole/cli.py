"""Command-line interface for Mole.

This module defines the CLI commands using Click framework.
Commands run against the project in the current working directory.

Commands:
- build: Build the site into the output directory.
- watch: Build the site, then rebuild whenever a source file changes.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__

_LOG_FORMAT = "%(levelname)s %(message)s"


def _path_options(func):
    """Attach the options that override mole.yaml paths."""
    options = [
        click.option("--source", help="Directory holding the site sources."),
        click.option("--dest", help="Directory the site is written to."),
        click.option("--include", help="Includes directory, relative to the source."),
        click.option("--layouts", help="Layouts directory, relative to the source."),
        click.option("--articles", help="Articles directory, relative to the source."),
        click.option("-v", "--verbose", is_flag=True, help="Log every build phase."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


class _EchoHandler(logging.Handler):
    """Logging handler writing through click, so output follows the current stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def _configure_logging(verbose: bool) -> None:
    handler = _EchoHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger = logging.getLogger("mole")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _overrides(**options: str | None) -> dict[str, str]:
    mapping = {
        "source": "source",
        "dest": "output",
        "include": "include",
        "layouts": "layouts",
        "articles": "articles",
    }
    return {mapping[k]: v for k, v in options.items() if v is not None}


@click.group()
@click.version_option(version=__version__, prog_name="mole")
def cli():
    """Mole static site generator."""


@cli.command()
@_path_options
@click.option(
    "--clean/--no-clean",
    default=True,
    help="Empty the output directory before building.",
)
def build(
    source: str | None,
    dest: str | None,
    include: str | None,
    layouts: str | None,
    articles: str | None,
    verbose: bool,
    clean: bool,
):
    """Build the site into the output directory."""
    _configure_logging(verbose)
    project_root = Path.cwd()
    from .build import BuildError, build_site

    overrides = _overrides(
        source=source, dest=dest, include=include, layouts=layouts, articles=articles
    )
    try:
        report = build_site(project_root, overrides, clean_output=clean)
    except BuildError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        if exc.source_path is not None:
            click.echo(click.style(f"  Path: {exc.source_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    click.echo(f"Built {len(report.written)} pages into {report.output_dir}")
    if report.copied:
        click.echo(f"Copied {len(report.copied)} other files")
    if report.failed:
        click.echo(
            click.style(f"{report.failed} document(s) failed", fg="red", bold=True),
            err=True,
        )
    if report.copy_failures:
        click.echo(
            click.style(
                f"{len(report.copy_failures)} file(s) could not be copied",
                fg="red",
                bold=True,
            ),
            err=True,
        )
    if not report.ok:
        raise SystemExit(1)


@cli.command()
@_path_options
def watch(
    source: str | None,
    dest: str | None,
    include: str | None,
    layouts: str | None,
    articles: str | None,
    verbose: bool,
):
    """Build the site, then rebuild whenever a source file changes."""
    _configure_logging(verbose)
    project_root = Path.cwd()
    from .watch import Watcher

    overrides = _overrides(
        source=source, dest=dest, include=include, layouts=layouts, articles=articles
    )
    watcher = Watcher(project_root, overrides)
    click.echo(f"Watching {watcher.source_dir} (Ctrl+C to stop)")
    watcher.start()


def main():
    """Entry point for the CLI application."""
    cli()
