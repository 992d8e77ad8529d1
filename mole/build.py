"""Site building functionality for Mole.

This module contains the logic for building a static site from source files.
A build is assembled with the ``Build`` builder; each stage returns a new
``Build`` and nothing is shared through globals::

    report = (
        Build(output)
        .includes(source / "_include")
        .layouts(source / "_layouts")
        .articles(source, source / "_articles")
        .run()
    )

Key functions and classes:
- Build: Immutable builder that loads partials, parses articles and renders them.
- BuildReport: What a run wrote and which documents failed.
- build_site: Build a project from its mole.yaml configuration.
- load_config: Load project configuration from mole.yaml.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .collections import build_site_context
from .document import Document
from .frontmatter import FrontMatterError
from .protocols import Converter
from .render import ArticleRenderer, RenderError, RenderIOError, TemplateRenderError
from .templates import PARTIAL_SUFFIX, PartialRegistry, TemplateEngine
from .utils import (
    ensure_clean_dir,
    is_internal,
    is_markdown,
    output_path_for_url,
    search_dir,
)

logger = logging.getLogger(__name__)

CONFIG_FILE = "mole.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "output": "_output",
    "source": "_source",
    "include": "_include",
    "layouts": "_layouts",
    "articles": "_articles",
    "site": {},
}


class BuildError(Exception):
    """Error that stops a whole build.

    Attributes:
        message: Human-readable error message.
        source_path: Path the error is about, if any.
    """

    def __init__(self, message: str, source_path: Path | None = None):
        self.message = message
        self.source_path = source_path
        super().__init__(f"{source_path}: {message}" if source_path else message)


class LayoutsNotLoadedError(BuildError):
    """Articles were parsed before any layout was registered."""


@dataclass(frozen=True)
class DocumentFailure:
    """A document that was dropped or could not be rendered.

    Attributes:
        path: Source file.
        message: Error message as reported.
    """

    path: Path
    message: str


@dataclass
class BuildReport:
    """Result of a build run.

    Attributes:
        output_dir: Directory the site was written to.
        written: Output files of successfully rendered documents.
        copied: Output files copied through unchanged.
        parse_failures: Documents dropped because their front matter is invalid.
        render_failures: Documents that failed for a reason of their own.
        shared_failures: Error message -> documents that failed with it inside a
            shared include or layout.
        copy_failures: Pass-through files that could not be copied.
    """

    output_dir: Path
    written: list[Path] = field(default_factory=list)
    copied: list[Path] = field(default_factory=list)
    parse_failures: list[DocumentFailure] = field(default_factory=list)
    render_failures: list[DocumentFailure] = field(default_factory=list)
    shared_failures: dict[str, list[Path]] = field(default_factory=dict)
    copy_failures: list[DocumentFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        """Number of documents that produced no output."""
        return (
            len(self.parse_failures)
            + len(self.render_failures)
            + sum(len(paths) for paths in self.shared_failures.values())
        )

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not self.copy_failures


@dataclass(frozen=True)
class Build:
    """Immutable site build.

    Attributes:
        output: Directory rendered pages are written to.
        registry: Loaded includes and layouts.
        documents: Successfully parsed articles.
        assets: Non-Markdown files to copy, as (source, path relative to output).
        parse_failures: Articles dropped while parsing.
        site: Site metadata exposed to templates as ``site``.
    """

    output: Path
    registry: PartialRegistry = field(default_factory=PartialRegistry)
    documents: tuple[Document, ...] = ()
    assets: tuple[tuple[Path, Path], ...] = ()
    parse_failures: tuple[DocumentFailure, ...] = ()
    site: Mapping[str, Any] = field(default_factory=dict)

    def includes(self, directory: Path, layout: bool = False) -> Build:
        """Load every ``*.html`` file in ``directory`` as a named partial.

        Args:
            directory: Directory holding the partials.
            layout: Register the partials as layouts.

        Returns:
            A new Build with the partials registered.
        """
        kind = "layout" if layout else "include"
        if not directory.is_dir():
            logger.error("%s is not a path or directory, no %ss loaded", directory, kind)
            return self
        registry = self.registry
        for path in search_dir(directory, PARTIAL_SUFFIX):
            name = path.name[: -len(PARTIAL_SUFFIX)]
            logger.info("new %s %r", kind, name)
            registry = registry.add(name, path.read_text(encoding="utf-8"), layout=layout)
        return replace(self, registry=registry)

    def layouts(self, directory: Path) -> Build:
        """Load every ``*.html`` file in ``directory`` as a layout."""
        return self.includes(directory, layout=True)

    def articles(self, *roots: Path) -> Build:
        """Parse every Markdown article under the given roots.

        Files and directories whose name starts with ``_`` are skipped.
        Other non-Markdown files are recorded to be copied through unchanged.
        An article that fails to parse is logged and dropped.

        Args:
            roots: Directories to search recursively.

        Returns:
            A new Build with the parsed documents.

        Raises:
            LayoutsNotLoadedError: If no layout has been registered yet.
        """
        if not self.registry.layouts:
            raise LayoutsNotLoadedError(
                "empty layout list, please load in layout template files before parsing articles"
            )
        documents = list(self.documents)
        assets = list(self.assets)
        failures = list(self.parse_failures)
        for root in roots:
            logger.info("looking for markdown articles in %s", root)
            if not root.is_dir():
                logger.error("%s is not a path or directory", root)
                continue
            for path, relative in _walk(root):
                if not is_markdown(path):
                    assets.append((path, relative))
                    continue
                try:
                    document = Document.parse(path.read_text(encoding="utf-8"), path)
                except (FrontMatterError, OSError, UnicodeDecodeError) as exc:
                    logger.error("%s: %s", path, exc)
                    failures.append(DocumentFailure(path, str(exc)))
                    continue
                self._check_layouts(document)
                documents.append(document)
        return replace(
            self,
            documents=tuple(documents),
            assets=tuple(assets),
            parse_failures=tuple(failures),
        )

    def with_site(self, site: Mapping[str, Any]) -> Build:
        """Return a new Build exposing ``site`` to templates."""
        return replace(self, site=dict(site))

    def run(self, converter: Converter | None = None) -> BuildReport:
        """Render every parsed article and copy the other files.

        Template errors raised inside a shared include or layout are grouped
        by message and reported once, listing every affected document. Other
        failures are reported per document as they happen.

        Args:
            converter: Optional Markdown converter replacing the default one.

        Returns:
            BuildReport describing the run.
        """
        # Render copies so the parsed documents stay reusable.
        documents = [replace(document) for document in self.documents]
        site_context = build_site_context(documents)
        renderer = ArticleRenderer(TemplateEngine(self.registry), converter, self.site)
        report = BuildReport(output_dir=self.output)
        report.parse_failures.extend(self.parse_failures)
        self.output.mkdir(parents=True, exist_ok=True)

        for document in documents:
            target = output_path_for_url(self.output, document.url)
            try:
                html = renderer.render(document, site_context)
                _write_page(target, html, document.path)
            except TemplateRenderError as exc:
                if exc.in_include:
                    report.shared_failures.setdefault(exc.message, []).append(
                        document.path
                    )
                    continue
                logger.error("%s: %s", document.path, exc.message)
                report.render_failures.append(DocumentFailure(document.path, exc.message))
            except RenderError as exc:
                logger.error("%s: %s", document.path, exc.message)
                report.render_failures.append(DocumentFailure(document.path, exc.message))
            else:
                logger.info("writing to %s", target)
                report.written.append(target)

        for message, paths in report.shared_failures.items():
            listing = "\n".join(f"  - {path}" for path in paths)
            logger.error(
                "error in a shared template affecting %d document(s):\n%s\n%s",
                len(paths),
                listing,
                message,
            )

        for source, relative in self.assets:
            target = self.output / relative
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
            except OSError as exc:
                logger.error("could not copy %s to %s: %s", source, target, exc)
                report.copy_failures.append(DocumentFailure(source, str(exc)))
                continue
            report.copied.append(target)
        return report

    def _check_layouts(self, document: Document) -> None:
        for name in {document.config.layout, document.config.base_layout} - {""}:
            if self.registry.is_layout(name):
                continue
            if name in self.registry:
                logger.warning(
                    "%s: %r is an include, not a layout", document.path, name
                )
            else:
                logger.warning("%s: unknown layout %r", document.path, name)


def _walk(root: Path) -> list[tuple[Path, Path]]:
    """List files under ``root`` with their relative paths, skipping ``_`` names."""
    files: list[tuple[Path, Path]] = []
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if path.is_dir() or any(is_internal(Path(part)) for part in relative.parts):
            continue
        files.append((path, relative))
    return files


def _write_page(target: Path, html: str, source_path: Path) -> None:
    """Write rendered HTML, creating parent directories as needed."""
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(html, encoding="utf-8")
    except OSError as exc:
        raise RenderIOError(f"could not write {target}: {exc}", source_path) from exc


def load_config(project_root: Path) -> dict[str, Any]:
    """Load project configuration from mole.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config_path = project_root / CONFIG_FILE
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
    return config


def build_site(
    project_root: Path,
    overrides: Mapping[str, Any] | None = None,
    clean_output: bool = True,
) -> BuildReport:
    """Build a project described by its mole.yaml.

    Args:
        project_root: Root directory of the project.
        overrides: Configuration values taking precedence over mole.yaml,
            e.g. from command-line options. ``None`` values are ignored.
        clean_output: Whether to wipe the output directory before building.

    Returns:
        BuildReport of the run.

    Raises:
        BuildError: If the output directory would swallow the sources, or if
            no layout could be loaded.
    """
    config = load_config(project_root)
    config.update({k: v for k, v in (overrides or {}).items() if v is not None})

    source = project_root / config["source"]
    output = project_root / config["output"]
    if clean_output:
        if source.resolve().is_relative_to(output.resolve()):
            raise BuildError(
                f"refusing to clean {output}: it contains the sources", output
            )
        ensure_clean_dir(output)

    site = config.get("site") or {}
    if not isinstance(site, dict):
        raise BuildError(f"'site' must be a mapping, got {type(site).__name__}")

    return (
        Build(output)
        .with_site(site)
        .includes(source / config["include"])
        .layouts(source / config["layouts"])
        .articles(source, source / config["articles"])
        .run()
    )
