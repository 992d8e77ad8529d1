"""Rebuild-on-change support for Mole.

Watches the source directory (and the project root, for ``mole.yaml``) and
re-runs the full build when something changes. There is no incremental
rebuild: every change rebuilds the whole site.

Key classes:
- Watcher: Owns the observer and debounces rebuilds.
- _ChangeHandler: File system event handler forwarding relevant events.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildError, BuildReport, build_site, load_config

logger = logging.getLogger(__name__)


class Watcher:
    """Rebuilds a project whenever its sources change.

    Attributes:
        project_root: Root directory of the project.
        overrides: Configuration overrides passed to every build.
        source_dir: Directory watched recursively.
        output_dir: Build output; changes inside it are ignored.
    """

    def __init__(
        self,
        project_root: Path,
        overrides: Mapping[str, Any] | None = None,
        build: Callable[..., BuildReport] = build_site,
        debounce_seconds: float = 0.2,
    ):
        self.project_root = project_root
        self.overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        config = load_config(project_root)
        config.update(self.overrides)
        self.source_dir = project_root / config["source"]
        self.output_dir = project_root / config["output"]
        self._build = build
        self._debounce_seconds = debounce_seconds
        self._last_rebuild_at = 0.0
        self._rebuilding = False
        self._observer: Observer | None = None

    def start(self) -> None:  # pragma: no cover - integration path
        self.rebuild(force=True)
        handler = _ChangeHandler(self)
        observer = Observer()
        if self.source_dir.exists():
            observer.schedule(handler, str(self.source_dir), recursive=True)
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer
        logger.info("watching %s for changes", self.source_dir)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def is_ignored(self, path: Path) -> bool:
        """Whether a changed path is build output rather than a source."""
        return path.resolve().is_relative_to(self.output_dir.resolve())

    def rebuild(self, force: bool = False) -> BuildReport | None:
        """Run a full build unless one ran within the debounce window.

        Returns:
            The report of the build, or ``None`` when the change was debounced
            or the build failed as a whole.
        """
        now = time.time()
        if self._rebuilding:
            return None
        if not force and (now - self._last_rebuild_at) < self._debounce_seconds:
            return None
        self._rebuilding = True
        try:
            logger.info("change detected, rebuilding")
            report = self._build(self.project_root, self.overrides)
        except BuildError as exc:
            logger.error("build failed: %s", exc)
            return None
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()
        logger.info(
            "built %d page(s), %d failed", len(report.written), report.failed
        )
        return report


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: Watcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = Path(str(event.src_path))
        if self.watcher.is_ignored(path):
            return
        self.watcher.rebuild()
