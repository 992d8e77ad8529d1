"""Document model for Mole.

A ``Document`` is one parsed article: its immutable ``Config``, the body
template that the renderer rewrites phase by phase, the URL it will be written
to, and the ``bindings`` snapshot that templates see as ``page``.

Key classes:
- RenderStage: Where a document is in the rendering pipeline.
- Document: A parsed article and its template-facing bindings.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .frontmatter import Config, parse
from .utils import escape_url


class RenderStage(enum.Enum):
    """Rendering progress of a document."""

    PARSED = "parsed"
    EXPANDED_ONCE = "expanded_once"
    EXPANDED_AND_CONVERTED = "expanded_and_converted"
    FINAL = "final"


def derive_url(config: Config) -> str:
    """Return the page URL: the permalink, or ``{title}.html``, spaces escaped."""
    url = config.permalink or f"{config.title}.html"
    return escape_url(url)


def build_bindings(config: Config, url: str, content: str) -> dict[str, Any]:
    """Build the ``page`` variable tree for one render phase.

    Args:
        config: The document configuration.
        url: The document URL.
        content: The body as of the current phase.

    Returns:
        A fresh nested dict; callers never share it between documents.
    """
    return {
        "title": config.title,
        "description": config.description,
        "tags": list(config.tags),
        "categories": list(config.categories),
        "date": config.date,
        "url": url,
        "content": content,
        "config": {
            "title": config.title,
            "description": config.description,
            "tags": list(config.tags),
            "categories": list(config.categories),
            "visible": config.visible,
            "layout": config.layout,
            "base_layout": config.base_layout,
            "date": config.date,
        },
    }


@dataclass
class Document:
    """A parsed article.

    Attributes:
        config: Parsed front matter. Never modified after parsing.
        template: Current body; overwritten by each render phase.
        url: Output URL, computed once from permalink or title.
        path: Source file.
        bindings: Template-facing view of the document for the current phase.
        stage: Current rendering stage.
    """

    config: Config
    template: str
    url: str
    path: Path
    bindings: dict[str, Any] = field(default_factory=dict)
    stage: RenderStage = RenderStage.PARSED

    @classmethod
    def from_source(cls, config: Config, body: str, path: Path | str) -> Document:
        """Create a document from an already parsed configuration and body.

        Args:
            config: Parsed configuration.
            body: Body text following the closing ``---``.
            path: Source file.

        Returns:
            A document in the ``PARSED`` stage with its initial bindings.
        """
        url = derive_url(config)
        template = body.strip()
        return cls(
            config=config,
            template=template,
            url=url,
            path=Path(path),
            bindings=build_bindings(config, url, template),
        )

    @classmethod
    def parse(cls, text: str, path: Path | str) -> Document:
        """Parse raw article text. Raises ``FrontMatterError`` on bad input."""
        config, body = parse(text, path)
        return cls.from_source(config, body, path)

    def update(self, template: str, stage: RenderStage) -> None:
        """Replace the body with the output of a render phase and refresh bindings."""
        self.template = template
        self.stage = stage
        self.bindings = build_bindings(self.config, self.url, template)
