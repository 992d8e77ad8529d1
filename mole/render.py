"""Two-phase article rendering for Mole.

An article body may use template directives that must be resolved before
Markdown conversion (an ``{% include %}`` producing Markdown) and values that
are only stable after a first substitution (``{{ page.title }}`` inside that
included text). The renderer therefore runs the body through the template
engine twice:

1. expand the raw body, keep the result as Markdown;
2. expand again and convert the result to HTML;
3. render the layout chain (``base_layout``, else ``layout``) around it.

Every phase sees the same variables::

    global   site-wide context (articles, tags, cats or categories)
    page     the document bindings for the current phase
    layout   the document's ``layout`` name
    site     site metadata from the project configuration
    content  the body as of the current phase
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import TemplateError

from .document import Document, RenderStage
from .include import IncludeError, IncludeFrame, describe_error
from .protocols import Converter, TemplateRenderer
from .renderers import MarkdownConverter

logger = logging.getLogger(__name__)


class RenderError(Exception):
    """Base class for failures while rendering one document.

    Attributes:
        message: Human-readable error message.
        path: Source file of the document being rendered.
    """

    def __init__(self, message: str, path: Path | None = None):
        self.message = message
        self.path = path
        super().__init__(message)


class TemplateRenderError(RenderError):
    """The template engine rejected a template.

    Attributes:
        frames: Include frames the error passed through, innermost first.
            Empty when the error is in the document's own body.
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        frames: tuple[IncludeFrame, ...] = (),
    ):
        super().__init__(message, path)
        self.frames = tuple(frames)

    @property
    def in_include(self) -> bool:
        """Whether the error happened inside an included partial or layout."""
        return bool(self.frames)


class RenderIOError(RenderError):
    """Reading or writing a file failed while rendering."""


class ArticleRenderer:
    """Renders documents through both expansion phases and their layouts.

    Attributes:
        engine: Template engine holding the partial/layout registry.
        converter: Markdown to HTML converter.
        site: Site metadata exposed to templates as ``site``.
    """

    def __init__(
        self,
        engine: TemplateRenderer,
        converter: Converter | None = None,
        site: Mapping[str, Any] | None = None,
    ):
        self.engine = engine
        self.converter = converter or MarkdownConverter()
        self.site = dict(site or {})

    def variables(
        self, document: Document, site_context: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Return the template variables for the document's current phase."""
        return {
            "global": site_context,
            "page": document.bindings,
            "layout": document.config.layout,
            "site": self.site,
            "content": document.template,
        }

    def render(self, document: Document, site_context: Mapping[str, Any]) -> str:
        """Render a document to its final HTML.

        Args:
            document: A freshly parsed document; its body and bindings are
                rewritten in place by each phase.
            site_context: Read-only site-wide context.

        Returns:
            The page HTML.

        Raises:
            TemplateRenderError: If any template fails to parse or render.
            RenderIOError: If an I/O error occurs.
        """
        self.expand(document, site_context)
        self.expand(document, site_context, convert=True)
        return self.render_layout(document, site_context)

    def expand(
        self,
        document: Document,
        site_context: Mapping[str, Any],
        convert: bool = False,
    ) -> None:
        """Run one expansion phase over the document body.

        Args:
            document: Document to update in place.
            site_context: Read-only site-wide context.
            convert: Convert the expanded body from Markdown to HTML.
        """
        expanded = self._evaluate(
            document, document.template, self.variables(document, site_context)
        )
        if convert:
            logger.debug("%s: expanded and converting to HTML", document.path)
            document.update(
                self.converter.convert(expanded), RenderStage.EXPANDED_AND_CONVERTED
            )
        else:
            logger.debug("%s: expanded", document.path)
            document.update(expanded, RenderStage.EXPANDED_ONCE)

    def render_layout(
        self, document: Document, site_context: Mapping[str, Any]
    ) -> str:
        """Wrap the converted body in its layout chain.

        Returns:
            The page HTML.
        """
        config = document.config
        if config.base_layout and config.base_layout == config.layout:
            if config.layout == "default":
                logger.warning(
                    "%r: base_layout has a default value of 'default' therefore "
                    "setting layout to 'default' could cause an infinite loop",
                    config.title,
                )
            else:
                logger.warning(
                    "%r: layout and base_layout are both %r which could cause "
                    "an infinite loop",
                    config.title,
                    config.layout,
                )

        if config.base_layout:
            source = f"{{%- include {config.base_layout!r} -%}}"
        elif config.layout:
            source = f"{{%- include {config.layout!r} -%}}"
        else:
            logger.warning(
                "%r: no base layout and no layout found, rendering the body alone",
                config.title,
            )
            source = document.template

        html = self._evaluate(document, source, self.variables(document, site_context))
        document.stage = RenderStage.FINAL
        return html

    def _evaluate(
        self, document: Document, source: str, variables: Mapping[str, Any]
    ) -> str:
        try:
            return self.engine.render_string(source, variables)
        except IncludeError as exc:
            raise TemplateRenderError(str(exc), document.path, exc.frames) from exc
        except TemplateError as exc:
            raise TemplateRenderError(describe_error(exc), document.path) from exc
        except OSError as exc:
            raise RenderIOError(str(exc), document.path) from exc
        except Exception as exc:
            # Jinja2 evaluates expressions as Python, so filters raise plain errors.
            raise TemplateRenderError(
                f"{type(exc).__name__}: {exc}", document.path
            ) from exc


def render_document(
    document: Document,
    engine: TemplateRenderer,
    site_context: Mapping[str, Any],
    site: Mapping[str, Any] | None = None,
) -> str:
    """Render one document with the default Markdown converter."""
    return ArticleRenderer(engine, site=site).render(document, site_context)
