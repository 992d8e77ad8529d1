"""Protocol definitions for Mole.

The renderer depends on these small interfaces rather than on concrete
classes, so tests and alternative pipelines can swap the Markdown converter
or the template engine.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Converter(Protocol):
    """Protocol for converting Markdown to HTML."""

    @abstractmethod
    def convert(self, markdown: str) -> str:
        """Convert Markdown source to an HTML string.

        Args:
            markdown: Markdown source.

        Returns:
            Rendered HTML.
        """
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Protocol for rendering template strings.

    Implementations resolve ``include`` directives against a partial registry.
    """

    @abstractmethod
    def render_string(self, source: str, variables: Mapping[str, Any]) -> str:
        """Render a template string.

        Args:
            source: Template string to render.
            variables: Variables to make available in the template.

        Returns:
            Rendered string.
        """
        ...
