"""Template engine for Mole.

This module wires Jinja2 to Mole's partial/layout registry. Layouts and
includes are plain ``.html`` files loaded into a ``PartialRegistry`` before
any article is rendered; templates refer to them by name through the
``include`` directive (see ``mole.include``).

Key classes:
- PartialRegistry: Immutable name -> template source mapping, with layout names.
- RegistryLoader: Jinja2 loader backed by a PartialRegistry.
- TemplateEngine: Renders template strings against a set of variables.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateNotFound

from .include import IncludeExtension

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".html"


@dataclass(frozen=True)
class PartialRegistry:
    """Named template sources shared by every article of a build.

    Attributes:
        sources: Partial name -> raw template source.
        layouts: Names eligible as an article's ``layout`` or ``base_layout``.
        conflicts: Names that were registered more than once.
    """

    sources: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    layouts: frozenset[str] = frozenset()
    conflicts: tuple[str, ...] = ()

    def add(self, name: str, source: str, layout: bool = False) -> PartialRegistry:
        """Return a new registry with ``name`` added.

        A name that is already registered is replaced and recorded as a
        conflict; this is reported, never fatal.
        """
        conflicts = self.conflicts
        if name in self.sources:
            logger.warning(
                "%s %r is already registered, the later definition wins",
                "layout" if layout else "include",
                name,
            )
            conflicts = (*conflicts, name)
        sources = dict(self.sources)
        sources[name] = source
        layouts = self.layouts | {name} if layout else self.layouts - {name}
        return PartialRegistry(MappingProxyType(sources), layouts, conflicts)

    def __contains__(self, name: object) -> bool:
        return name in self.sources

    def is_layout(self, name: str) -> bool:
        return name in self.layouts


class RegistryLoader(BaseLoader):
    """Jinja2 loader that looks partials up in a PartialRegistry.

    Legacy names that carry the ``.html`` suffix (``header.html``) resolve to
    the registered ``header`` partial.
    """

    def __init__(self, registry: PartialRegistry):
        self.registry = registry

    def get_source(
        self, environment: Environment, template: str
    ) -> tuple[str, str | None, Callable[[], bool] | None]:
        candidates = [template]
        if template.endswith(PARTIAL_SUFFIX):
            candidates.append(template[: -len(PARTIAL_SUFFIX)])
        for name in candidates:
            if name in self.registry:
                # Registry contents never change, so the cached template stays valid.
                return self.registry.sources[name], None, lambda: True
        raise TemplateNotFound(template)

    def list_templates(self) -> list[str]:
        return sorted(self.registry.sources)


def to_json(value: Any) -> str:
    """Serialize a value to pretty-printed JSON."""
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _finalize(value: Any) -> Any:
    """Print ``None`` as an empty string, like Liquid's nil."""
    return "" if value is None else value


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Unknown variables and unknown partials are errors rather than empty
    strings, and output is never HTML-escaped: the rendered article body is
    already HTML when layouts insert it through ``{{ content }}``.

    Attributes:
        registry: Partials and layouts available to ``include``.
        env: Jinja2 environment.
    """

    def __init__(self, registry: PartialRegistry):
        """Initialize the template engine.

        Args:
            registry: Fully populated partial/layout registry.
        """
        self.registry = registry
        self.env = Environment(
            loader=RegistryLoader(registry),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            extensions=[IncludeExtension],
            finalize=_finalize,
        )
        self.env.filters["to_json"] = to_json

    def render_string(self, source: str, variables: Mapping[str, Any]) -> str:
        """Render a template string.

        Args:
            source: Template source to render.
            variables: Variables to make available in the template.

        Returns:
            Rendered string.

        Raises:
            jinja2.TemplateError: If parsing or rendering fails.
        """
        template = self.env.from_string(source)
        return template.render(variables)
