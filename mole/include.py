"""The ``include`` directive for Mole templates.

Replaces Jinja2's built-in ``include`` with a Liquid/Jekyll flavoured one::

    {% include 'image' path="cat.png" alt=page.title %}
    {% include layout %}

- The partial name is a quoted string or a bare (dotted) variable reference.
  A bare reference that resolves to nothing is used literally, so legacy
  Jekyll-style ``{% include header.html %}`` keeps working (with a warning).
- ``key=value`` arguments are evaluated in the calling template and are
  visible to the partial only as ``include.<key>``.
- Every include renders in its own context: the partial sees the render
  variables (``page``, ``content``, ``global`` ...) but none of the caller's
  assignments, and nothing it assigns leaks back.
- Failures inside a partial are re-raised as ``IncludeError`` with one
  ``IncludeFrame`` per include level, innermost first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from jinja2 import nodes
from jinja2.exceptions import TemplateError, TemplateNotFound, TemplateRuntimeError
from jinja2.ext import Extension
from jinja2.lexer import Token, TokenStream
from jinja2.parser import Parser
from jinja2.runtime import Context, Undefined
from markupsafe import Markup

logger = logging.getLogger(__name__)

INCLUDE_STACK = "_include_stack"
MAX_INCLUDE_DEPTH = 64


@dataclass(frozen=True)
class IncludeFrame:
    """One level of an include chain.

    Attributes:
        expression: The name expression as written, e.g. ``'header'`` or ``layout``.
        partial: The partial name it resolved to.
    """

    expression: str
    partial: str

    def __str__(self) -> str:
        return f"from: {{% include {self.expression} %}} (partial {self.partial!r})"


class IncludeError(TemplateRuntimeError):
    """A failure that happened while rendering an included partial.

    Attributes:
        reason: The underlying error message.
        frames: Include frames from the innermost partial outwards.
    """

    def __init__(self, reason: str, frames: Iterable[IncludeFrame]):
        self.reason = reason
        self.frames = tuple(frames)
        super().__init__("\n".join([reason, *(str(frame) for frame in self.frames)]))

    def within(self, frame: IncludeFrame) -> IncludeError:
        """Return a copy with ``frame`` appended as the next outer level."""
        return IncludeError(self.reason, (*self.frames, frame))


class IncludeExtension(Extension):
    """Jinja2 extension implementing the ``include`` directive."""

    tags = {"mole_include"}

    def filter_stream(self, stream: TokenStream) -> Iterator[Token]:
        # ``include`` is a reserved Jinja statement; route it to this extension.
        previous = None
        for token in stream:
            if (
                token.type == "name"
                and token.value == "include"
                and previous is not None
                and previous.type == "block_begin"
            ):
                token = Token(token.lineno, "name", "mole_include")
            previous = token
            yield token

    def parse(self, parser: Parser) -> nodes.Node:
        lineno = next(parser.stream).lineno
        token = parser.stream.current
        if token.type == "string":
            next(parser.stream)
            head: nodes.Expr = nodes.Const(token.value, lineno=lineno)
            attrs: list[str] = []
            legacy = None
            expression = f"'{token.value}'"
        else:
            head, attrs = self._parse_reference(parser)
            legacy = ".".join([head.name, *attrs])
            expression = legacy
            logger.warning(
                "potential jekyll include tag found: %s (fix: quote it as '%s')",
                legacy,
                legacy,
            )

        pairs = []
        while parser.stream.current.type != "block_end":
            key = parser.stream.expect("name")
            if not parser.stream.skip_if("assign"):
                parser.fail(
                    "expected '=' to be used for the assignment",
                    parser.stream.current.lineno,
                )
            value = parser.parse_expression()
            pairs.append(nodes.Pair(nodes.Const(key.value), value, lineno=key.lineno))

        call = self.call_method(
            "_render",
            [
                nodes.ContextReference(),
                head,
                nodes.List([nodes.Const(attr) for attr in attrs]),
                nodes.Dict(pairs),
                nodes.Const(legacy),
                nodes.Const(expression),
            ],
            lineno=lineno,
        )
        return nodes.Output([call], lineno=lineno)

    @staticmethod
    def _parse_reference(parser: Parser) -> tuple[nodes.Name, list[str]]:
        """Parse ``name(.attr)*`` into the head variable and its attribute path."""
        token = parser.stream.expect("name")
        head = nodes.Name(token.value, "load", lineno=token.lineno)
        attrs: list[str] = []
        while parser.stream.skip_if("dot"):
            attr = parser.stream.current
            if attr.type not in ("name", "integer"):
                parser.fail(
                    "Identifier or literal expected after '.' in include", attr.lineno
                )
            next(parser.stream)
            attrs.append(str(attr.value))
        return head, attrs

    def _resolve_name(self, head: Any, attrs: list[str], legacy: str | None) -> Any:
        value = head
        for attr in attrs:
            if isinstance(value, Undefined):
                break
            value = self.environment.getattr(value, attr)
        if isinstance(value, Undefined) and legacy is not None:
            logger.warning(
                "include %s is not a variable, using it as the partial name", legacy
            )
            return legacy
        return value

    def _render(
        self,
        context: Context,
        head: Any,
        attrs: list[str],
        arguments: dict[str, Any],
        legacy: str | None,
        expression: str,
    ) -> Markup:
        name = self._resolve_name(head, attrs, legacy)
        if not isinstance(name, str):
            raise TemplateRuntimeError(
                f"Can only `include` strings (partial={expression}, got {name!r})"
            )

        frame = IncludeFrame(expression, name)
        stack = tuple(context.get(INCLUDE_STACK, ()))
        if len(stack) >= MAX_INCLUDE_DEPTH:
            raise IncludeError(
                f"maximum include depth of {MAX_INCLUDE_DEPTH} exceeded, "
                f"{name!r} probably includes itself",
                [frame],
            )

        variables = dict(context.parent)
        variables[INCLUDE_STACK] = (*stack, name)
        if arguments:
            variables["include"] = arguments

        try:
            template = self.environment.get_template(name)
            return Markup(template.render(variables))
        except IncludeError as exc:
            raise exc.within(frame) from None
        except TemplateNotFound as exc:
            raise IncludeError(f"Unknown partial {exc.name!r}", [frame]) from exc
        except TemplateError as exc:
            raise IncludeError(describe_error(exc), [frame]) from exc
        except Exception as exc:
            raise IncludeError(f"{type(exc).__name__}: {exc}", [frame]) from exc


def describe_error(exc: TemplateError) -> str:
    """Format a Jinja2 error as a one-line reason.

    Args:
        exc: The template error.

    Returns:
        The message, prefixed with the error kind and line number when known.
    """
    error_type = type(exc).__name__
    message = exc.message or error_type
    if error_type == "UndefinedError":
        return f"Unknown variable: {message}"
    lineno = getattr(exc, "lineno", None)
    if error_type == "TemplateSyntaxError" and lineno:
        return f"Template syntax error on line {lineno}: {message}"
    return f"{error_type}: {message}"
