"""Markdown conversion for Mole.

The renderer never parses Markdown itself; it hands the expanded article body
to mistune through ``MarkdownConverter`` and receives an HTML string.

Key classes:
- MarkdownConverter: Converts Markdown to HTML with syntax highlighting.
"""

from __future__ import annotations

import html

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

PLUGINS = ["strikethrough", "footnotes", "table", "url"]


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer that leaves inline HTML alone and highlights fenced code."""

    def __init__(self):
        super().__init__(escape=False)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'rust').

        Returns:
            HTML string with highlighted code, or an escaped ``<pre>`` block
            when the language is missing or unknown.
        """
        lang = info.split()[0] if info and info.strip() else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                return highlight(code, lexer, HtmlFormatter(cssclass="highlight"))
        lang_class = f' class="language-{html.escape(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{html.escape(code, quote=False)}</code></pre>\n"


class MarkdownConverter:
    """Converts Markdown strings to HTML strings."""

    def __init__(self, plugins: list[str] | None = None):
        self.plugins = PLUGINS if plugins is None else plugins

    def convert(self, markdown: str) -> str:
        """Convert Markdown source to HTML.

        Args:
            markdown: Markdown source text.

        Returns:
            Rendered HTML; a lone paragraph renders as ``<p>...</p>\\n``.
        """
        render = mistune.create_markdown(
            renderer=_HighlightRenderer(), plugins=self.plugins
        )
        return render(markdown)
