"""Mole static site generator.

This package turns a directory of Markdown articles with a front-matter header
into HTML pages, composing them with Jinja2 layouts and partials.

The pipeline has two stages: the front-matter parser (``frontmatter``) that
produces a typed ``Config`` and the article body, and the renderer
(``render``) that expands the body twice around Markdown conversion before
wrapping it in its layout chain. ``build`` ties both together for a whole site.
"""

__all__ = ["__version__"]
__version__ = "0.2.0"
