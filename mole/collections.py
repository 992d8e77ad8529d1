"""Site-wide context for Mole templates.

Built once from every successfully parsed article, before any of them is
rendered, and exposed to all templates as ``global``::

    global.articles     page bindings of every article, in build order
    global.tags         tag -> [url, ...]
    global.categories   category -> [url, ...]
    global.cats         same index as ``categories``
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .document import Document


def build_index(documents: Iterable[Document], attribute: str) -> dict[str, list[str]]:
    """Index document URLs by one of their list-valued config fields.

    Args:
        documents: Parsed documents.
        attribute: ``"tags"`` or ``"categories"``.

    Returns:
        Mapping of value -> URLs of the documents carrying it, in document order.
    """
    index: dict[str, list[str]] = {}
    for document in documents:
        for value in getattr(document.config, attribute):
            index.setdefault(value, []).append(document.url)
    return index


def build_site_context(documents: Iterable[Document]) -> dict[str, Any]:
    """Build the ``global`` template variable from pre-render documents."""
    documents = list(documents)
    categories = build_index(documents, "categories")
    return {
        "articles": [document.bindings for document in documents],
        "tags": build_index(documents, "tags"),
        "categories": categories,
        "cats": categories,
    }
