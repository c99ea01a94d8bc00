"""Backend raw node names mapped onto the canonical vocabulary used by the engine."""

from __future__ import annotations

from typing import Dict

MARKDOWN_IT_TYPES: Dict[str, str] = {
    "root": "document",
    "heading": "heading",
    "paragraph": "paragraph",
    "bullet_list": "list",
    "ordered_list": "list",
    "list_item": "list_item",
    "fence": "code_block",
    "code_block": "code_block",
    "blockquote": "block_quote",
    "hr": "thematic_break",
    "html_block": "html_block",
    "table": "table",
    "tr": "table_row",
    "th": "table_cell",
    "td": "table_cell",
    "footnote_block": "footnote_definition",
    "inline": "inline",
    "text": "text",
    "code_inline": "code",
    "softbreak": "softbreak",
    "hardbreak": "linebreak",
    "html_inline": "html_inline",
    "em": "emph",
    "strong": "strong",
    "s": "strikethrough",
    "link": "link",
    "image": "image",
}

COMMONMARK_TYPES: Dict[str, str] = {
    "document": "document",
    "heading": "heading",
    "paragraph": "paragraph",
    "list": "list",
    "item": "list_item",
    "code_block": "code_block",
    "block_quote": "block_quote",
    "thematic_break": "thematic_break",
    "html_block": "html_block",
    "custom_block": "custom_block",
    "text": "text",
    "code": "code",
    "softbreak": "softbreak",
    "linebreak": "linebreak",
    "html_inline": "html_inline",
    "custom_inline": "custom_inline",
    "emph": "emph",
    "strong": "strong",
    "link": "link",
    "image": "image",
}

BACKEND_TYPE_TABLES: Dict[str, Dict[str, str]] = {
    "markdown_it": MARKDOWN_IT_TYPES,
    "commonmark": COMMONMARK_TYPES,
}

# Inline leaves whose content makes up a block's plain text.
TEXT_LEAF_TYPES = frozenset({"text", "code"})


def canonical_type(backend: str, raw_type: str) -> str:
    """Return the canonical name for ``raw_type`` produced by ``backend``.

    Unknown names pass through unchanged so the signature engine can key them
    on their raw type and position.
    """

    table = BACKEND_TYPE_TABLES.get(backend, {})
    return table.get(raw_type, raw_type)


__all__ = [
    "BACKEND_TYPE_TABLES",
    "COMMONMARK_TYPES",
    "MARKDOWN_IT_TYPES",
    "TEXT_LEAF_TYPES",
    "canonical_type",
]
