"""Canonical signatures: the equality keys used to align two documents."""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Callable, Optional, Tuple

from .node_types import TEXT_LEAF_TYPES
from .nodes import FreezeBlock, GapLine, LinkDefinition, MarkdownNode, StatementKind

LOGGER = logging.getLogger(__name__)

Signature = Tuple[Any, ...]
SignatureGenerator = Callable[[Any], Any]


class _PassThrough:
    def __repr__(self) -> str:
        return "PASS_THROUGH"


# Returned by a signature override to defer to the built-in rules.
PASS_THROUGH = _PassThrough()


def digest(text: str, length: int = 16) -> str:
    """Return the first ``length`` hex characters of the SHA-256 of ``text``."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]


def extract_text_content(node: MarkdownNode) -> str:
    """Concatenate the text and inline code leaves below ``node``."""

    parts = []
    for descendant in node.walk():
        if descendant.type in TEXT_LEAF_TYPES:
            parts.append(descendant.content)
    return "".join(parts)


def _table_header_hash(node: MarkdownNode) -> str:
    if not node.children:
        return ""
    header = node.children[0]
    return digest("".join(extract_text_content(cell) for cell in header.children))


def compute_signature(statement: Any) -> Optional[Signature]:
    """Return the built-in signature for ``statement``."""

    kind = getattr(statement, "kind", None)
    if kind is StatementKind.FREEZE_BLOCK:
        assert isinstance(statement, FreezeBlock)
        return ("freeze_block", digest(statement.content))
    if kind is StatementKind.LINK_DEFINITION:
        assert isinstance(statement, LinkDefinition)
        return ("link_definition", statement.label.lower())
    if kind is StatementKind.GAP_LINE:
        assert isinstance(statement, GapLine)
        if statement.preceding_type is None or statement.preceding_end_line is None:
            return ("gap_line", statement.line, statement.content)
        offset = statement.line - statement.preceding_end_line
        return ("gap_line_after", statement.preceding_type, offset, statement.content)
    if kind is StatementKind.PARSER:
        return _node_signature(statement)
    return None


def _node_signature(node: MarkdownNode) -> Signature:
    node_type = node.type
    if node_type == "heading":
        return ("heading", node.level, extract_text_content(node).strip())
    if node_type == "paragraph":
        return ("paragraph", digest(extract_text_content(node).strip(), 32))
    if node_type == "list":
        return ("list", node.list_kind or "unknown", len(node.children))
    if node_type == "code_block":
        return ("code_block", node.language, digest(node.content))
    if node_type == "block_quote":
        return ("blockquote", digest(extract_text_content(node).strip()))
    if node_type == "table":
        return ("table", len(node.children), _table_header_hash(node))
    if node_type == "html_block":
        return ("html", digest(node.content.strip()))
    if node_type == "thematic_break":
        return ("thematic_break",)
    if node_type == "footnote_definition":
        return ("footnote_definition", node.label)
    if node_type == "custom_block":
        return ("custom_block", digest(extract_text_content(node).strip()))
    LOGGER.debug("No signature rule for %s; keying on position", node.raw_type)
    return ("unknown", node.raw_type, node.start_line)


class SignatureEngine:
    """Compute signatures, optionally consulting a caller-supplied override.

    The override receives the statement and returns a signature tuple, ``None``
    for "never match", or :data:`PASS_THROUGH` (or the statement itself) to
    defer to the built-in rules. Exceptions raised by the override propagate.
    """

    def __init__(
        self,
        generator: Optional[SignatureGenerator] = None,
        code_block_mode: str = "content",
    ) -> None:
        self.generator = generator
        self.code_block_mode = code_block_mode

    def signature_of(
        self, statement: Any, code_block_ordinal: Optional[int] = None
    ) -> Optional[Signature]:
        if self.generator is not None:
            result = self.generator(statement)
            if result is not PASS_THROUGH and result is not statement:
                if result is None or isinstance(result, tuple):
                    return result
                return tuple(result) if isinstance(result, list) else (result,)
        if (
            self.code_block_mode == "position"
            and code_block_ordinal is not None
            and getattr(statement, "type", None) == "code_block"
        ):
            return ("code_block_position", statement.language, code_block_ordinal)
        return compute_signature(statement)


__all__ = [
    "PASS_THROUGH",
    "Signature",
    "SignatureEngine",
    "SignatureGenerator",
    "compute_signature",
    "digest",
    "extract_text_content",
]
