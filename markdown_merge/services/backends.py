"""Markdown parser backends producing :class:`MarkdownNode` trees.

Two interchangeable parsers are supported: ``markdown-it-py`` (CommonMark
preset with GFM tables and strikethrough) and ``commonmark`` (commonmark.py).
Both are normalized to the canonical node vocabulary in :mod:`node_types` and
to 1-based inclusive line ranges with trailing blank lines trimmed.
"""

from __future__ import annotations

import importlib.util
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from ..utils.errors import ConfigurationError
from .node_types import canonical_type
from .nodes import MarkdownNode

LOGGER = logging.getLogger(__name__)


def _trim_end(lines: Sequence[str], start: int, end: int) -> int:
    """Move ``end`` up past blank lines without crossing ``start``."""

    end = min(end, len(lines))
    while end > start and not lines[end - 1].strip():
        end -= 1
    return end


class MarkdownBackend:
    """Interface every parser adapter implements."""

    name = "base"
    module = ""

    def parse(self, source: str) -> MarkdownNode:
        raise NotImplementedError


class MarkdownItBackend(MarkdownBackend):
    name = "markdown_it"
    module = "markdown_it"

    def __init__(self) -> None:
        from markdown_it import MarkdownIt

        self._parser = MarkdownIt("commonmark").enable(["table", "strikethrough"])

    def parse(self, source: str) -> MarkdownNode:
        from markdown_it.tree import SyntaxTreeNode

        lines = source.split("\n")
        tree = SyntaxTreeNode(self._parser.parse(source))
        root = MarkdownNode(
            type="document",
            raw_type="root",
            start_line=1,
            end_line=len(lines),
            backend=self.name,
        )
        root.children = [self._convert(child, lines) for child in tree.children]
        return root

    def _convert(self, node: Any, lines: Sequence[str]) -> MarkdownNode:
        raw = node.type
        converted = MarkdownNode(
            type=canonical_type(self.name, raw), raw_type=raw, backend=self.name
        )
        if node.map:
            start = node.map[0] + 1
            converted.start_line = start
            converted.end_line = _trim_end(lines, start, node.map[1])

        if raw == "heading":
            converted.level = int(node.tag[1:])
        elif raw in ("bullet_list", "ordered_list"):
            converted.list_kind = "bullet" if raw == "bullet_list" else "ordered"
        elif raw in ("fence", "code_block"):
            converted.content = node.content
            converted.info = (node.info or "").strip() or None
            converted.markup = node.markup if raw == "fence" else None
        elif raw in ("html_block", "text", "code_inline", "html_inline"):
            converted.content = node.content
        elif raw == "link":
            converted.url = node.attrs.get("href")
            converted.title = node.attrs.get("title")
        elif raw == "image":
            converted.url = node.attrs.get("src")
            converted.title = node.attrs.get("title")

        if raw == "table":
            converted.children = self._table_rows(node, lines)
        else:
            converted.children = [self._convert(child, lines) for child in node.children]
        return converted

    def _table_rows(self, table: Any, lines: Sequence[str]) -> List[MarkdownNode]:
        rows: List[MarkdownNode] = []
        for section in table.children:
            for row in section.children:
                converted = self._convert(row, lines)
                converted.type = "table_header" if section.type == "thead" else "table_row"
                rows.append(converted)
        return rows


class CommonmarkBackend(MarkdownBackend):
    name = "commonmark"
    module = "commonmark"

    def __init__(self) -> None:
        import commonmark

        self._parser_factory = commonmark.Parser

    def parse(self, source: str) -> MarkdownNode:
        lines = source.split("\n")
        document = self._parser_factory().parse(source)
        root = self._convert(document, lines)
        root.start_line = 1
        root.end_line = len(lines)
        return root

    def _convert(self, node: Any, lines: Sequence[str]) -> MarkdownNode:
        raw = node.t
        converted = MarkdownNode(
            type=canonical_type(self.name, raw), raw_type=raw, backend=self.name
        )
        position = node.sourcepos
        if position:
            start = position[0][0]
            converted.start_line = start
            converted.end_line = _trim_end(lines, start, position[1][0])

        if raw == "heading":
            converted.level = node.level
        elif raw == "list":
            kind = str((node.list_data or {}).get("type") or "").lower()
            converted.list_kind = kind if kind in ("bullet", "ordered") else "unknown"
        elif raw == "code_block":
            converted.content = node.literal or ""
            converted.info = (node.info or "").strip() or None
            if node.is_fenced:
                converted.markup = (node.fence_char or "`") * (node.fence_length or 3)
        elif raw in ("html_block", "text", "code", "html_inline"):
            converted.content = node.literal or ""
        elif raw in ("link", "image"):
            converted.url = node.destination
            converted.title = node.title or None

        child = node.first_child
        while child is not None:
            converted.children.append(self._convert(child, lines))
            child = child.nxt
        return converted


_BACKENDS: Dict[str, Type[MarkdownBackend]] = {
    MarkdownItBackend.name: MarkdownItBackend,
    CommonmarkBackend.name: CommonmarkBackend,
}


def _installed(backend_cls: Type[MarkdownBackend]) -> bool:
    return importlib.util.find_spec(backend_cls.module) is not None


def available_backends() -> Tuple[str, ...]:
    """Return the names of importable backends, in auto-detection order."""

    return tuple(name for name, cls in _BACKENDS.items() if _installed(cls))


def resolve_backend(name: Optional[str] = "auto") -> MarkdownBackend:
    """Instantiate the backend called ``name`` (``"auto"`` picks the first installed)."""

    requested = (name or "auto").strip().lower()
    if requested == "auto":
        installed = available_backends()
        if not installed:
            raise ConfigurationError(
                "no markdown backend is installed",
                code="backend_unavailable",
                extra={"backends": list(_BACKENDS)},
            )
        requested = installed[0]
    backend_cls = _BACKENDS.get(requested)
    if backend_cls is None:
        raise ConfigurationError(
            f"unknown backend {name!r}",
            code="unknown_backend",
            extra={"backends": list(_BACKENDS)},
        )
    if not _installed(backend_cls):
        raise ConfigurationError(
            f"backend {requested!r} is not installed",
            code="backend_unavailable",
            extra={"module": backend_cls.module},
        )
    LOGGER.debug("Using markdown backend %s", requested)
    return backend_cls()


__all__ = [
    "CommonmarkBackend",
    "MarkdownBackend",
    "MarkdownItBackend",
    "available_backends",
    "resolve_backend",
]
