"""Statement model shared by the analysis, alignment and merge stages.

Every top-level block of a document becomes one statement. Parser nodes wrap
what the markdown backend produced; the three synthetic kinds cover source the
backend does not expose as blocks (freeze regions, link reference definitions
and unparsed line runs). All of them answer ``kind``, ``type``,
``start_line``/``end_line`` and ``source_position``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Union


class StatementKind(str, Enum):
    PARSER = "parser"
    FREEZE_BLOCK = "freeze_block"
    LINK_DEFINITION = "link_definition"
    GAP_LINE = "gap_line"


def _position(start: Optional[int], end: Optional[int]) -> Optional[Dict[str, int]]:
    if start is None or end is None:
        return None
    return {"start_line": start, "end_line": end}


@dataclass(eq=False)
class MarkdownNode:
    """Backend-neutral node of a parsed markdown tree."""

    type: str
    raw_type: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    content: str = ""
    info: Optional[str] = None
    level: Optional[int] = None
    list_kind: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    label: Optional[str] = None
    markup: Optional[str] = None
    backend: str = ""
    children: List["MarkdownNode"] = field(default_factory=list)

    kind: ClassVar[StatementKind] = StatementKind.PARSER

    @property
    def first_child(self) -> Optional["MarkdownNode"]:
        return self.children[0] if self.children else None

    @property
    def has_position(self) -> bool:
        return (
            self.start_line is not None
            and self.end_line is not None
            and self.start_line <= self.end_line
        )

    @property
    def source_position(self) -> Optional[Dict[str, int]]:
        return _position(self.start_line, self.end_line)

    @property
    def language(self) -> Optional[str]:
        if not self.info:
            return None
        parts = self.info.split()
        return parts[0] if parts else None

    def walk(self) -> Iterator["MarkdownNode"]:
        """Yield this node and every descendant in document order."""

        yield self
        for child in self.children:
            yield from child.walk()

    def to_markdown(self) -> str:
        return render_markdown(self)


@dataclass(frozen=True, eq=False)
class FreezeBlock:
    """Destination region protected by freeze/unfreeze markers."""

    start_line: int
    end_line: int
    content: str
    start_marker: str
    end_marker: str
    reason: Optional[str] = None
    inner_statements: tuple = ()

    kind: ClassVar[StatementKind] = StatementKind.FREEZE_BLOCK
    type: ClassVar[str] = "freeze_block"

    @property
    def full_text(self) -> str:
        if self.content:
            return f"{self.start_marker}\n{self.content}\n{self.end_marker}"
        return f"{self.start_marker}\n{self.end_marker}"

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    @property
    def source_position(self) -> Dict[str, int]:
        return {"start_line": self.start_line, "end_line": self.end_line}

    def contains_type(self, node_type: str) -> bool:
        return any(getattr(stmt, "type", None) == node_type for stmt in self.inner_statements)

    def render(self) -> str:
        return self.full_text


@dataclass(frozen=True, eq=False)
class LinkDefinition:
    """A ``[label]: url "title"`` line the backend consumed without a node."""

    label: str
    url: str
    line: int
    content: str = ""
    title: Optional[str] = None

    kind: ClassVar[StatementKind] = StatementKind.LINK_DEFINITION
    type: ClassVar[str] = "link_definition"

    @property
    def start_line(self) -> int:
        return self.line

    @property
    def end_line(self) -> int:
        return self.line

    @property
    def source_position(self) -> Dict[str, int]:
        return {"start_line": self.line, "end_line": self.line}

    def render(self) -> str:
        return format_link_definition(self)


@dataclass(frozen=True, eq=False)
class GapLine:
    """A run of uncovered source lines; usually blank separators."""

    line: int
    content: str
    preceding_type: Optional[str] = None
    preceding_end_line: Optional[int] = None

    kind: ClassVar[StatementKind] = StatementKind.GAP_LINE
    type: ClassVar[str] = "gap_line"

    @property
    def lines(self) -> List[str]:
        return self.content.split("\n")

    @property
    def start_line(self) -> int:
        return self.line

    @property
    def end_line(self) -> int:
        return self.line + self.content.count("\n")

    @property
    def is_blank(self) -> bool:
        return all(not line.strip() for line in self.lines)

    @property
    def source_position(self) -> Dict[str, int]:
        return {"start_line": self.start_line, "end_line": self.end_line}

    def render(self) -> str:
        return self.content


Statement = Union[MarkdownNode, FreezeBlock, LinkDefinition, GapLine]


def format_link_definition(definition: Any) -> str:
    """Return the source line of ``definition``, rebuilding it when unknown."""

    content = getattr(definition, "content", None)
    if content:
        return content
    line = f"[{definition.label}]: {definition.url}"
    if definition.title:
        line += f' "{definition.title}"'
    return line


# Regeneration used when a node has no usable source range.

def _render_inline(node: MarkdownNode) -> str:
    parts: List[str] = []
    for child in node.children:
        parts.append(_render_inline_node(child))
    return "".join(parts)


def _render_inline_node(node: MarkdownNode) -> str:
    kind = node.type
    if kind == "text" or kind == "html_inline":
        return node.content
    if kind == "code":
        return f"`{node.content}`"
    if kind == "softbreak":
        return "\n"
    if kind == "linebreak":
        return "\\\n"
    if kind == "emph":
        return f"*{_render_inline(node)}*"
    if kind == "strong":
        return f"**{_render_inline(node)}**"
    if kind == "strikethrough":
        return f"~~{_render_inline(node)}~~"
    if kind in ("link", "image"):
        prefix = "!" if kind == "image" else ""
        target = node.url or ""
        if node.title:
            target += f' "{node.title}"'
        return f"{prefix}[{_render_inline(node)}]({target})"
    return _render_inline(node)


def _render_list(node: MarkdownNode) -> str:
    rendered: List[str] = []
    for index, item in enumerate(node.children, start=1):
        marker = f"{index}. " if node.list_kind == "ordered" else "- "
        body = "\n".join(render_markdown(child) for child in item.children)
        lines = body.split("\n") if body else [""]
        indent = " " * len(marker)
        item_lines = [marker + lines[0]] + [
            (indent + line) if line else "" for line in lines[1:]
        ]
        rendered.append("\n".join(item_lines))
    return "\n".join(rendered)


def _render_table(node: MarkdownNode) -> str:
    lines: List[str] = []
    for index, row in enumerate(node.children):
        cells = [_render_inline(cell).strip() for cell in row.children]
        lines.append("| " + " | ".join(cells) + " |")
        if index == 0:
            lines.append("| " + " | ".join("---" for _ in cells) + " |")
    return "\n".join(lines)


def render_markdown(node: MarkdownNode) -> str:
    """Regenerate markdown for ``node`` and its subtree."""

    kind = node.type
    if kind == "heading":
        return "#" * (node.level or 1) + " " + _render_inline(node).strip()
    if kind == "paragraph" or kind == "inline":
        return _render_inline(node)
    if kind == "thematic_break":
        return "---"
    if kind == "code_block":
        fence = node.markup or "```"
        body = node.content
        if body and not body.endswith("\n"):
            body += "\n"
        return f"{fence}{node.info or ''}\n{body}{fence}"
    if kind == "html_block":
        return node.content.rstrip("\n")
    if kind == "block_quote":
        inner = "\n\n".join(render_markdown(child) for child in node.children)
        return "\n".join(f"> {line}".rstrip() for line in inner.split("\n"))
    if kind == "list":
        return _render_list(node)
    if kind == "list_item":
        return "\n".join(render_markdown(child) for child in node.children)
    if kind == "table":
        return _render_table(node)
    if kind == "document":
        return "\n\n".join(render_markdown(child) for child in node.children)
    if node.children:
        return _render_inline(node)
    return node.content


__all__ = [
    "FreezeBlock",
    "GapLine",
    "LinkDefinition",
    "MarkdownNode",
    "Statement",
    "StatementKind",
    "format_link_definition",
    "render_markdown",
]
