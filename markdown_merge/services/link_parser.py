"""Link reference definitions and inline link/image constructs.

Inline constructs are located with bracket/parenthesis depth counting so that
a linked image (``[![alt](img)](url)``) yields two constructs whose character
ranges nest. :func:`build_link_tree` arranges them by interval containment and
:func:`flatten_leaf_first` orders them children-before-parents.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

DEFINITION_PATTERN = re.compile(
    r"""^[ \t]*\[(?P<label>(?:[^\[\]]|\[[^\[\]]*\])+)\]:[ \t]*
        (?P<url><[^>]*>|[^\s>]+)
        (?:[ \t]+(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|\((?P<pq>[^)]*)\)))?
        [ \t]*$""",
    re.VERBOSE,
)

_DESTINATION_PATTERN = re.compile(
    r"""^\((?P<url>(?:[^()\s"']|\([^()\s"']*\))*)
        (?:[ \t]+(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'))?[ \t]*\)$""",
    re.VERBOSE,
)


@dataclass(slots=True)
class DefinitionMatch:
    label: str
    url: str
    title: Optional[str] = None
    line: Optional[int] = None
    content: str = ""


@dataclass(eq=False)
class LinkConstruct:
    """An inline link or image with its character range in the source text."""

    kind: str
    text: str
    url: str
    start: int
    end: int
    original: str
    title: Optional[str] = None
    children: List["LinkConstruct"] = field(default_factory=list)
    parent: Optional["LinkConstruct"] = field(default=None, repr=False)

    @property
    def is_image(self) -> bool:
        return self.kind == "image"

    def contains(self, other: "LinkConstruct") -> bool:
        return self is not other and self.start <= other.start and other.end <= self.end


def parse_definition_line(line: str, line_number: Optional[int] = None) -> Optional[DefinitionMatch]:
    """Parse ``[label]: url "title"``; return ``None`` for anything else."""

    match = DEFINITION_PATTERN.match(line.rstrip("\r\n"))
    if not match:
        return None
    url = match.group("url")
    if url.startswith("<") and url.endswith(">"):
        url = url[1:-1]
    title = match.group("dq")
    if title is None:
        title = match.group("sq")
    if title is None:
        title = match.group("pq")
    return DefinitionMatch(
        label=match.group("label"),
        url=url,
        title=title,
        line=line_number,
        content=line.rstrip("\r\n"),
    )


def parse_definitions(text: str) -> List[DefinitionMatch]:
    """Return every definition line in ``text`` in source order."""

    definitions: List[DefinitionMatch] = []
    for index, line in enumerate(text.split("\n"), start=1):
        parsed = parse_definition_line(line, index)
        if parsed is not None:
            definitions.append(parsed)
    return definitions


def _bracket_end(text: str, start: int) -> Optional[int]:
    depth = 0
    for pos in range(start, len(text)):
        char = text[pos]
        if char == "\\":
            continue
        if char == "[" and (pos == 0 or text[pos - 1] != "\\"):
            depth += 1
        elif char == "]" and (pos == 0 or text[pos - 1] != "\\"):
            depth -= 1
            if depth == 0:
                return pos
    return None


def _paren_end(text: str, start: int) -> Optional[int]:
    depth = 0
    quote: Optional[str] = None
    for pos in range(start, len(text)):
        char = text[pos]
        if quote:
            if char == quote:
                quote = None
            continue
        if char in ('"', "'") and depth > 0 and text[pos - 1] in " \t":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return pos
    return None


def _parse_construct(text: str, start: int, kind: str) -> Optional[LinkConstruct]:
    bracket_start = start + 1 if kind == "image" else start
    bracket_end = _bracket_end(text, bracket_start)
    if bracket_end is None or bracket_end + 1 >= len(text) or text[bracket_end + 1] != "(":
        return None
    paren_end = _paren_end(text, bracket_end + 1)
    if paren_end is None:
        return None
    destination = _DESTINATION_PATTERN.match(text[bracket_end + 1 : paren_end + 1])
    if not destination:
        return None
    title = destination.group("dq")
    if title is None:
        title = destination.group("sq")
    end = paren_end + 1
    return LinkConstruct(
        kind=kind,
        text=text[bracket_start + 1 : bracket_end],
        url=destination.group("url"),
        title=title,
        start=start,
        end=end,
        original=text[start:end],
    )


def find_inline_links(text: str) -> List[LinkConstruct]:
    """Inline ``[text](url)`` links, skipping the ``[`` of images."""

    links: List[LinkConstruct] = []
    pos = 0
    while True:
        start = text.find("[", pos)
        if start < 0:
            break
        if start > 0 and text[start - 1] in "!\\":
            pos = start + 1
            continue
        construct = _parse_construct(text, start, "link")
        if construct is None:
            pos = start + 1
            continue
        links.append(construct)
        pos = construct.end
    return links


def find_inline_images(text: str) -> List[LinkConstruct]:
    """Inline ``![alt](url)`` images, including ones nested in link text."""

    images: List[LinkConstruct] = []
    pos = 0
    while True:
        start = text.find("![", pos)
        if start < 0:
            break
        construct = _parse_construct(text, start, "image")
        if construct is None:
            pos = start + 2
            continue
        images.append(construct)
        pos = construct.end
    return images


def find_all_constructs(text: str) -> List[LinkConstruct]:
    constructs = find_inline_links(text) + find_inline_images(text)
    constructs.sort(key=lambda item: (item.start, -item.end))
    return constructs


def build_link_tree(constructs: Iterable[LinkConstruct]) -> List[LinkConstruct]:
    """Nest constructs by range containment and return the top-level items."""

    ordered = sorted(constructs, key=lambda item: (item.start, -item.end))
    roots: List[LinkConstruct] = []
    stack: List[LinkConstruct] = []
    for item in ordered:
        item.children = []
        item.parent = None
        while stack and not stack[-1].contains(item):
            stack.pop()
        if stack:
            item.parent = stack[-1]
            stack[-1].children.append(item)
        else:
            roots.append(item)
        stack.append(item)
    return roots


def flatten_leaf_first(forest: Iterable[LinkConstruct]) -> List[LinkConstruct]:
    """Post-order walk: every child precedes its parent."""

    ordered: List[LinkConstruct] = []

    def visit(item: LinkConstruct) -> None:
        for child in item.children:
            visit(child)
        ordered.append(item)

    for root in forest:
        visit(root)
    return ordered


def build_url_to_label_map(definitions: Iterable[DefinitionMatch]) -> Dict[str, str]:
    """Map each URL to its shortest label; ties keep the earliest definition."""

    best: Dict[str, str] = {}
    for definition in definitions:
        current = best.get(definition.url)
        if current is None or len(definition.label) < len(current):
            best[definition.url] = definition.label
    return best


__all__ = [
    "DEFINITION_PATTERN",
    "DefinitionMatch",
    "LinkConstruct",
    "build_link_tree",
    "build_url_to_label_map",
    "find_all_constructs",
    "find_inline_images",
    "find_inline_links",
    "flatten_leaf_first",
    "parse_definition_line",
    "parse_definitions",
]
