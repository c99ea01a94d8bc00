"""Insert the blank lines CommonMark needs between adjacent blocks.

Lines inside an open HTML block element are never touched: inserting a blank
line there would end the HTML block early. Fenced code is skipped entirely.
"""

from __future__ import annotations

import re
from functools import cached_property
from typing import List, Optional, Set, Tuple

from .base import RepairIssue, RepairPass, split_keepends
from .code_fence_spacing import fenced_line_numbers

THEMATIC_BREAK = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$")
HEADING = re.compile(r"^\s*#{1,6}\s+")
LIST_ITEM = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+")
HTML_CLOSE_TAG = re.compile(r"^\s*</[a-zA-Z][a-zA-Z0-9]*>\s*$")
HTML_OPEN_TAG = re.compile(r"^\s*<[a-zA-Z][a-zA-Z0-9]*(?:\s|>)")
HTML_ANY_TAG = re.compile(r"^\s*</?[a-zA-Z]")
LINK_REF_DEF = re.compile(r"^\s*\[[^\]]+\]:\s*")

HTML_BLOCK_ELEMENTS = (
    "ul", "ol", "li", "dl", "dt", "dd", "div", "table", "thead", "tbody", "tfoot",
    "tr", "th", "td", "blockquote", "pre", "figure", "figcaption", "details",
    "summary", "section", "article", "aside", "nav", "header", "footer", "main",
    "address", "form", "fieldset",
)
_ELEMENTS = "|".join(HTML_BLOCK_ELEMENTS)
HTML_BLOCK_OPEN = re.compile(rf"^\s*<({_ELEMENTS})(?:\s|>)", re.IGNORECASE)
HTML_BLOCK_CLOSE = re.compile(rf"</({_ELEMENTS})>", re.IGNORECASE)

# Elements whose body is markdown, so their closing tag still needs a blank line.
MARKDOWN_CONTAINER_ELEMENTS = ("details",)
MARKDOWN_CONTAINER_CLOSE = re.compile(
    rf"^\s*</({'|'.join(MARKDOWN_CONTAINER_ELEMENTS)})>", re.IGNORECASE
)


def is_markdown_content(line: str) -> bool:
    stripped = line.strip()
    if not stripped or stripped.startswith("<"):
        return False
    return not LINK_REF_DEF.match(line)


class BlockSpacing(RepairPass):
    name = "block_spacing"

    @cached_property
    def issues(self) -> List[RepairIssue]:  # type: ignore[override]
        lines = [line.rstrip("\n") for line in split_keepends(self.source)]
        found: List[RepairIssue] = []
        seen: Set[Tuple[int, str]] = set()

        def add(line: int, category: str, description: str) -> None:
            if (line, category) not in seen:
                seen.add((line, category))
                found.append(RepairIssue(line=line, category=category, description=description))

        fenced = fenced_line_numbers(self.source)
        depth = 0
        for idx, line in enumerate(lines):
            if idx + 1 in fenced:
                continue
            next_line: Optional[str] = lines[idx + 1] if idx + 1 < len(lines) else None
            prev_line: Optional[str] = lines[idx - 1] if idx > 0 else None
            if depth <= 0:
                if next_line is not None and next_line.strip():
                    if THEMATIC_BREAK.match(line):
                        add(idx + 1, "thematic_break_needs_blank",
                            "Thematic break should be followed by blank line")
                    if LIST_ITEM.match(line) and HEADING.match(next_line):
                        add(idx + 1, "list_before_heading",
                            "List item should be followed by blank line before heading")
                    if (
                        HTML_CLOSE_TAG.match(line)
                        and not next_line.lstrip().startswith("<")
                        and not LINK_REF_DEF.match(next_line)
                    ):
                        add(idx + 1, "html_before_markdown",
                            "HTML close tag should be followed by blank line before markdown")
                if prev_line is not None and prev_line.strip():
                    self._check_markdown_before_html(prev_line, line, idx, add)
            elif MARKDOWN_CONTAINER_CLOSE.match(line) and prev_line is not None and prev_line.strip():
                self._check_markdown_before_html(prev_line, line, idx, add)

            if HTML_BLOCK_OPEN.match(line):
                depth += 1
            for _ in HTML_BLOCK_CLOSE.finditer(line):
                if depth > 0:
                    depth -= 1
        return found

    @staticmethod
    def _check_markdown_before_html(prev_line: str, line: str, idx: int, add) -> None:
        if HTML_ANY_TAG.match(line) and is_markdown_content(prev_line):
            # Reported on the previous line: the blank goes after it.
            add(idx, "markdown_before_html",
                "Markdown content should be followed by blank line before HTML")

    @property
    def issue_count(self) -> int:
        return len(self.issues)

    def fix(self) -> str:
        if not self.malformed:
            return self.source
        insertions = {issue.line for issue in self.issues}
        result: List[str] = []
        for number, line in enumerate(split_keepends(self.source), start=1):
            result.append(line)
            if number in insertions and line.strip():
                result.append("\n")
        return "".join(result)


__all__ = ["BlockSpacing", "HTML_BLOCK_ELEMENTS", "is_markdown_content"]
