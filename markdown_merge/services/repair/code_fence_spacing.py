"""Remove whitespace between an opening fence and its info string."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cached_property
from typing import List, Optional, Set

from .base import RepairIssue, RepairPass, split_keepends

FENCE_PATTERN = re.compile(r"^(`{3,}|~{3,})([ \t]*)([^\r\n`]*)\r?$")
MALFORMED_PATTERN = re.compile(r"^(`{3,}|~{3,})[ \t]+([a-zA-Z][^\r\n`]*)(\r?)$")


@dataclass(slots=True)
class FencedBlock:
    start_line: int
    fence: str
    info: str
    end_line: Optional[int] = None
    malformed: bool = False


class CodeFenceSpacing(RepairPass):
    name = "code_fence_spacing"

    @cached_property
    def code_blocks(self) -> List[FencedBlock]:
        """Fenced regions in order; an unclosed fence runs to end of input."""

        blocks: List[FencedBlock] = []
        current: Optional[FencedBlock] = None
        for number, raw in enumerate(split_keepends(self.source), start=1):
            line = raw.rstrip("\n")
            match = FENCE_PATTERN.match(line)
            if not match:
                continue
            fence, spacing, info = match.groups()
            if current is None:
                current = FencedBlock(
                    start_line=number,
                    fence=fence,
                    info=info.strip(),
                    malformed=bool(spacing) and MALFORMED_PATTERN.match(line) is not None,
                )
                blocks.append(current)
            elif (
                fence[0] == current.fence[0]
                and len(fence) >= len(current.fence)
                and not info.strip()
            ):
                current.end_line = number
                current = None
        return blocks

    @cached_property
    def issues(self) -> List[RepairIssue]:  # type: ignore[override]
        return [
            RepairIssue(
                line=block.start_line,
                category="fence_spacing",
                description=f"space between fence and info string {block.info!r}",
            )
            for block in self.code_blocks
            if block.malformed
        ]

    @property
    def malformed_count(self) -> int:
        return len(self.issues)

    def fix(self) -> str:
        targets = {issue.line for issue in self.issues}
        if not targets:
            return self.source
        fixed: List[str] = []
        for number, raw in enumerate(split_keepends(self.source), start=1):
            if number in targets:
                ending = "\n" if raw.endswith("\n") else ""
                raw = MALFORMED_PATTERN.sub(r"\1\2\3", raw.rstrip("\n")) + ending
            fixed.append(raw)
        return "".join(fixed)


def fenced_line_numbers(source: str) -> Set[int]:
    """1-based numbers of the lines inside fenced code, fence lines included."""

    total = len(split_keepends(source))
    numbers: Set[int] = set()
    for block in CodeFenceSpacing(source).code_blocks:
        numbers.update(range(block.start_line, (block.end_line or total) + 1))
    return numbers


__all__ = [
    "CodeFenceSpacing",
    "FENCE_PATTERN",
    "FencedBlock",
    "MALFORMED_PATTERN",
    "fenced_line_numbers",
]
