"""Text repair passes run over raw markdown before it is parsed."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Type

from .base import RepairIssue, RepairPass, split_keepends
from .block_spacing import BlockSpacing
from .code_fence_spacing import CodeFenceSpacing
from .condensed_link_refs import CondensedLinkRefs

DEFAULT_PASSES: tuple[Type[RepairPass], ...] = (CondensedLinkRefs, CodeFenceSpacing, BlockSpacing)


@dataclass(slots=True)
class RepairReport:
    text: str
    issues: Dict[str, List[RepairIssue]] = field(default_factory=dict)
    changed: bool = False

    @property
    def issue_count(self) -> int:
        return sum(len(found) for found in self.issues.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "changed": self.changed,
            "issues": {
                name: [issue.to_dict() for issue in found] for name, found in self.issues.items()
            },
        }


def repair_markdown(text: str, passes: tuple[Type[RepairPass], ...] = DEFAULT_PASSES) -> RepairReport:
    """Run each pass over the output of the previous one."""

    current = text
    issues: Dict[str, List[RepairIssue]] = {}
    for pass_cls in passes:
        scanner = pass_cls(current)
        if scanner.malformed:
            issues[scanner.name] = list(scanner.issues)
            current = scanner.fix()
    return RepairReport(text=current, issues=issues, changed=current != text)


__all__ = [
    "BlockSpacing",
    "CodeFenceSpacing",
    "CondensedLinkRefs",
    "DEFAULT_PASSES",
    "RepairIssue",
    "RepairPass",
    "RepairReport",
    "repair_markdown",
    "split_keepends",
]
