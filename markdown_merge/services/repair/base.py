"""Shared pieces of the line-oriented repair passes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List


@dataclass(frozen=True, slots=True)
class RepairIssue:
    """One malformed location; ``line`` is 1-based."""

    line: int
    category: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {"line": self.line, "category": self.category, "description": self.description}


def split_keepends(text: str) -> List[str]:
    """Split on ``\\n`` only, keeping the terminators."""

    if not text:
        return []
    pieces = [piece + "\n" for piece in text.split("\n")]
    last = pieces.pop()
    if last != "\n":
        pieces.append(last[:-1])
    return pieces


class RepairPass:
    """Scanner over ``source`` exposing ``malformed``, ``issues`` and ``fix()``."""

    name = "repair"

    def __init__(self, source: str) -> None:
        self.source = source or ""

    @property
    def issues(self) -> List[RepairIssue]:
        raise NotImplementedError

    @property
    def malformed(self) -> bool:
        return bool(self.issues)

    @property
    def count(self) -> int:
        return len(self.issues)

    def fix(self) -> str:
        raise NotImplementedError


__all__ = ["RepairIssue", "RepairPass", "split_keepends"]
