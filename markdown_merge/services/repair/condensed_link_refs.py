"""Split link reference definitions that were written on one line."""

from __future__ import annotations

import re
from functools import cached_property
from typing import List

from ..link_parser import DefinitionMatch, parse_definition_line
from .base import RepairIssue, RepairPass
from .code_fence_spacing import fenced_line_numbers

# A new ``[label]:`` glued to the previous token (not to whitespace, ``[`` or
# ``]``) whose target looks like a URL, an angle destination, a path or a
# file name.
CONDENSED_PATTERN = re.compile(
    r"(?<=[^\s\[\]])\[(?=[^\]\n]+\]:[ \t]*(?:https?://|<|/|\.|[A-Z][A-Za-z0-9_.-]*\.[a-z]{1,5}(?:[#?]|\[|$)))",
    re.MULTILINE,
)


class CondensedLinkRefs(RepairPass):
    name = "condensed_link_refs"

    @cached_property
    def _offsets(self) -> List[int]:
        """Start of each glued ``[label]:`` outside fenced code."""

        fenced = fenced_line_numbers(self.source)
        return [
            match.start()
            for match in CONDENSED_PATTERN.finditer(self.source)
            if self._line(match.start()) not in fenced
        ]

    @cached_property
    def issues(self) -> List[RepairIssue]:  # type: ignore[override]
        return [
            RepairIssue(
                line=self._line(offset),
                category="condensed_link_definitions",
                description=f"link definition starting at column {self._column(offset)} "
                "is glued to the previous one",
            )
            for offset in self._offsets
        ]

    def _line(self, offset: int) -> int:
        return self.source.count("\n", 0, offset) + 1

    def _column(self, offset: int) -> int:
        return offset - (self.source.rfind("\n", 0, offset) + 1) + 1

    def fix(self) -> str:
        result = self.source
        for offset in reversed(self._offsets):
            result = result[:offset] + "\n" + result[offset:]
        return result

    @property
    def definitions(self) -> List[DefinitionMatch]:
        """Definitions found once the condensed runs are split apart."""

        parsed = []
        for number, line in enumerate(self.fix().split("\n"), start=1):
            definition = parse_definition_line(line, number)
            if definition is not None:
                parsed.append(definition)
        return parsed


__all__ = ["CONDENSED_PATTERN", "CondensedLinkRefs"]
