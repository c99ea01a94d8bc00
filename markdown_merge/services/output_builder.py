"""Assemble merged output from emitted statement texts."""

from __future__ import annotations

from typing import List, Optional

# Types that sit on consecutive lines when adjacent to their own kind.
CONTIGUOUS_TYPES = frozenset({"link_definition"})


def needs_blank_between(previous_type: Optional[str], next_type: Optional[str]) -> bool:
    if previous_type is None or next_type is None:
        return False
    return not (previous_type == next_type and previous_type in CONTIGUOUS_TYPES)


class OutputBuilder:
    """Join blocks with single blank lines, never letting blank lines pile up."""

    def __init__(self) -> None:
        self._lines: List[str] = []
        self._last_type: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not any(line.strip() for line in self._lines)

    def _last_is_blank(self) -> bool:
        return not self._lines or not self._lines[-1].strip()

    def add_block(self, text: str, node_type: Optional[str]) -> None:
        lines = text.split("\n")
        while lines and not lines[0].strip():
            lines.pop(0)
        while lines and not lines[-1].strip():
            lines.pop()
        if not lines:
            return
        if not self._last_is_blank() and needs_blank_between(self._last_type, node_type):
            self._lines.append("")
        self._lines.extend(lines)
        self._last_type = node_type

    def add_node_source(self, text: str, node_type: Optional[str]) -> None:
        self.add_block(text, node_type)

    def add_link_definition(self, text: str) -> None:
        self.add_block(text, "link_definition")

    def add_gap_line(self, text: str) -> None:
        """Blank lines collapse into one separator; other unparsed lines go in raw."""

        for line in text.split("\n"):
            if line.strip():
                self._lines.append(line)
                self._last_type = "gap_line"
            elif not self._last_is_blank():
                self._lines.append("")

    def add_raw(self, text: str) -> None:
        self._lines.extend(text.split("\n"))
        self._last_type = None

    def clear(self) -> None:
        self._lines.clear()
        self._last_type = None

    def to_string(self) -> str:
        lines = list(self._lines)
        while lines and not lines[0].strip():
            lines.pop(0)
        while lines and not lines[-1].strip():
            lines.pop()
        if not lines:
            return ""
        return "\n".join(lines) + "\n"

    __str__ = to_string


__all__ = ["CONTIGUOUS_TYPES", "OutputBuilder", "needs_blank_between"]
