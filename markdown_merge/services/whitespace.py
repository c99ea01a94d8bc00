"""Blank-line normalization applied to merged output."""

from __future__ import annotations

from typing import List, Set, Tuple, Union

from ..config import DEFAULT_FREEZE_TOKEN, WHITESPACE_MODES
from ..utils.errors import ConfigurationError
from .file_analysis import frozen_line_numbers
from .link_parser import parse_definition_line
from .problems import DocumentProblems
from .repair.base import split_keepends


def _is_blank(line: str) -> bool:
    return line.rstrip("\n") == ""


def _is_definition(line: str) -> bool:
    return parse_definition_line(line) is not None


class WhitespaceNormalizer:
    """Collapse blank-line runs and, for ``link_refs``/``strict``, tighten definition blocks.

    Lines inside paired freeze markers for ``freeze_token`` are copied unchanged.
    """

    def __init__(
        self,
        content: str,
        mode: Union[str, bool] = "basic",
        freeze_token: str = DEFAULT_FREEZE_TOKEN,
    ) -> None:
        self.content = content
        self.mode = self._normalize_mode(mode)
        self.freeze_token = freeze_token
        self.problems = DocumentProblems()

    @classmethod
    def normalize_text(
        cls,
        content: str,
        mode: Union[str, bool] = "basic",
        freeze_token: str = DEFAULT_FREEZE_TOKEN,
    ) -> Tuple[str, DocumentProblems]:
        normalizer = cls(content, mode, freeze_token)
        return normalizer.normalize(), normalizer.problems

    @staticmethod
    def _normalize_mode(mode: Union[str, bool]) -> str:
        if isinstance(mode, bool):
            return "basic"
        if mode not in WHITESPACE_MODES:
            raise ConfigurationError(
                f"Unknown mode: {mode}. Valid modes: {', '.join(WHITESPACE_MODES)}",
                code="unknown_whitespace_mode",
            )
        return mode

    @property
    def changed(self) -> bool:
        return not self.problems.empty

    def normalize(self) -> str:
        result = self._collapse_blank_runs(self.content)
        if self.mode in ("link_refs", "strict"):
            result = self._tighten_definitions(result)
        return result

    def _frozen(self, text: str) -> Set[int]:
        return frozen_line_numbers(text, self.freeze_token)

    def _collapse_blank_runs(self, text: str) -> str:
        frozen = self._frozen(text)
        result: List[str] = []
        blanks = 0
        run_start = None
        for number, line in enumerate(split_keepends(text), start=1):
            if _is_blank(line) and number not in frozen:
                blanks += 1
                if run_start is None:
                    run_start = number
                if blanks <= 1:
                    result.append(line)
                continue
            self._record_run(blanks, run_start)
            blanks = 0
            run_start = None
            result.append(line)
        self._record_run(blanks, run_start)
        return "".join(result)

    def _record_run(self, blanks: int, run_start: int | None) -> None:
        if blanks >= 2:
            self.problems.add(
                "excessive_whitespace",
                severity="warning",
                line=run_start,
                blank_lines=blanks,
                collapsed_to=1,
            )

    def _tighten_definitions(self, text: str) -> str:
        lines = split_keepends(text)
        frozen = self._frozen(text)
        result: List[str] = []
        index = 0
        while index < len(lines):
            line = lines[index]
            result.append(line)
            index += 1
            if index in frozen or not _is_definition(line):
                continue
            probe = index
            while probe < len(lines) and _is_blank(lines[probe]) and probe + 1 not in frozen:
                probe += 1
            if (
                probe > index
                and probe < len(lines)
                and probe + 1 not in frozen
                and _is_definition(lines[probe])
            ):
                self.problems.add(
                    "link_ref_spacing",
                    severity="info",
                    line=index + 1,
                    blank_lines_removed=probe - index,
                )
                index = probe
        return "".join(result)


__all__ = ["WhitespaceNormalizer"]
