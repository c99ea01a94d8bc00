"""Merge a template snippet into a single section of a destination document."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Sequence, Union

from ..utils.errors import ConfigurationError, DestinationParseError, ParseError
from .file_analysis import FileAnalysis
from .nodes import GapLine, MarkdownNode
from .problems import DocumentProblems
from .rehydrator import LinkReferenceRehydrator
from .signatures import PASS_THROUGH, extract_text_content
from .smart_merger import SmartMerger
from .whitespace import WhitespaceNormalizer

LOGGER = logging.getLogger(__name__)

WHEN_MISSING = ("skip", "append", "prepend")
Anchor = Union[str, Pattern[str]]


@dataclass
class PartialMergeResult:
    content: str
    has_section: bool
    changed: bool
    stats: Dict[str, Any] = field(default_factory=dict)
    problems: List[Dict[str, Any]] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "has_section": self.has_section,
            "changed": self.changed,
            "stats": dict(self.stats),
            "problems": list(self.problems),
            "message": self.message,
        }


def _normalize_heading(text: str) -> str:
    return " ".join(text.split()).lower()


def section_signature(node: Any) -> Any:
    """Tables inside one section pair up by position rather than content."""

    if getattr(node, "type", None) == "table":
        return ("table", "section_table")
    return PASS_THROUGH


class PartialTemplateMerger:
    """Locate the section under an anchor heading and merge ``template`` into it."""

    def __init__(
        self,
        template: str,
        destination: str,
        anchor: Anchor,
        *,
        level: Optional[int] = None,
        backend: str = "auto",
        preference: Any = "template",
        add_missing: bool = True,
        when_missing: str = "skip",
        replace_mode: bool = False,
        signature_generator: Any = None,
        match_refiner: Any = None,
        normalize_whitespace: Union[bool, str] = False,
        rehydrate_link_references: bool = False,
    ) -> None:
        if when_missing not in WHEN_MISSING:
            raise ConfigurationError(
                f"when_missing must be one of {', '.join(WHEN_MISSING)}", code="invalid_when_missing"
            )
        self.template = template
        self.destination = destination
        self.backend = backend
        self.preference = preference
        self.add_missing = add_missing
        self.when_missing = when_missing
        self.replace_mode = replace_mode
        self.signature_generator = signature_generator
        self.match_refiner = match_refiner
        self.normalize_whitespace = normalize_whitespace
        self.rehydrate_link_references = rehydrate_link_references
        self.anchor, self.level = self._parse_anchor(anchor, level)

    @staticmethod
    def _parse_anchor(anchor: Anchor, level: Optional[int]) -> tuple[Anchor, Optional[int]]:
        if isinstance(anchor, str):
            match = re.match(r"^\s*(#{1,6})\s+(.*)$", anchor)
            if match:
                return _normalize_heading(match.group(2)), level or len(match.group(1))
            return _normalize_heading(anchor), level
        return anchor, level

    def _matches_anchor(self, statement: Any) -> bool:
        if not isinstance(statement, MarkdownNode) or statement.type != "heading":
            return False
        if self.level is not None and statement.level != self.level:
            return False
        text = extract_text_content(statement)
        if isinstance(self.anchor, str):
            return _normalize_heading(text) == self.anchor
        return bool(self.anchor.search(text))

    def find_section(self, statements: Sequence[Any]) -> Optional[tuple[int, int]]:
        """Index range (inclusive) of the anchor heading and its section body."""

        for index, statement in enumerate(statements):
            if not self._matches_anchor(statement):
                continue
            end = index
            for probe in range(index + 1, len(statements)):
                candidate = statements[probe]
                if (
                    isinstance(candidate, MarkdownNode)
                    and candidate.type == "heading"
                    and (candidate.level or 0) <= (statement.level or 0)
                ):
                    break
                if not isinstance(candidate, GapLine):
                    end = probe
            return index, end
        return None

    def merge(self) -> PartialMergeResult:
        try:
            analysis = FileAnalysis(self.destination, backend=self.backend)
        except ParseError as exc:
            raise DestinationParseError(exc.message) from exc

        section = self.find_section(analysis.statements)
        if section is None:
            LOGGER.info("Anchor %r not found; when_missing=%s", self.anchor, self.when_missing)
            return self._handle_missing()

        start_index, end_index = section
        start_line = analysis.statements[start_index].start_line
        end_line = analysis.statements[end_index].end_line
        section_text = analysis.source_range(start_line, end_line)
        stats: Dict[str, Any] = {}
        if self.replace_mode:
            merged_section = self.template
            stats["mode"] = "replace"
        else:
            merger = SmartMerger(
                self.template,
                section_text,
                backend=self.backend,
                preference=self.preference,
                add_template_only_nodes=self.add_missing,
                signature_generator=self.signature_generator or section_signature,
                match_refiner=self.match_refiner,
            )
            merged_section = merger.merge()
            stats.update(merger.merge_result().stats.to_dict())

        before = analysis.source_range(1, start_line - 1)
        after = analysis.source_range(end_line + 1, len(analysis.lines))
        pieces = [before.strip("\n"), merged_section.strip("\n"), after.strip("\n")]
        content = "\n\n".join(piece for piece in pieces if piece) + "\n"
        stats["section_start_line"] = start_line
        stats["section_end_line"] = end_line
        return self._finish(content, has_section=True, stats=stats)

    def _handle_missing(self) -> PartialMergeResult:
        if self.when_missing == "skip":
            return PartialMergeResult(
                content=self.destination,
                has_section=False,
                changed=False,
                message="anchor heading not found; destination left unchanged",
            )
        template = self.template.strip("\n")
        body = self.destination.strip("\n")
        if self.when_missing == "append":
            pieces = [body, template]
        else:
            pieces = [template, body]
        content = "\n\n".join(piece for piece in pieces if piece) + "\n"
        return self._finish(
            content,
            has_section=False,
            stats={"mode": self.when_missing},
            message=f"anchor heading not found; template {self.when_missing}ed",
        )

    def _finish(
        self,
        content: str,
        *,
        has_section: bool,
        stats: Dict[str, Any],
        message: Optional[str] = None,
    ) -> PartialMergeResult:
        changed = content != self.destination
        problems = DocumentProblems()
        if changed and self.normalize_whitespace:
            mode = "basic" if self.normalize_whitespace is True else self.normalize_whitespace
            content, found = WhitespaceNormalizer.normalize_text(content, mode)
            problems.merge(found)
        if changed and self.rehydrate_link_references:
            content, rehydrator = LinkReferenceRehydrator.rehydrate_text(content)
            problems.merge(rehydrator.problems)
        return PartialMergeResult(
            content=content,
            has_section=has_section,
            changed=changed,
            stats=stats,
            problems=problems.to_list(),
            message=message,
        )


__all__ = ["PartialMergeResult", "PartialTemplateMerger", "WHEN_MISSING", "section_signature"]
