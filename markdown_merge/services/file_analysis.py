"""Parse one document into its ordered top-level statement sequence."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..config import DEFAULT_FREEZE_TOKEN
from ..utils.errors import ParseError
from ..utils.logging import log_debug, timed
from .backends import MarkdownBackend, resolve_backend
from .link_parser import parse_definition_line
from .nodes import FreezeBlock, GapLine, LinkDefinition, MarkdownNode, Statement
from .signatures import Signature, SignatureEngine, SignatureGenerator

LOGGER = logging.getLogger(__name__)


def freeze_marker_pattern(token: str) -> "re.Pattern[str]":
    """Regex matching ``<!-- TOKEN:freeze reason -->`` and ``<!-- TOKEN:unfreeze -->``."""

    return re.compile(
        r"^\s*<!--\s*" + re.escape(token) + r":(freeze|unfreeze)\b\s*(.*?)\s*-->\s*$"
    )


def normalize_newlines(source: str) -> str:
    return source.replace("\r\n", "\n").replace("\r", "\n")


def frozen_line_numbers(text: str, token: str = DEFAULT_FREEZE_TOKEN) -> Set[int]:
    """1-based numbers of every line inside a paired freeze region, markers included.

    Nested pairs collapse into the outermost region; an unclosed ``freeze``
    protects nothing.
    """

    pattern = freeze_marker_pattern(token)
    frozen: Set[int] = set()
    depth = 0
    opened = 0
    for number, line in enumerate(text.split("\n"), start=1):
        match = pattern.match(line)
        if match is None:
            continue
        if match.group(1) == "freeze":
            if depth == 0:
                opened = number
            depth += 1
        elif depth > 0:
            depth -= 1
            if depth == 0:
                frozen.update(range(opened, number + 1))
    return frozen


@dataclass(frozen=True)
class MarkerIssue:
    """An unpaired freeze marker; the lines stay ordinary statements."""

    line: int
    marker: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"line": self.line, "marker": self.marker, "message": self.message}


class FileAnalysis:
    """Statements, signatures and source lookup for a single markdown document."""

    def __init__(
        self,
        source: str,
        *,
        backend: str | MarkdownBackend = "auto",
        freeze_token: str = DEFAULT_FREEZE_TOKEN,
        signature_generator: Optional[SignatureGenerator] = None,
        code_block_signature: str = "content",
    ) -> None:
        self.source = normalize_newlines(source)
        lines = self.source.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        self.lines: List[str] = lines
        self.freeze_token = freeze_token
        self.backend = backend if isinstance(backend, MarkdownBackend) else resolve_backend(backend)
        self.marker_issues: List[MarkerIssue] = []
        self._engine = SignatureEngine(signature_generator, code_block_signature)
        self._signatures: Dict[int, Optional[Signature]] = {}

        with timed(LOGGER, "parse", backend=self.backend.name, lines=len(self.lines)):
            try:
                self.document: MarkdownNode = self.backend.parse(self.source)
            except Exception as exc:
                raise ParseError(f"{self.backend.name} failed to parse document: {exc}") from exc

        nodes = [node for node in self.document.children]
        statements = self._collect_with_gaps(nodes)
        self.statements: List[Statement] = self._integrate_freeze_blocks(statements, nodes)
        self._code_block_ordinals = self._number_code_blocks()

    # ------------------------------------------------------------------
    # Source access
    # ------------------------------------------------------------------
    def source_range(self, start_line: int, end_line: int) -> str:
        """Return the 1-based inclusive line range, joined with newlines."""

        if start_line < 1 or end_line < start_line:
            return ""
        return "\n".join(self.lines[start_line - 1 : end_line])

    def line_at(self, line_number: int) -> Optional[str]:
        if 1 <= line_number <= len(self.lines):
            return self.lines[line_number - 1]
        return None

    def node_text(self, statement: Statement) -> str:
        """Source text of ``statement``, regenerating markdown without a usable range."""

        if isinstance(statement, MarkdownNode):
            if statement.has_position and statement.end_line <= len(self.lines):
                return self.source_range(statement.start_line, statement.end_line)
            return statement.to_markdown()
        return statement.render()

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------
    def signature(self, statement: Statement) -> Optional[Signature]:
        key = id(statement)
        if key not in self._signatures:
            self._signatures[key] = self._engine.signature_of(
                statement, self._code_block_ordinals.get(key)
            )
        return self._signatures[key]

    def signatures(self) -> List[Optional[Signature]]:
        return [self.signature(statement) for statement in self.statements]

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def freeze_blocks(self) -> List[FreezeBlock]:
        return [stmt for stmt in self.statements if isinstance(stmt, FreezeBlock)]

    @property
    def link_definitions(self) -> List[LinkDefinition]:
        return [stmt for stmt in self.statements if isinstance(stmt, LinkDefinition)]

    def statements_of_type(self, node_type: str) -> List[Statement]:
        return [stmt for stmt in self.statements if stmt.type == node_type]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def _collect_with_gaps(self, nodes: Sequence[MarkdownNode]) -> List[Statement]:
        statements: List[Statement] = []
        preceding: Optional[Statement] = None
        pending: List[int] = []

        def flush() -> None:
            nonlocal preceding
            if not pending:
                return
            content = "\n".join(self.lines[number - 1] for number in pending)
            gap = GapLine(
                line=pending[0],
                content=content,
                preceding_type=preceding.type if preceding is not None else None,
                preceding_end_line=preceding.end_line if preceding is not None else None,
            )
            statements.append(gap)
            pending.clear()

        def uncovered(number: int) -> None:
            nonlocal preceding
            text = self.lines[number - 1]
            parsed = parse_definition_line(text, number)
            if parsed is None:
                pending.append(number)
                return
            flush()
            definition = LinkDefinition(
                label=parsed.label,
                url=parsed.url,
                title=parsed.title,
                line=number,
                content=text,
            )
            statements.append(definition)
            preceding = definition

        line = 1
        for node in nodes:
            if not node.has_position:
                flush()
                statements.append(node)
                continue
            while line < node.start_line and line <= len(self.lines):
                uncovered(line)
                line += 1
            flush()
            statements.append(node)
            preceding = node
            line = max(line, node.end_line + 1)
        while line <= len(self.lines):
            uncovered(line)
            line += 1
        flush()
        return statements

    def _marker_candidates(self, nodes: Sequence[MarkdownNode]) -> Set[int]:
        """Lines where a freeze marker may appear: html block starts or uncovered lines."""

        covered: Set[int] = set()
        allowed: Set[int] = set()
        for node in nodes:
            if not node.has_position:
                continue
            covered.update(range(node.start_line, node.end_line + 1))
            if node.type == "html_block":
                allowed.add(node.start_line)
        allowed.update(
            number for number in range(1, len(self.lines) + 1) if number not in covered
        )
        return allowed

    def _find_freeze_ranges(
        self, nodes: Sequence[MarkdownNode]
    ) -> List[Tuple[int, int, Optional[str]]]:
        pattern = freeze_marker_pattern(self.freeze_token)
        allowed = self._marker_candidates(nodes)
        stack: List[Tuple[int, Optional[str]]] = []
        ranges: List[Tuple[int, int, Optional[str]]] = []
        for number, text in enumerate(self.lines, start=1):
            if number not in allowed:
                continue
            match = pattern.match(text)
            if not match:
                continue
            if match.group(1) == "freeze":
                stack.append((number, match.group(2) or None))
            elif stack:
                start, reason = stack.pop()
                ranges.append((start, number, reason))
            else:
                self._marker_issue(number, "unfreeze", "unfreeze marker without an open freeze")
        for start, _reason in stack:
            self._marker_issue(start, "freeze", "freeze marker is never closed")

        # Keep only outermost regions when markers nest.
        ranges.sort()
        outermost: List[Tuple[int, int, Optional[str]]] = []
        for region in ranges:
            if outermost and region[1] <= outermost[-1][1]:
                continue
            outermost.append(region)
        return outermost

    def _marker_issue(self, line: int, marker: str, message: str) -> None:
        self.marker_issues.append(MarkerIssue(line=line, marker=marker, message=message))
        log_debug(LOGGER, "Ignoring freeze marker", line=line, marker=marker, reason=message)

    def _integrate_freeze_blocks(
        self, statements: List[Statement], nodes: Sequence[MarkdownNode]
    ) -> List[Statement]:
        ranges = self._find_freeze_ranges(nodes)
        if not ranges:
            return statements

        inner: Dict[int, List[Statement]] = {index: [] for index in range(len(ranges))}
        placement: List[Any] = []
        for statement in statements:
            owner = None
            start, end = statement.start_line, statement.end_line
            if start is not None and end is not None:
                for index, (block_start, block_end, _reason) in enumerate(ranges):
                    if start >= block_start and end <= block_end:
                        owner = index
                        break
            if owner is None:
                placement.append(statement)
                continue
            if not inner[owner]:
                placement.append(owner)
            inner[owner].append(statement)

        result: List[Statement] = []
        for item in placement:
            if not isinstance(item, int):
                result.append(item)
                continue
            block_start, block_end, reason = ranges[item]
            result.append(
                FreezeBlock(
                    start_line=block_start,
                    end_line=block_end,
                    content=self.source_range(block_start + 1, block_end - 1),
                    start_marker=self.lines[block_start - 1],
                    end_marker=self.lines[block_end - 1],
                    reason=reason,
                    inner_statements=tuple(inner[item]),
                )
            )
        log_debug(LOGGER, "Integrated freeze blocks", count=len(ranges))
        return result

    def _number_code_blocks(self) -> Dict[int, int]:
        ordinals: Dict[int, int] = {}
        seen: Dict[Optional[str], int] = {}
        for statement in self.statements:
            if isinstance(statement, MarkdownNode) and statement.type == "code_block":
                language = statement.language
                ordinals[id(statement)] = seen.get(language, 0)
                seen[language] = ordinals[id(statement)] + 1
        return ordinals


__all__ = [
    "FileAnalysis",
    "MarkerIssue",
    "freeze_marker_pattern",
    "frozen_line_numbers",
    "normalize_newlines",
]
