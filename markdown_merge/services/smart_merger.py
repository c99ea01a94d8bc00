"""Merge a template document into a destination document.

The destination's structure wins: its statements are emitted in order, with
matched statements resolved against the template, and template-only
statements appended at the end when the options allow it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type

from ..config import MergeOptions
from ..utils.errors import DestinationParseError, ParseError, TemplateParseError
from ..utils.logging import log_debug, timed
from .aligner import AlignmentEntry, AlignmentKind, FileAligner
from .backends import MarkdownBackend, resolve_backend
from .code_block_merger import CodeBlockMerger
from .conflict_resolver import ConflictResolver, Decision
from .file_analysis import FileAnalysis
from .nodes import FreezeBlock, GapLine, LinkDefinition, MarkdownNode, StatementKind
from .output_builder import OutputBuilder
from .problems import DocumentProblems, Problem
from .rehydrator import LinkReferenceRehydrator
from .repair import repair_markdown
from .whitespace import WhitespaceNormalizer

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrozenBlockInfo:
    start_line: int
    end_line: int
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MergeStats:
    nodes_added: int = 0
    nodes_removed: int = 0
    nodes_modified: int = 0
    inner_merges: int = 0
    merge_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MergeResult:
    """Immutable outcome of one merge."""

    content: str
    stats: MergeStats = field(default_factory=MergeStats)
    conflicts: Tuple[Dict[str, Any], ...] = ()
    frozen_blocks: Tuple[FrozenBlockInfo, ...] = ()
    problems: Tuple[Problem, ...] = ()

    @property
    def success(self) -> bool:
        return not self.conflicts and self.content is not None

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def is_frozen(self) -> bool:
        return bool(self.frozen_blocks)

    @property
    def frozen_count(self) -> int:
        return len(self.frozen_blocks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "success": self.success,
            "stats": self.stats.to_dict(),
            "conflicts": [dict(conflict) for conflict in self.conflicts],
            "frozen_blocks": [block.to_dict() for block in self.frozen_blocks],
            "problems": [problem.to_dict() for problem in self.problems],
        }

    def __str__(self) -> str:
        return self.content


def _is_code_block(statement: Any) -> bool:
    return isinstance(statement, MarkdownNode) and statement.type == "code_block"


class SmartMerger:
    """Structural merge of ``template_content`` into ``dest_content``.

    Options are validated by :class:`~markdown_merge.config.MergeOptions`;
    unknown or invalid values raise ``ConfigurationError``. Parse failures raise
    ``TemplateParseError`` or ``DestinationParseError``.

    A frozen match counts toward ``nodes_modified`` only when the two sides'
    text differs, which can happen once a signature override pairs them.
    """

    def __init__(self, template_content: str, dest_content: str, **options: Any) -> None:
        self.options = MergeOptions.build(**options)
        self.template_content = template_content
        self.dest_content = dest_content
        self.resolver = ConflictResolver(self.options.preference)
        self.code_block_merger = self._build_code_block_merger(self.options.inner_merge_code_blocks)
        backend = resolve_backend(self.options.backend)

        self._input_problems = DocumentProblems()
        template_source, dest_source = template_content, dest_content
        if self.options.repair_input:
            template_source = self._repair(template_content, "template")
            dest_source = self._repair(dest_content, "destination")
        self.template_analysis = self._analyze(template_source, backend, TemplateParseError)
        self.dest_analysis = self._analyze(dest_source, backend, DestinationParseError)
        self.resolver.template_analysis = self.template_analysis
        self.resolver.dest_analysis = self.dest_analysis
        self._result: Optional[MergeResult] = None

    def _repair(self, text: str, side: str) -> str:
        report = repair_markdown(text)
        for pass_name, issues in report.issues.items():
            for issue in issues:
                self._input_problems.add(
                    "input_repaired",
                    severity="info",
                    side=side,
                    repair=pass_name,
                    line=issue.line,
                    issue=issue.category,
                    description=issue.description,
                )
        return report.text

    @staticmethod
    def _build_code_block_merger(option: Any) -> Optional[CodeBlockMerger]:
        if option is True:
            return CodeBlockMerger()
        if option is False or option is None:
            return None
        return option

    def _analyze(
        self, source: str, backend: MarkdownBackend, error_cls: Type[ParseError]
    ) -> FileAnalysis:
        try:
            return FileAnalysis(
                source,
                backend=backend,
                freeze_token=self.options.freeze_token,
                signature_generator=self.options.signature_generator,
                code_block_signature=self.options.code_block_signature,
            )
        except ParseError as exc:
            raise error_cls(exc.message, extra={"backend": backend.name}) from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def merge(self) -> str:
        return self.merge_result().content

    def merge_result(self) -> MergeResult:
        if self._result is None:
            self._result = self._perform_merge()
        return self._result

    def align(self) -> List[AlignmentEntry]:
        return FileAligner(
            self.template_analysis, self.dest_analysis, self.options.match_refiner
        ).align()

    # ------------------------------------------------------------------
    # Merge walk
    # ------------------------------------------------------------------
    def _perform_merge(self) -> MergeResult:
        started = time.perf_counter()
        builder = OutputBuilder()
        stats = MergeStats()
        frozen: List[FrozenBlockInfo] = []
        problems = DocumentProblems(self._input_problems.all())

        with timed(LOGGER, "merge"):
            for entry in self.align():
                if entry.kind is AlignmentKind.MATCH:
                    self._process_match(entry, builder, stats, frozen)
                elif entry.kind is AlignmentKind.DEST_ONLY:
                    self._process_dest_only(entry, builder, stats, frozen)
                else:
                    self._process_template_only(entry, builder, stats)
            content = self._post_process(builder.to_string(), problems)

        stats.merge_time_ms = round((time.perf_counter() - started) * 1000.0, 3)
        log_debug(LOGGER, "Merge complete", **stats.to_dict())
        return MergeResult(
            content=content,
            stats=stats,
            frozen_blocks=tuple(frozen),
            problems=tuple(problems.all()),
        )

    def _emit(self, builder: OutputBuilder, statement: Any, text: str) -> None:
        if isinstance(statement, GapLine):
            builder.add_gap_line(text)
        elif isinstance(statement, LinkDefinition):
            builder.add_link_definition(text)
        else:
            builder.add_node_source(text, statement.type)

    def _process_match(
        self,
        entry: AlignmentEntry,
        builder: OutputBuilder,
        stats: MergeStats,
        frozen: List[FrozenBlockInfo],
    ) -> None:
        template_stmt, dest_stmt = entry.template_stmt, entry.dest_stmt

        if (
            self.code_block_merger is not None
            and _is_code_block(template_stmt)
            and _is_code_block(dest_stmt)
        ):
            inner = self.code_block_merger.merge_code_blocks(
                template_stmt,
                dest_stmt,
                preference=self.resolver.preference_for(dest_stmt),
                add_template_only_nodes=self.options.add_template_only_nodes is True,
            )
            if inner.merged:
                self._emit(builder, dest_stmt, self._fenced(dest_stmt, inner.content or ""))
                stats.inner_merges += 1
                if inner.stats.get("decision") != "identical":
                    stats.nodes_modified += 1
                return

        decision = self.resolver.resolve(template_stmt, dest_stmt)
        log_debug(
            LOGGER,
            "Resolved match",
            type=dest_stmt.type,
            source=decision.source,
            decision=decision.decision.value,
        )
        if decision.source == "template":
            self._emit(builder, template_stmt, self.template_analysis.node_text(template_stmt))
        else:
            self._emit(builder, dest_stmt, self.dest_analysis.node_text(dest_stmt))
        if decision.decision is Decision.FROZEN:
            if isinstance(dest_stmt, FreezeBlock):
                frozen.append(self._frozen_info(dest_stmt))
            template_text = self.template_analysis.node_text(template_stmt)
            if template_text != self.dest_analysis.node_text(dest_stmt):
                stats.nodes_modified += 1
        elif decision.decision is not Decision.IDENTICAL:
            stats.nodes_modified += 1

    def _process_dest_only(
        self,
        entry: AlignmentEntry,
        builder: OutputBuilder,
        stats: MergeStats,
        frozen: List[FrozenBlockInfo],
    ) -> None:
        statement = entry.dest_stmt
        if isinstance(statement, FreezeBlock):
            frozen.append(self._frozen_info(statement))
        elif self.options.remove_template_missing_nodes and statement.kind in (
            StatementKind.PARSER,
            StatementKind.LINK_DEFINITION,
        ):
            stats.nodes_removed += 1
            return
        self._emit(builder, statement, self.dest_analysis.node_text(statement))

    def _process_template_only(
        self, entry: AlignmentEntry, builder: OutputBuilder, stats: MergeStats
    ) -> None:
        statement = entry.template_stmt
        if isinstance(statement, GapLine) and statement.is_blank:
            return
        allow = self.options.add_template_only_nodes
        if callable(allow):
            allowed = bool(allow(statement, entry))
        else:
            allowed = bool(allow)
        if not allowed:
            return
        self._emit(builder, statement, self.template_analysis.node_text(statement))
        stats.nodes_added += 1

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _frozen_info(block: FreezeBlock) -> FrozenBlockInfo:
        return FrozenBlockInfo(start_line=block.start_line, end_line=block.end_line, reason=block.reason)

    def _fenced(self, node: MarkdownNode, body: str) -> str:
        """Wrap ``body`` in the destination block's own fence lines."""

        if body and not body.endswith("\n"):
            body += "\n"
        opening = closing = None
        if node.markup and node.has_position:
            opening = self.dest_analysis.line_at(node.start_line)
            if node.end_line > node.start_line:
                last = self.dest_analysis.line_at(node.end_line) or ""
                if last.strip().startswith(node.markup[0] * 3):
                    closing = last
        if opening is None:
            opening = f"{node.markup or '```'}{node.info or ''}"
        if closing is None:
            closing = node.markup or "```"
        return f"{opening}\n{body}{closing}"

    def _post_process(self, content: str, problems: DocumentProblems) -> str:
        mode = self.options.normalize_whitespace
        token = self.options.freeze_token
        if mode:
            content, found = WhitespaceNormalizer.normalize_text(
                content, "basic" if mode is True else mode, token
            )
            problems.merge(found)
        if self.options.rehydrate_link_references:
            content, rehydrator = LinkReferenceRehydrator.rehydrate_text(content, token)
            problems.merge(rehydrator.problems)
        return content


def merge_markdown(template_content: str, dest_content: str, **options: Any) -> MergeResult:
    """Shortcut for ``SmartMerger(...).merge_result()``."""

    return SmartMerger(template_content, dest_content, **options).merge_result()


__all__ = [
    "FrozenBlockInfo",
    "MergeResult",
    "MergeStats",
    "SmartMerger",
    "merge_markdown",
]
