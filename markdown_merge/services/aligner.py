"""Align the statements of a template and a destination document."""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Sequence

from ..utils.logging import log_debug
from .table_match import DEFAULT_THRESHOLD

LOGGER = logging.getLogger(__name__)

MatchRefiner = Callable[..., Sequence[Any]]


class AlignmentKind(str, Enum):
    MATCH = "match"
    TEMPLATE_ONLY = "template_only"
    DEST_ONLY = "dest_only"


@dataclass(frozen=True)
class AlignmentEntry:
    kind: AlignmentKind
    template_stmt: Any = None
    dest_stmt: Any = None
    template_index: Optional[int] = None
    dest_index: Optional[int] = None
    score: Optional[float] = None

    @property
    def is_match(self) -> bool:
        return self.kind is AlignmentKind.MATCH


def align_statements(
    template_stmts: Sequence[Any],
    dest_stmts: Sequence[Any],
    template_signatures: Sequence[Any],
    dest_signatures: Sequence[Any],
    match_refiner: Optional[MatchRefiner] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> List[AlignmentEntry]:
    """Return match/dest_only entries in destination order, then template_only ones.

    Statements with a ``None`` signature never match by signature. Exceptions
    raised by ``match_refiner`` propagate to the caller.
    """

    available: Dict[Any, Deque[int]] = defaultdict(deque)
    for index, signature in enumerate(template_signatures):
        if signature is not None:
            available[signature].append(index)

    consumed: set[int] = set()
    dest_matches: List[Optional[int]] = []
    scores: Dict[int, float] = {}
    for signature in dest_signatures:
        queue = available.get(signature) if signature is not None else None
        if queue:
            template_index = queue.popleft()
            consumed.add(template_index)
            dest_matches.append(template_index)
        else:
            dest_matches.append(None)

    if match_refiner is not None:
        remaining_template = [
            index for index in range(len(template_stmts)) if index not in consumed
        ]
        remaining_dest = [index for index, match in enumerate(dest_matches) if match is None]
        if remaining_template and remaining_dest:
            _apply_refiner(
                match_refiner,
                template_stmts,
                dest_stmts,
                remaining_template,
                remaining_dest,
                consumed,
                dest_matches,
                scores,
                context or {},
            )

    entries: List[AlignmentEntry] = []
    for dest_index, template_index in enumerate(dest_matches):
        if template_index is None:
            entries.append(
                AlignmentEntry(
                    kind=AlignmentKind.DEST_ONLY,
                    dest_stmt=dest_stmts[dest_index],
                    dest_index=dest_index,
                )
            )
        else:
            entries.append(
                AlignmentEntry(
                    kind=AlignmentKind.MATCH,
                    template_stmt=template_stmts[template_index],
                    dest_stmt=dest_stmts[dest_index],
                    template_index=template_index,
                    dest_index=dest_index,
                    score=scores.get(dest_index),
                )
            )
            LOGGER.trace("match template[%d] -> dest[%d]", template_index, dest_index)
    for template_index, statement in enumerate(template_stmts):
        if template_index not in consumed:
            entries.append(
                AlignmentEntry(
                    kind=AlignmentKind.TEMPLATE_ONLY,
                    template_stmt=statement,
                    template_index=template_index,
                )
            )
    log_debug(
        LOGGER,
        "Aligned statements",
        matches=sum(1 for entry in entries if entry.is_match),
        total=len(entries),
    )
    return entries


def _apply_refiner(
    refiner: MatchRefiner,
    template_stmts: Sequence[Any],
    dest_stmts: Sequence[Any],
    remaining_template: List[int],
    remaining_dest: List[int],
    consumed: set[int],
    dest_matches: List[Optional[int]],
    scores: Dict[int, float],
    context: Mapping[str, Any],
) -> None:
    template_lookup = {id(template_stmts[index]): index for index in remaining_template}
    dest_lookup = {id(dest_stmts[index]): index for index in remaining_dest}
    threshold = getattr(refiner, "threshold", DEFAULT_THRESHOLD)
    results = refiner(
        [template_stmts[index] for index in remaining_template],
        [dest_stmts[index] for index in remaining_dest],
        context,
    )
    for result in results or []:
        if result.score < threshold:
            continue
        template_index = template_lookup.get(id(result.template_node))
        dest_index = dest_lookup.get(id(result.dest_node))
        if template_index is None or dest_index is None:
            continue
        if template_index in consumed or dest_matches[dest_index] is not None:
            continue
        consumed.add(template_index)
        dest_matches[dest_index] = template_index
        scores[dest_index] = result.score


class FileAligner:
    """Align two :class:`FileAnalysis` objects."""

    def __init__(self, template_analysis: Any, dest_analysis: Any, match_refiner: Optional[MatchRefiner] = None) -> None:
        self.template_analysis = template_analysis
        self.dest_analysis = dest_analysis
        self.match_refiner = match_refiner

    def align(self) -> List[AlignmentEntry]:
        return align_statements(
            self.template_analysis.statements,
            self.dest_analysis.statements,
            self.template_analysis.signatures(),
            self.dest_analysis.signatures(),
            self.match_refiner,
            {
                "template_analysis": self.template_analysis,
                "dest_analysis": self.dest_analysis,
            },
        )


__all__ = ["AlignmentEntry", "AlignmentKind", "FileAligner", "MatchRefiner", "align_statements"]
