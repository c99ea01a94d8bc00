"""Fuzzy table scoring and the refiner that pairs tables left unmatched.

Scores combine five weighted sub-scores in ``[0, 1]``. Text similarity is
Levenshtein distance normalized by the longer string, computed with
``rapidfuzz``.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from ..utils.errors import ConfigurationError
from ..utils.logging import log_debug
from .nodes import MarkdownNode
from .signatures import extract_text_content

LOGGER = logging.getLogger(__name__)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "header_match": 0.25,
    "first_column": 0.20,
    "row_content": 0.25,
    "total_cells": 0.15,
    "position": 0.15,
}
FIRST_COLUMN_SIMILARITY_THRESHOLD = 0.7
DEFAULT_THRESHOLD = 0.5

Rows = List[List[Optional[str]]]


def normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def levenshtein_distance(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def string_similarity(a: Optional[str], b: Optional[str]) -> float:
    """``1 - distance / max(len)`` over normalized text."""

    left, right = normalize(a), normalize(b)
    if not left and not right:
        return 1.0
    if not left or not right:
        return 0.0
    return 1.0 - levenshtein_distance(left, right) / max(len(left), len(right))


def extract_rows(table: Any) -> Rows:
    """Cell texts per row; accepts a table node or an already extracted list."""

    if isinstance(table, MarkdownNode):
        return [[extract_text_content(cell) for cell in row.children] for row in table.children]
    return [list(row) for row in (table or [])]


def row_match_score(row_a: Sequence[Optional[str]], row_b: Sequence[Optional[str]]) -> float:
    width = max(len(row_a), len(row_b))
    if width == 0:
        return 1.0
    total = 0.0
    for index in range(width):
        if index < len(row_a) and index < len(row_b):
            total += string_similarity(row_a[index], row_b[index])
    return total / width


def compute_header_match(rows_a: Rows, rows_b: Rows) -> float:
    header_a = rows_a[0] if rows_a else []
    header_b = rows_b[0] if rows_b else []
    if not header_a and not header_b:
        return 1.0
    if not header_a or not header_b:
        return 0.0
    shared = min(len(header_a), len(header_b))
    average = sum(string_similarity(header_a[i], header_b[i]) for i in range(shared)) / shared
    return average * shared / max(len(header_a), len(header_b))


def compute_first_column_match(rows_a: Rows, rows_b: Rows) -> float:
    if not rows_a and not rows_b:
        return 1.0
    if not rows_a or not rows_b:
        return 0.0
    shared = min(len(rows_a), len(rows_b))
    total = 0.0
    for index in range(shared):
        first_a = rows_a[index][0] if rows_a[index] else None
        first_b = rows_b[index][0] if rows_b[index] else None
        total += string_similarity(first_a, first_b)
    return total / max(len(rows_a), len(rows_b))


def compute_row_content_match(rows_a: Rows, rows_b: Rows) -> float:
    if not rows_a or not rows_b:
        return 0.0
    total = 0.0
    for row in rows_a:
        first = row[0] if row else None
        if first is None:
            continue
        best_row = None
        best_similarity = 0.0
        for candidate in rows_b:
            candidate_first = candidate[0] if candidate else None
            if candidate_first is None:
                continue
            similarity = string_similarity(first, candidate_first)
            if similarity > best_similarity:
                best_row, best_similarity = candidate, similarity
        if best_row is not None and best_similarity >= FIRST_COLUMN_SIMILARITY_THRESHOLD:
            total += row_match_score(row, best_row)
    return total / len(rows_a)


def compute_total_cells_match(rows_a: Rows, rows_b: Rows) -> float:
    cells_a = Counter(normalize(cell) for row in rows_a for cell in row)
    cells_b = Counter(normalize(cell) for row in rows_b for cell in row)
    size_a, size_b = sum(cells_a.values()), sum(cells_b.values())
    if size_a == 0 and size_b == 0:
        return 1.0
    if size_a == 0 or size_b == 0:
        return 0.0
    shared = sum((cells_a & cells_b).values())
    return 2.0 * shared / (size_a + size_b)


def compute_position_score(
    position_a: Optional[int], position_b: Optional[int], total_a: int, total_b: int
) -> float:
    if position_a is None or position_b is None:
        return 1.0
    return 1.0 - abs(position_a / max(total_a, 1) - position_b / max(total_b, 1))


def weighted_average(scores: Mapping[str, float], weights: Mapping[str, float]) -> float:
    numerator = 0.0
    denominator = 0.0
    for key, score in scores.items():
        weight = weights.get(key)
        if weight is None:
            continue
        numerator += weight * score
        denominator += weight
    if denominator <= 0:
        return 0.0
    return numerator / denominator


class TableMatchAlgorithm:
    """Score the similarity of two tables in ``[0, 1]``."""

    def __init__(
        self,
        position_a: Optional[int] = None,
        position_b: Optional[int] = None,
        total_tables_a: int = 1,
        total_tables_b: int = 1,
        weights: Optional[Mapping[str, float]] = None,
    ) -> None:
        self.position_a = position_a
        self.position_b = position_b
        self.total_tables_a = max(total_tables_a, 1)
        self.total_tables_b = max(total_tables_b, 1)
        merged = dict(DEFAULT_WEIGHTS)
        for key, value in (weights or {}).items():
            if value < 0:
                raise ConfigurationError(f"weight {key!r} must not be negative", code="invalid_weight")
            merged[key] = float(value)
        self.weights = merged

    def component_scores(self, table_a: Any, table_b: Any) -> Dict[str, float]:
        rows_a, rows_b = extract_rows(table_a), extract_rows(table_b)
        return {
            "header_match": compute_header_match(rows_a, rows_b),
            "first_column": compute_first_column_match(rows_a, rows_b),
            "row_content": compute_row_content_match(rows_a, rows_b),
            "total_cells": compute_total_cells_match(rows_a, rows_b),
            "position": compute_position_score(
                self.position_a, self.position_b, self.total_tables_a, self.total_tables_b
            ),
        }

    def __call__(self, table_a: Any, table_b: Any) -> float:
        if not extract_rows(table_a) or not extract_rows(table_b):
            return 0.0
        score = weighted_average(self.component_scores(table_a, table_b), self.weights)
        return max(0.0, min(1.0, score))


@dataclass(frozen=True)
class MatchResult:
    template_node: Any
    dest_node: Any
    score: float
    metadata: Optional[Dict[str, Any]] = None


def is_table(node: Any) -> bool:
    merge_type = getattr(node, "merge_type", None)
    if merge_type is not None:
        return merge_type == "table"
    node_type = getattr(node, "type", None)
    if isinstance(node_type, str):
        return node_type == "table"
    return "table" in type(node).__name__.lower()


class TableMatchRefiner:
    """Pair template and destination tables whose signatures differ."""

    node_types = ("table",)

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        weights: Optional[Mapping[str, float]] = None,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ConfigurationError("threshold must be within [0, 1]", code="invalid_threshold")
        self.threshold = threshold
        self.weights = dict(weights or {})

    def __call__(
        self,
        template_nodes: Sequence[Any],
        dest_nodes: Sequence[Any],
        context: Optional[Mapping[str, Any]] = None,
    ) -> List[MatchResult]:
        template_tables = [node for node in template_nodes if is_table(node)]
        dest_tables = [node for node in dest_nodes if is_table(node)]
        if not template_tables or not dest_tables:
            return []

        claimed: set[int] = set()
        matches: List[MatchResult] = []
        for t_index, template_table in enumerate(template_tables):
            best_index: Optional[int] = None
            best_score = -1.0
            for d_index, dest_table in enumerate(dest_tables):
                if d_index in claimed:
                    continue
                algorithm = TableMatchAlgorithm(
                    position_a=t_index,
                    position_b=d_index,
                    total_tables_a=len(template_tables),
                    total_tables_b=len(dest_tables),
                    weights=self.weights,
                )
                score = algorithm(template_table, dest_table)
                if score > best_score:
                    best_index, best_score = d_index, score
            if best_index is None or best_score < self.threshold:
                continue
            claimed.add(best_index)
            matches.append(
                MatchResult(
                    template_node=template_table,
                    dest_node=dest_tables[best_index],
                    score=best_score,
                    metadata={"template_position": t_index, "dest_position": best_index},
                )
            )
        log_debug(LOGGER, "Table refiner paired tables", matches=len(matches))
        return matches


__all__ = [
    "DEFAULT_THRESHOLD",
    "DEFAULT_WEIGHTS",
    "FIRST_COLUMN_SIMILARITY_THRESHOLD",
    "MatchResult",
    "TableMatchAlgorithm",
    "TableMatchRefiner",
    "compute_first_column_match",
    "compute_header_match",
    "compute_position_score",
    "compute_row_content_match",
    "compute_total_cells_match",
    "extract_rows",
    "is_table",
    "levenshtein_distance",
    "normalize",
    "row_match_score",
    "string_similarity",
    "weighted_average",
]
