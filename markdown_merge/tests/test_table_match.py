"""Fuzzy table scoring and table pairing."""

from __future__ import annotations

import pytest

from markdown_merge.services.table_match import (
    DEFAULT_WEIGHTS,
    TableMatchAlgorithm,
    TableMatchRefiner,
    compute_header_match,
    compute_position_score,
    compute_row_content_match,
    compute_total_cells_match,
    row_match_score,
    string_similarity,
    weighted_average,
)
from markdown_merge.utils.errors import ConfigurationError

PEOPLE = [["Name", "Age"], ["Alice", "30"], ["Bob", "25"]]


def test_default_weights_sum_to_one():
    assert sum(DEFAULT_WEIGHTS.values()) == pytest.approx(1.0)


def test_string_similarity():
    assert string_similarity("Hello", " hello ") == 1.0
    assert string_similarity("", None) == 1.0
    assert string_similarity("abc", "") == 0.0
    assert string_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_row_and_header_scores():
    assert row_match_score([], []) == 1.0
    assert 0.5 <= row_match_score(["A", "B", "C"], ["A", "B"]) < 1.0
    assert compute_header_match([["A", "B"]], [["A", "B"]]) == 1.0
    assert compute_header_match([["A", "B"]], [["A"]]) == pytest.approx(0.5)
    assert compute_header_match([], [["A"]]) == 0.0


def test_row_content_matches_rows_by_first_column():
    shuffled = [["Name", "Age"], ["Bob", "25"], ["Alice", "31"]]

    assert compute_row_content_match(PEOPLE, PEOPLE) == 1.0
    assert compute_row_content_match(PEOPLE, shuffled) > 0.8
    assert compute_row_content_match([], PEOPLE) == 0.0
    assert compute_row_content_match([[None, "B"]], [["A", "B"]]) == 0.0


def test_total_cells_and_position():
    assert compute_total_cells_match(PEOPLE, PEOPLE) == 1.0
    assert compute_total_cells_match(PEOPLE, [["x"]]) == 0.0
    assert compute_position_score(None, 2, 1, 3) == 1.0
    assert compute_position_score(0, 2, 3, 3) == pytest.approx(1 - 2 / 3)


def test_weighted_average_with_zero_weights():
    assert weighted_average({"a": 1.0}, {"a": 0.0}) == 0.0
    assert weighted_average({"a": 1.0, "b": 0.0}, {"a": 1.0, "b": 1.0}) == 0.5


def test_identical_tables_score_high():
    algorithm = TableMatchAlgorithm()

    assert algorithm(PEOPLE, PEOPLE) >= 0.9
    assert algorithm([["Only", "Header"]], [["Only", "Header"]]) >= 0.9


def test_empty_tables_score_zero():
    algorithm = TableMatchAlgorithm()

    assert algorithm([], PEOPLE) == 0.0
    assert algorithm(PEOPLE, []) == 0.0


def test_scores_stay_in_unit_interval():
    algorithm = TableMatchAlgorithm(weights={"position": 5.0})
    other = [["Completely"], ["different"]]

    for table in (PEOPLE, other):
        assert 0.0 <= algorithm(PEOPLE, table) <= 1.0


def test_negative_weights_are_rejected():
    with pytest.raises(ConfigurationError):
        TableMatchAlgorithm(weights={"header_match": -1})


def test_refiner_pairs_similar_tables_from_nodes():
    pytest.importorskip("markdown_it")
    from markdown_merge.services.file_analysis import FileAnalysis

    template = FileAnalysis("| Name | Age |\n| - | - |\n| Alice | 30 |\n| Bob | 25 |\n")
    dest = FileAnalysis(
        "| Key | Value |\n| - | - |\n| x | y |\n\n"
        "| Name | Age |\n| - | - |\n| Alice | 31 |\n| Bob | 25 |\n| Carol | 40 |\n"
    )
    template_table = template.statements_of_type("table")[0]
    dest_tables = dest.statements_of_type("table")

    matches = TableMatchRefiner()([template_table], dest_tables, {})

    assert len(matches) == 1
    assert matches[0].dest_node is dest_tables[1]
    assert matches[0].score >= 0.5


def test_refiner_ignores_non_tables_and_respects_threshold():
    refiner = TableMatchRefiner(threshold=0.99)

    class Paragraph:
        type = "paragraph"

    assert refiner([Paragraph()], [Paragraph()]) == []
    with pytest.raises(ConfigurationError):
        TableMatchRefiner(threshold=1.5)
