"""Statement collection: parser nodes, gap lines, link definitions, freeze blocks."""

from __future__ import annotations

import pytest

from markdown_merge.services.backends import MarkdownBackend
from markdown_merge.services.file_analysis import (
    FileAnalysis,
    freeze_marker_pattern,
    frozen_line_numbers,
)
from markdown_merge.services.nodes import FreezeBlock, GapLine, LinkDefinition, StatementKind
from markdown_merge.utils.errors import ParseError

pytest.importorskip("markdown_it")

FROZEN = """# Doc

<!-- markdown-merge:freeze keep local -->

Custom paragraph.

<!-- markdown-merge:unfreeze -->

Tail.
"""


def kinds(analysis):
    return [statement.type for statement in analysis.statements]


def test_blank_lines_become_gap_lines():
    analysis = FileAnalysis("# A\n\nBody.\n")

    assert kinds(analysis) == ["heading", "gap_line", "paragraph"]
    gap = analysis.statements[1]
    assert isinstance(gap, GapLine)
    assert gap.kind is StatementKind.GAP_LINE
    assert gap.preceding_type == "heading"
    assert gap.preceding_end_line == 1


def test_consecutive_uncovered_lines_form_one_gap():
    analysis = FileAnalysis("# A\n\n\n\nBody.\n")

    gap = analysis.statements[1]
    assert (gap.start_line, gap.end_line) == (2, 4)
    assert gap.lines == ["", "", ""]
    assert gap.is_blank


def test_link_definitions_are_synthesized():
    analysis = FileAnalysis('See [docs][d].\n\n[d]: <https://example.com> "Docs"\n[e]: /e\n')

    definitions = analysis.link_definitions
    assert [definition.label for definition in definitions] == ["d", "e"]
    assert definitions[0].url == "https://example.com"
    assert definitions[0].title == "Docs"
    assert definitions[0].line == 3
    assert isinstance(analysis.statements[-1], LinkDefinition)


def test_freeze_region_becomes_one_statement():
    analysis = FileAnalysis(FROZEN)

    assert kinds(analysis) == ["heading", "gap_line", "freeze_block", "gap_line", "paragraph"]
    block = analysis.freeze_blocks[0]
    assert isinstance(block, FreezeBlock)
    assert (block.start_line, block.end_line) == (3, 7)
    assert block.reason == "keep local"
    assert block.contains_type("paragraph")
    assert block.full_text == "\n".join(FROZEN.split("\n")[2:7])


def test_custom_freeze_token():
    source = FROZEN.replace("markdown-merge:", "docs:")

    assert FileAnalysis(source).freeze_blocks == []
    assert len(FileAnalysis(source, freeze_token="docs").freeze_blocks) == 1


def test_unmatched_markers_degrade_to_plain_lines():
    analysis = FileAnalysis("Intro.\n\n<!-- markdown-merge:unfreeze -->\n")

    assert analysis.freeze_blocks == []
    assert "html_block" in kinds(analysis)
    assert analysis.marker_issues[0].marker == "unfreeze"
    assert analysis.marker_issues[0].line == 3


def test_markers_inside_code_blocks_are_ignored():
    source = (
        "```html\n<!-- markdown-merge:freeze -->\nx\n<!-- markdown-merge:unfreeze -->\n```\n"
    )

    analysis = FileAnalysis(source)

    assert analysis.freeze_blocks == []
    assert kinds(analysis) == ["code_block"]


def test_nested_freeze_regions_keep_the_outermost():
    source = (
        "<!-- markdown-merge:freeze outer -->\n\n"
        "<!-- markdown-merge:freeze inner -->\n\n"
        "Text.\n\n"
        "<!-- markdown-merge:unfreeze -->\n\n"
        "<!-- markdown-merge:unfreeze -->\n"
    )

    blocks = FileAnalysis(source).freeze_blocks

    assert len(blocks) == 1
    assert blocks[0].reason == "outer"
    assert (blocks[0].start_line, blocks[0].end_line) == (1, 9)


def test_node_text_returns_exact_source():
    source = "# Title  \n\n*  item\n*  other\n"
    analysis = FileAnalysis(source)

    bullets = analysis.statements_of_type("list")[0]
    assert analysis.node_text(bullets) == "*  item\n*  other"


def test_crlf_input_is_normalized():
    analysis = FileAnalysis("# A\r\n\r\nBody.\r\n")

    assert analysis.lines == ["# A", "", "Body."]


def test_freeze_marker_pattern_captures_reason():
    match = freeze_marker_pattern("markdown-merge").match(
        "<!--  markdown-merge:freeze   hand edited  -->"
    )

    assert match.group(1) == "freeze"
    assert match.group(2) == "hand edited"


def test_backend_failures_become_parse_errors():
    class BrokenBackend(MarkdownBackend):
        name = "broken"

        def parse(self, source):
            raise RuntimeError("boom")

    with pytest.raises(ParseError) as excinfo:
        FileAnalysis("# A\n", backend=BrokenBackend())

    assert "boom" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_frozen_line_numbers_cover_the_outermost_pair():
    text = (
        "intro\n"
        "<!-- markdown-merge:freeze -->\n"
        "<!-- markdown-merge:freeze inner -->\n"
        "x\n"
        "<!-- markdown-merge:unfreeze -->\n"
        "<!-- markdown-merge:unfreeze -->\n"
        "tail\n"
        "<!-- markdown-merge:freeze -->\n"
        "open\n"
    )

    assert frozen_line_numbers(text) == {2, 3, 4, 5, 6}
    assert frozen_line_numbers(text, "other") == set()
