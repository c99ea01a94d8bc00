"""The three text repair passes and the combined runner."""

from __future__ import annotations

import pytest

from markdown_merge.services.repair import (
    BlockSpacing,
    CodeFenceSpacing,
    CondensedLinkRefs,
    repair_markdown,
)


def test_condensed_link_definitions_are_split():
    source = "[a]: http://x.com[b]: http://y.com"

    scanner = CondensedLinkRefs(source)

    assert scanner.malformed
    assert scanner.issues[0].category == "condensed_link_definitions"
    assert scanner.fix() == "[a]: http://x.com\n[b]: http://y.com"
    assert [definition.label for definition in scanner.definitions] == ["a", "b"]


def test_condensed_detection_ignores_ordinary_links():
    assert not CondensedLinkRefs("See [docs](http://x.com) and [ref][r].\n").malformed


def test_fence_info_spacing_is_removed():
    source = "``` ruby\ncode\n```"

    scanner = CodeFenceSpacing(source)

    assert scanner.malformed_count == 1
    assert scanner.issues[0].line == 1
    assert scanner.fix() == "```ruby\ncode\n```"


def test_closing_fences_and_tilde_fences():
    source = "~~~  yaml\na: 1\n~~~\n\n```\nplain\n```\n"

    scanner = CodeFenceSpacing(source)

    assert [(block.start_line, block.end_line) for block in scanner.code_blocks] == [(1, 3), (5, 7)]
    assert scanner.fix() == "~~~yaml\na: 1\n~~~\n\n```\nplain\n```\n"


def test_block_spacing_categories():
    source = (
        "---\n"
        "Text\n"
        "- item\n"
        "## Heading\n"
        "<p>\n"
        "</p>\n"
        "After html\n"
    )

    scanner = BlockSpacing(source)

    found = {(issue.line, issue.category) for issue in scanner.issues}
    assert (1, "thematic_break_needs_blank") in found
    assert (3, "list_before_heading") in found
    assert (4, "markdown_before_html") in found
    assert (6, "html_before_markdown") in found


def test_block_spacing_fix_inserts_blank_lines():
    source = "- item\n# Heading\n"

    assert BlockSpacing(source).fix() == "- item\n\n# Heading\n"


def test_lines_inside_html_blocks_are_not_touched():
    source = "<table>\n<tr><td>x</td></tr>\n</table>\n\nText\n"

    assert not BlockSpacing(source).malformed


@pytest.mark.parametrize(
    "source",
    [
        "[a]: http://x.com[b]: http://y.com[c]: http://z.com",
        "``` ruby\ncode\n```\n",
        "---\nText\n- item\n## H\n<div>\nx\n</div>\nafter\n",
    ],
)
def test_fix_is_idempotent(source):
    for pass_cls in (CondensedLinkRefs, CodeFenceSpacing, BlockSpacing):
        once = pass_cls(source).fix()
        assert pass_cls(once).fix() == once


def test_repair_markdown_runs_all_passes():
    report = repair_markdown("``` ruby\ncode\n```\n[a]: http://x.com[b]: http://y.com\n")

    assert report.changed
    assert report.text == "```ruby\ncode\n```\n[a]: http://x.com\n[b]: http://y.com\n"
    assert set(report.issues) == {"condensed_link_refs", "code_fence_spacing"}
    assert report.issue_count == 2
    assert report.to_dict()["issues"]["code_fence_spacing"][0]["line"] == 1


def test_repair_markdown_leaves_clean_text_alone():
    report = repair_markdown("# Title\n\nBody.\n")

    assert not report.changed
    assert report.issues == {}


def test_fenced_code_bodies_are_left_alone():
    source = "```bash\n- run step\n# install deps\n---\necho hi\n```\n"

    assert not BlockSpacing(source).malformed
    assert repair_markdown(source).text == source


def test_condensed_definitions_inside_fences_are_kept():
    source = "```text\n[a]: http://x.com[b]: http://y.com\n```\n[c]: http://z.com[d]: http://w.com\n"

    scanner = CondensedLinkRefs(source)

    assert [issue.line for issue in scanner.issues] == [4]
    assert scanner.fix() == (
        "```text\n[a]: http://x.com[b]: http://y.com\n```\n[c]: http://z.com\n[d]: http://w.com\n"
    )


def test_block_spacing_still_applies_after_a_fence():
    source = "```\n---\n```\n- item\n# Heading\n"

    assert BlockSpacing(source).fix() == "```\n---\n```\n- item\n\n# Heading\n"
