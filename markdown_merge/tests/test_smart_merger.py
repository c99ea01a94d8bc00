"""End-to-end behaviour of the structural merge."""

from __future__ import annotations

import json

import pytest

from markdown_merge.services import smart_merger as smart_merger_module
from markdown_merge.services.backends import MarkdownBackend
from markdown_merge.services.smart_merger import SmartMerger, merge_markdown
from markdown_merge.utils.errors import ConfigurationError, TemplateParseError

pytest.importorskip("markdown_it")

FROZEN_DEST = """# Doc

<!-- markdown-merge:freeze keep -->

| A | B |
| - | - |
| 1 | 2 |

<!-- markdown-merge:unfreeze -->
"""

GUIDE_TEMPLATE = "# Guide\n\n## Install\n\nRun the installer.\n\n## Usage\n\nCall `run`.\n"
GUIDE_DEST = "# Guide\n\n## Install\n\nLocal notes.\n"


@pytest.fixture(params=["markdown_it", "commonmark"])
def backend(request):
    pytest.importorskip(request.param)
    return request.param


def test_destination_content_survives_by_default(backend):
    template = "## Features\n\n- Feature A\n- Feature B\n"
    dest = "# Project\n\n## Features\n\n- Old Feature\n"

    result = merge_markdown(template, dest, backend=backend, preference="destination")

    assert result.content == dest
    assert result.stats.nodes_added == 0
    assert result.stats.nodes_modified == 0


def test_template_only_nodes_are_appended(backend):
    template = "## Features\n\n- Feature A\n- Feature B\n"
    dest = "# Project\n\n## Features\n\n- Old Feature\n"

    result = merge_markdown(template, dest, backend=backend, add_template_only_nodes=True)

    assert result.content == (
        "# Project\n\n## Features\n\n- Old Feature\n\n- Feature A\n- Feature B\n"
    )
    assert result.stats.nodes_added == 1


def test_template_only_filter_receives_statement_and_entry():
    calls = []

    def only_headings(statement, entry):
        calls.append(entry.kind.value)
        return statement.type == "heading"

    result = merge_markdown(GUIDE_TEMPLATE, GUIDE_DEST, add_template_only_nodes=only_headings)

    assert result.content == "# Guide\n\n## Install\n\nLocal notes.\n\n## Usage\n"
    assert set(calls) == {"template_only"}


def test_preference_picks_the_winning_side(backend):
    template = "## Steps\n\n- install\n- run\n"
    dest = "## Steps\n\n- setup\n- start\n"

    theirs = merge_markdown(template, dest, backend=backend, preference="template")
    ours = merge_markdown(template, dest, backend=backend)

    assert theirs.content == template
    assert ours.content == dest
    assert theirs.stats.nodes_modified == ours.stats.nodes_modified == 1


def test_per_type_preference_mapping():
    template = "- a\n- b\n\n[docs]: https://new.test\n"
    dest = "- x\n- y\n\n[docs]: https://old.test\n"

    result = merge_markdown(template, dest, preference={"link_definition": "template"})

    assert result.content == "- x\n- y\n\n[docs]: https://new.test\n"


def test_frozen_region_is_byte_identical():
    template = "# Doc\n\n| A | B |\n| - | - |\n| 9 | 9 |\n"
    frozen_text = "\n".join(FROZEN_DEST.split("\n")[2:9])

    result = merge_markdown(template, FROZEN_DEST, preference="template", add_template_only_nodes=True)

    assert frozen_text in result.content
    assert result.content.startswith("# Doc\n\n" + frozen_text)
    assert result.is_frozen
    assert result.frozen_count == 1
    assert result.frozen_blocks[0].reason == "keep"
    assert result.frozen_blocks[0].start_line == 3


def test_merge_is_idempotent():
    once = merge_markdown(GUIDE_TEMPLATE, GUIDE_DEST, add_template_only_nodes=True)
    twice = merge_markdown(GUIDE_TEMPLATE, once.content, add_template_only_nodes=True)

    assert once.content == (
        "# Guide\n\n## Install\n\nLocal notes.\n\nRun the installer.\n\n## Usage\n\nCall `run`.\n"
    )
    assert twice.content == once.content
    assert twice.stats.nodes_added == 0


def test_remove_template_missing_nodes():
    result = merge_markdown(
        "# A\n\nKeep.\n", "# A\n\nKeep.\n\nExtra.\n", remove_template_missing_nodes=True
    )

    assert result.content == "# A\n\nKeep.\n"
    assert result.stats.nodes_removed == 1


def test_inner_merge_of_json_code_blocks():
    template = '```json\n{"a": 1, "b": 2}\n```\n'
    dest = '```json\n{"a": 5}\n```\n'

    result = merge_markdown(
        template,
        dest,
        inner_merge_code_blocks=True,
        code_block_signature="position",
        add_template_only_nodes=True,
    )

    body = result.content.split("\n", 1)[1].rsplit("```", 1)[0]
    assert result.content.startswith("```json\n")
    assert json.loads(body) == {"a": 5, "b": 2}
    assert result.stats.inner_merges == 1
    assert result.stats.nodes_modified == 1


def test_inner_merge_failure_falls_back_to_preference():
    template = '```json\n{"a": 1}\n```\n'
    dest = "```json\n{not json\n```\n"

    result = merge_markdown(
        template,
        dest,
        inner_merge_code_blocks=True,
        code_block_signature="position",
    )

    assert result.content == dest
    assert result.stats.inner_merges == 0


def test_repair_input_normalizes_both_documents():
    result = merge_markdown(
        "[a]: http://x.com\n[b]: http://y.com\n",
        "[a]: http://x.com[b]: http://y.com\n",
        repair_input=True,
    )

    assert result.content == "[a]: http://x.com\n[b]: http://y.com\n"


def test_rehydration_post_processing():
    dest = "See [docs](https://d.test) and [home](https://h.test \"Home\").\n\n[docs]: https://d.test\n[home]: https://h.test\n"

    result = merge_markdown(dest, dest, rehydrate_link_references=True)

    assert result.content.startswith("See [docs][docs] and [home](https://h.test \"Home\").")
    assert [problem.category for problem in result.problems] == ["link_has_title"]


def test_merge_result_api():
    merger = SmartMerger("# A\n", "# A\n")
    result = merger.merge_result()

    assert merger.merge() == "# A\n"
    assert str(result) == "# A\n"
    assert result.success
    assert not result.has_conflicts
    payload = result.to_dict()
    assert set(payload) == {"content", "success", "stats", "conflicts", "frozen_blocks", "problems"}
    assert set(payload["stats"]) == {
        "nodes_added",
        "nodes_removed",
        "nodes_modified",
        "inner_merges",
        "merge_time_ms",
    }
    assert [entry.kind.value for entry in merger.align()] == ["match"]


def test_invalid_options_raise_at_construction():
    with pytest.raises(ConfigurationError):
        SmartMerger("a", "b", preference="newest")
    with pytest.raises(ConfigurationError):
        SmartMerger("a", "b", backend="pandoc")


def test_parse_failures_name_the_failing_side(monkeypatch):
    class BrokenBackend(MarkdownBackend):
        name = "broken"

        def parse(self, source):
            raise RuntimeError("cannot parse")

    monkeypatch.setattr(smart_merger_module, "resolve_backend", lambda name: BrokenBackend())

    with pytest.raises(TemplateParseError) as excinfo:
        SmartMerger("# A\n", "# B\n")

    assert excinfo.value.code == "template_parse_failed"
    assert excinfo.value.extra["side"] == "template"


def test_signature_generator_override():
    def never_match_paragraphs(statement):
        if statement.type == "paragraph":
            return None
        return statement

    result = merge_markdown(
        "# A\n\nSame.\n",
        "# A\n\nSame.\n",
        signature_generator=never_match_paragraphs,
        add_template_only_nodes=True,
    )

    assert result.content == "# A\n\nSame.\n\nSame.\n"


def test_repair_issues_are_reported_as_problems():
    source = "``` ruby\nx\n```\n"

    result = merge_markdown(source, source, repair_input=True)

    assert result.content == "```ruby\nx\n```\n"
    assert [problem.category for problem in result.problems] == ["input_repaired", "input_repaired"]
    assert [problem.details["side"] for problem in result.problems] == ["template", "destination"]
    first = result.to_dict()["problems"][0]
    assert first["repair"] == "code_fence_spacing"
    assert first["issue"] == "fence_spacing"
    assert first["line"] == 1


def test_post_processing_leaves_frozen_regions_alone():
    frozen = (
        "<!-- markdown-merge:freeze -->\n\n\nkeep  \n\n\n"
        "See [a](http://x).\n\n"
        "<!-- markdown-merge:unfreeze -->"
    )
    dest = f"# Doc\n\n{frozen}\n\nAlso [a](http://x).\n\n[a]: http://x\n"

    result = merge_markdown(dest, dest, normalize_whitespace=True, rehydrate_link_references=True)

    assert frozen in result.content
    assert "Also [a][a]." in result.content
    assert not [problem for problem in result.problems if problem.category == "excessive_whitespace"]


def test_frozen_matches_count_as_modified_only_when_text_differs():
    def pair_freeze_blocks(statement):
        if statement.type == "freeze_block":
            return ("freeze",)
        return statement

    template = "<!-- markdown-merge:freeze -->\n\nOld.\n\n<!-- markdown-merge:unfreeze -->\n"
    dest = "<!-- markdown-merge:freeze -->\n\nNew.\n\n<!-- markdown-merge:unfreeze -->\n"

    changed = merge_markdown(template, dest, signature_generator=pair_freeze_blocks)
    same = merge_markdown(FROZEN_DEST, FROZEN_DEST)

    assert changed.content == dest
    assert changed.frozen_count == 1
    assert changed.stats.nodes_modified == 1
    assert same.stats.nodes_modified == 0
