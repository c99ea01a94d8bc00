"""Inner merging of structured code block bodies."""

from __future__ import annotations

import json

import pytest

from markdown_merge.services.code_block_merger import (
    CodeBlockMerger,
    InnerMergeResult,
    merge_json,
    merge_yaml,
)
from markdown_merge.services.nodes import MarkdownNode


def fence(language, content):
    return MarkdownNode(type="code_block", raw_type="fence", info=language, content=content, markup="```")


def test_json_merge_keeps_destination_values_and_order():
    template = '{"name": "tmpl", "version": 2, "extra": true}'
    dest = '{\n    "version": 1,\n    "name": "mine"\n}\n'

    result = merge_json(template, dest, "destination", add_template_only_nodes=True)

    assert result.merged
    assert list(json.loads(result.content)) == ["version", "name", "extra"]
    assert json.loads(result.content)["name"] == "mine"
    assert result.content.startswith('{\n    "version"')
    assert result.stats == {"decision": "merged", "conflicts": 2, "keys_added": 1}


def test_json_merge_template_preference_is_recursive():
    template = '{"db": {"host": "db.internal", "port": 5432}}'
    dest = '{"db": {"host": "localhost", "user": "me"}}'

    result = merge_json(template, dest, "template")

    assert json.loads(result.content) == {"db": {"host": "db.internal", "user": "me"}}


def test_yaml_merge_appends_template_only_keys():
    template = "name: tmpl\nfeatures:\n  search: true\n"
    dest = "name: mine\nfeatures:\n  export: false\n"

    result = merge_yaml(template, dest, "destination", add_template_only_nodes=True)

    assert result.content == "name: mine\nfeatures:\n  export: false\n  search: true\n"


def test_non_mapping_documents_are_not_merged():
    assert merge_json("[1]", "[2]", "template").merged is False


def test_identical_bodies_short_circuit():
    merger = CodeBlockMerger()

    result = merger.merge_code_blocks(fence("json", "{}\n"), fence("json", "{}\n"))

    assert result.merged
    assert result.stats == {"decision": "identical"}


@pytest.mark.parametrize(
    ("merger", "language", "reason"),
    [
        (CodeBlockMerger(enabled=False), "json", "inner code block merging disabled"),
        (CodeBlockMerger(), None, "no language specified"),
        (CodeBlockMerger(), "ruby", "no merger for language ruby"),
    ],
)
def test_unmergeable_blocks_report_a_reason(merger, language, reason):
    result = merger.merge_code_blocks(fence(language, "a\n"), fence(language, "b\n"))

    assert result.merged is False
    assert result.reason == reason


def test_merger_failures_fall_back_with_the_error_message():
    result = CodeBlockMerger().merge_code_blocks(fence("json", "{"), fence("json", "{}"))

    assert result.merged is False
    assert result.reason


def test_custom_mergers_accept_mappings_and_ignore_case():
    def merge_ini(template, dest, preference, *, add_template_only_nodes=False):
        return {"merged": True, "content": dest + template, "stats": {"decision": "concat"}}

    merger = CodeBlockMerger({"INI": merge_ini})

    assert merger.supports_language("ini")
    result = merger.merge_code_blocks(fence("ini", "a=1\n"), fence("Ini", "b=2\n"))
    assert result.to_dict() == {
        "merged": True,
        "content": "b=2\na=1\n",
        "stats": {"decision": "concat"},
        "reason": None,
    }


def test_coerce_rejects_unknown_results():
    with pytest.raises(TypeError):
        InnerMergeResult.coerce("merged")
