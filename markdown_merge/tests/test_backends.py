"""Both parser backends must produce the same canonical statement shapes."""

from __future__ import annotations

import pytest

from markdown_merge.services.backends import available_backends, resolve_backend
from markdown_merge.services.node_types import canonical_type
from markdown_merge.services.nodes import MarkdownNode
from markdown_merge.utils.errors import ConfigurationError

DOCUMENT = """# Title

Some *text*.

- one
- two

```python
print(1)
```
"""


@pytest.fixture(params=["markdown_it", "commonmark"])
def backend(request):
    pytest.importorskip(request.param)
    return resolve_backend(request.param)


def test_top_level_blocks_are_canonical(backend):
    document = backend.parse(DOCUMENT)

    types = [child.type for child in document.children]
    assert types == ["heading", "paragraph", "list", "code_block"]


def test_line_ranges_are_one_based_and_inclusive(backend):
    heading, paragraph, bullets, code = backend.parse(DOCUMENT).children

    assert (heading.start_line, heading.end_line) == (1, 1)
    assert (paragraph.start_line, paragraph.end_line) == (3, 3)
    assert (bullets.start_line, bullets.end_line) == (5, 6)
    assert (code.start_line, code.end_line) == (8, 10)


def test_block_attributes(backend):
    heading, _paragraph, bullets, code = backend.parse(DOCUMENT).children

    assert heading.level == 1
    assert bullets.list_kind == "bullet"
    assert len(bullets.children) == 2
    assert code.language == "python"
    assert code.content == "print(1)\n"
    assert code.markup == "```"


def test_inline_children_include_emphasis(backend):
    paragraph = backend.parse(DOCUMENT).children[1]

    types = {node.type for node in paragraph.walk()}
    assert "emph" in types
    assert "text" in types


def test_markdown_it_tables_are_flattened_to_rows():
    pytest.importorskip("markdown_it")
    backend = resolve_backend("markdown_it")

    table = backend.parse("| A | B |\n| - | - |\n| 1 | 2 |\n").children[0]

    assert table.type == "table"
    assert [row.type for row in table.children] == ["table_header", "table_row"]
    assert all(cell.type == "table_cell" for row in table.children for cell in row.children)


def test_auto_prefers_first_installed_backend():
    installed = available_backends()
    if not installed:
        pytest.skip("no markdown backend installed")

    assert resolve_backend("auto").name == installed[0]


def test_unknown_backend_is_a_configuration_error():
    with pytest.raises(ConfigurationError) as excinfo:
        resolve_backend("pandoc")

    assert excinfo.value.code == "unknown_backend"


def test_canonical_type_passes_unknown_names_through():
    assert canonical_type("markdown_it", "bullet_list") == "list"
    assert canonical_type("commonmark", "item") == "list_item"
    assert canonical_type("markdown_it", "dl") == "dl"


def test_to_markdown_regenerates_nodes_without_source():
    heading = MarkdownNode(
        type="heading",
        raw_type="heading",
        level=2,
        children=[MarkdownNode(type="text", raw_type="text", content="Usage")],
    )
    fence = MarkdownNode(
        type="code_block", raw_type="fence", info="sh", content="make", markup="~~~"
    )

    assert heading.to_markdown() == "## Usage"
    assert fence.to_markdown() == "~~~sh\nmake\n~~~"
