from markdown_merge.services.output_builder import OutputBuilder, needs_blank_between


def test_blocks_are_separated_by_one_blank_line() -> None:
    builder = OutputBuilder()
    builder.add_node_source("# Title\n\n", "heading")
    builder.add_node_source("\nBody.", "paragraph")

    assert builder.to_string() == "# Title\n\nBody.\n"


def test_link_definitions_stay_contiguous() -> None:
    builder = OutputBuilder()
    builder.add_node_source("Text.", "paragraph")
    builder.add_link_definition("[a]: /a")
    builder.add_link_definition("[b]: /b")

    assert builder.to_string() == "Text.\n\n[a]: /a\n[b]: /b\n"


def test_gap_lines_never_stack_blank_lines() -> None:
    builder = OutputBuilder()
    builder.add_node_source("One.", "paragraph")
    builder.add_gap_line("\n\n")
    builder.add_gap_line("")
    builder.add_node_source("Two.", "paragraph")

    assert builder.to_string() == "One.\n\nTwo.\n"


def test_empty_builder() -> None:
    builder = OutputBuilder()
    builder.add_gap_line("")

    assert builder.empty
    assert builder.to_string() == ""

    builder.add_raw("raw")
    builder.clear()
    assert builder.to_string() == ""


def test_needs_blank_between() -> None:
    assert needs_blank_between("heading", "paragraph")
    assert not needs_blank_between("link_definition", "link_definition")
    assert not needs_blank_between(None, "paragraph")
