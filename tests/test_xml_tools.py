"""Tests for the streaming XML tool-call parser."""

from resonance.llm.types import LLMDelta, ToolCallBuilder, ToolCallFragment, ToolInfo
from resonance.llm.xml_tools import (
    XMLToolCallParser,
    render_tool_call,
    strip_param_value,
    tool_definitions_xml,
)

TOOLS = ["read_file", "ls_dir", "rewrite_file"]


def _run(chunks: list[str]) -> tuple[str, ToolCallBuilder, list[LLMDelta]]:
    parser = XMLToolCallParser(TOOLS)
    deltas: list[LLMDelta] = []
    for chunk in chunks:
        deltas.extend(parser.feed(chunk))
    deltas.extend(parser.finish())
    builder = ToolCallBuilder()
    for d in deltas:
        if d.tool_call_fragment is not None:
            builder.apply(d.tool_call_fragment)
    text = "".join(d.display_content_delta for d in deltas)
    return text, builder, deltas


def test_plain_text_passes_through():
    text, builder, _ = _run(["Hello ", "world"])
    assert text == "Hello world"
    assert builder.name == ""


def test_call_split_across_chunks():
    text, builder, _ = _run(
        ["I'll look. <read", "_file>\n<uri>src/", "app.py</u", "ri>\n</read_file>"]
    )
    assert text == "I'll look. "
    assert builder.name == "read_file"
    assert builder.raw_params == {"uri": "src/app.py"}
    assert builder.done_keys == {"uri"}
    assert builder.is_done


def test_partial_tag_is_held_until_disambiguated():
    parser = XMLToolCallParser(TOOLS)
    first = parser.feed("look <rea")
    assert [d.display_content_delta for d in first] == ["look "]
    second = parser.feed("lly nice")
    assert "".join(d.display_content_delta for d in second) == "<really nice"


def test_dangling_angle_bracket_flushed_on_finish():
    text, builder, _ = _run(["a < b and x <"])
    assert text == "a < b and x <"
    assert not builder.name


def test_empty_param_differs_from_missing_param():
    _, builder, _ = _run(["<ls_dir><uri></uri></ls_dir>"])
    assert builder.raw_params == {"uri": ""}

    _, builder, _ = _run(["<ls_dir></ls_dir>"])
    assert builder.raw_params == {}
    assert builder.is_done


def test_only_first_call_counts():
    text, builder, deltas = _run(
        ["<ls_dir><uri>.</uri></ls_dir> then <read_file><uri>x</uri></read_file>"]
    )
    names = [
        d.tool_call_fragment.name
        for d in deltas
        if d.tool_call_fragment is not None and d.tool_call_fragment.name
    ]
    assert names == ["ls_dir"]
    assert builder.raw_params == {"uri": "."}
    assert text == ""


def test_unterminated_call_is_closed_on_finish():
    _, builder, _ = _run(["<read_file>\n<uri>abc"])
    assert builder.name == "read_file"
    assert builder.raw_params == {"uri": "abc"}
    assert builder.done_keys == {"uri"}
    assert builder.is_done


def test_param_value_keeps_inner_markup():
    _, builder, _ = _run(["<rewrite_file><uri>a.html</uri><new_content><b>hi</b></new_content>"])
    assert builder.raw_params["new_content"] == "<b>hi</b>"


def test_unknown_tag_is_text():
    text, builder, _ = _run(["<div>hello</div>"])
    assert text == "<div>hello</div>"
    assert not builder.name


def test_strip_param_value():
    assert strip_param_value("\nfoo\n") == "foo"
    assert strip_param_value("\n\nfoo") == "\nfoo"
    assert strip_param_value("foo") == "foo"


def test_render_tool_call():
    assert render_tool_call("read_file", {"uri": "a.txt"}) == (
        "<read_file>\n<uri>a.txt</uri>\n</read_file>"
    )


def test_tool_definitions_are_numbered():
    text = tool_definitions_xml(
        [
            ToolInfo(name="read_file", description="Read a file", params={"uri": "path"}),
            ToolInfo(name="ls_dir", description="List a folder", params={"uri": "path"}),
        ]
    )
    assert text.startswith("1. read_file\nDescription: Read a file\nFormat:\n<read_file>")
    assert "\n\n2. ls_dir\n" in text


def test_builder_snapshot_and_call_done():
    builder = ToolCallBuilder()
    builder.apply(ToolCallFragment(id="c1", name="edit_file"))
    builder.apply(ToolCallFragment(param="uri", value_delta="a.py", param_done=True))
    builder.apply(ToolCallFragment(param="search_replace_blocks", value_delta="par"))
    assert builder.snapshot() == {
        "id": "c1",
        "name": "edit_file",
        "raw_params": {"uri": "a.py", "search_replace_blocks": "par"},
        "done_keys": ["uri"],
        "is_done": False,
    }
    builder.apply(ToolCallFragment(call_done=True))
    assert builder.done_keys == {"uri", "search_replace_blocks"}
    assert builder.is_done
