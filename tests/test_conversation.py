from langchain_core.messages import AIMessage, HumanMessage
from langchain_core.messages import ToolMessage as LCToolMessage

from resonance.chat.conversation import build_conversation
from resonance.chat.types import (
    AssistantMessage,
    CheckpointEntry,
    InterruptedStreamingToolMessage,
    ToolMessage,
    ToolMessageType,
    UserMessage,
)
from resonance.tools.names import ToolFormat


def _tool(type_: ToolMessageType, content: str = "") -> ToolMessage:
    return ToolMessage(
        type=type_,
        id="call_1",
        name="read_file",
        raw_params={"uri": "a.txt"},
        params={"uri": "a.txt", "page_number": 1},
        content=content,
    )


def test_plain_dialog():
    out = build_conversation(
        [
            CheckpointEntry(kind="user"),
            UserMessage(content="hi"),
            AssistantMessage(display_content="hello", reasoning="thinking"),
        ],
        ToolFormat.XML,
    )
    assert [type(m) for m in out] == [HumanMessage, AIMessage]
    assert out[1].content == "hello"


def test_images_become_content_blocks():
    out = build_conversation(
        [UserMessage(content="look", images=["data:image/png;base64,AAA"])], ToolFormat.XML
    )
    assert out[0].content == [
        {"type": "text", "text": "look"},
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAA"}},
    ]


def test_xml_tool_call_joins_reply_and_result_follows():
    out = build_conversation(
        [
            UserMessage(content="read it"),
            AssistantMessage(display_content="Reading."),
            _tool(ToolMessageType.SUCCESS, "file text"),
        ],
        ToolFormat.XML,
    )
    assert [type(m) for m in out] == [HumanMessage, AIMessage, HumanMessage]
    assert out[1].content == "Reading.\n\n<read_file>\n<uri>a.txt</uri>\n</read_file>"
    assert out[2].content == "read_file result (success):\nfile text"


def test_xml_tool_call_without_text():
    out = build_conversation(
        [UserMessage(content="go"), _tool(ToolMessageType.REJECTED, "Tool call was rejected")],
        ToolFormat.XML,
    )
    assert out[1].content == "<read_file>\n<uri>a.txt</uri>\n</read_file>"
    assert out[2].content.startswith("read_file result (rejected):")


def test_native_tool_call():
    out = build_conversation(
        [
            UserMessage(content="read it"),
            AssistantMessage(display_content="Reading."),
            _tool(ToolMessageType.SUCCESS, "file text"),
        ],
        ToolFormat.NATIVE,
    )
    assert [type(m) for m in out] == [HumanMessage, AIMessage, LCToolMessage]
    ai = out[1]
    assert ai.content == "Reading."
    assert ai.tool_calls[0]["name"] == "read_file"
    assert ai.tool_calls[0]["id"] == "call_1"
    assert ai.tool_calls[0]["args"] == {"uri": "a.txt", "page_number": 1}
    assert out[2].tool_call_id == "call_1"
    assert out[2].content == "file text"


def test_pending_and_interrupted_calls_are_not_sent():
    out = build_conversation(
        [
            UserMessage(content="go"),
            AssistantMessage(display_content="Working"),
            InterruptedStreamingToolMessage(id="x", name="edit_file"),
            _tool(ToolMessageType.TOOL_REQUEST),
            _tool(ToolMessageType.RUNNING_NOW),
            AssistantMessage(display_content=""),
        ],
        ToolFormat.XML,
    )
    assert [m.content for m in out] == ["go", "Working"]
