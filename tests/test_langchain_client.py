"""Tests for streaming replies out of a LangChain chat model.

Reasoning extraction relies on LangChain's content_blocks normalization; if
LangChain changes it, these tests should fail and alert us.
"""

from __future__ import annotations

from typing import Any

import pytest
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage, SystemMessage
from langchain_core.messages.tool import tool_call_chunk
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import Field

from resonance.llm.langchain_client import (
    LangChainStreamClient,
    _accumulate_tool_call_chunk,
    _args_to_raw_params,
    _extract_reasoning_from_chunk,
)
from resonance.llm.types import LLMDelta, LLMDone, LLMError, ToolCallBuilder, ToolInfo
from resonance.tools.names import ChatMode, ToolFormat

READ_FILE = ToolInfo(
    name="read_file",
    description="Read a file",
    params={"uri": "path"},
    json_schema={"type": "object", "properties": {"uri": {"type": "string"}}},
)


class _StatusError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class ChunkedChatModel(BaseChatModel):
    """Chat model replaying fixed chunks, optionally failing afterwards."""

    chunks: list[AIMessageChunk] = Field(default_factory=list)
    error: Exception | None = None
    bound_tools: list[Any] = Field(default_factory=list)
    received: list[Any] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "chunked-fake"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=""))])

    async def _astream(self, messages, stop=None, run_manager=None, **kwargs):
        self.received.append(list(messages))
        for chunk in self.chunks:
            yield ChatGenerationChunk(message=chunk)
        if self.error is not None:
            raise self.error

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = list(tools)
        return self


def make_chunk(content: list[dict[str, Any]] | str | None = None, **kwargs: Any) -> AIMessageChunk:
    return AIMessageChunk(
        content=content or "",
        response_metadata={"model_provider": "openai"},
        **kwargs,
    )


async def _collect(client: LangChainStreamClient, tools=(READ_FILE,)) -> list[Any]:
    return [
        e
        async for e in client.stream(
            "system prompt", [HumanMessage(content="hi")], list(tools), ChatMode.AGENT
        )
    ]


def _text(events: list[Any]) -> str:
    return "".join(e.display_content_delta for e in events if isinstance(e, LLMDelta))


def _call(events: list[Any]) -> ToolCallBuilder:
    builder = ToolCallBuilder()
    for e in events:
        if isinstance(e, LLMDelta) and e.tool_call_fragment is not None:
            builder.apply(e.tool_call_fragment)
    return builder


class TestReasoningExtraction:
    def test_summary_is_normalized_to_reasoning(self):
        chunk = make_chunk(
            [
                {
                    "type": "reasoning",
                    "summary": [
                        {"index": 0, "type": "summary_text", "text": "First. "},
                        {"index": 1, "type": "summary_text", "text": "Second."},
                    ],
                    "index": 0,
                }
            ]
        )
        assert _extract_reasoning_from_chunk(chunk) == "First. Second."

    def test_reasoning_key(self):
        chunk = make_chunk([{"type": "reasoning", "reasoning": "Direct reasoning"}])
        assert _extract_reasoning_from_chunk(chunk) == "Direct reasoning"

    @pytest.mark.parametrize(
        "content",
        ["Just a string", [], [{"type": "text", "text": "Hello"}], [{"type": "reasoning", "reasoning": ""}]],
    )
    def test_no_reasoning(self, content):
        assert _extract_reasoning_from_chunk(make_chunk(content)) == ""


def test_accumulate_keeps_first_call_only():
    current = _accumulate_tool_call_chunk(
        tool_call_chunk(name="read_file", args='{"uri"', id="c1", index=0), None
    )
    current = _accumulate_tool_call_chunk(
        tool_call_chunk(name=None, args=': "a.txt"}', id=None, index=0), current
    )
    current = _accumulate_tool_call_chunk(
        tool_call_chunk(name="ls_dir", args="{}", id="c2", index=1), current
    )
    assert current == {"index": 0, "id": "c1", "name": "read_file", "args": '{"uri": "a.txt"}'}


def test_args_to_raw_params():
    assert _args_to_raw_params('{"uri": "a.txt", "page_number": 2, "is_regex": true}') == {
        "uri": "a.txt",
        "page_number": "2",
        "is_regex": "true",
    }
    assert _args_to_raw_params("not json") == {}
    assert _args_to_raw_params("[1, 2]") == {}
    assert _args_to_raw_params("") == {}


@pytest.mark.asyncio
async def test_xml_mode_parses_calls_from_text():
    model = ChunkedChatModel(
        chunks=[
            make_chunk("Reading it. <read_"),
            make_chunk("file>\n<uri>a.txt</uri>\n</read_file>"),
        ]
    )
    client = LangChainStreamClient(model, ToolFormat.XML)

    events = await _collect(client)

    assert _text(events) == "Reading it. "
    call = _call(events)
    assert call.name == "read_file"
    assert call.raw_params == {"uri": "a.txt"}
    assert call.is_done
    assert isinstance(events[-1], LLMDone)
    assert model.bound_tools == []
    sent = model.received[0]
    assert isinstance(sent[0], SystemMessage)
    assert sent[0].content == "system prompt"


@pytest.mark.asyncio
async def test_native_mode_reads_tool_call_chunks():
    model = ChunkedChatModel(
        chunks=[
            make_chunk("Let me check."),
            make_chunk(
                tool_call_chunks=[tool_call_chunk(name="read_file", args='{"ur', id="c1", index=0)]
            ),
            make_chunk(tool_call_chunks=[tool_call_chunk(args='i": "a.txt"}', index=0)]),
        ]
    )
    client = LangChainStreamClient(model, lambda: ToolFormat.NATIVE)

    events = await _collect(client)

    assert _text(events) == "Let me check."
    call = _call(events)
    assert call.name == "read_file"
    assert call.id == "c1"
    assert call.raw_params == {"uri": "a.txt"}
    assert call.is_done
    assert model.bound_tools[0]["function"]["name"] == "read_file"
    assert isinstance(events[-1], LLMDone)


@pytest.mark.asyncio
async def test_reasoning_is_streamed_separately():
    model = ChunkedChatModel(
        chunks=[
            make_chunk([{"type": "reasoning", "reasoning": "Thinking..."}]),
            make_chunk("Answer"),
        ]
    )
    events = await _collect(LangChainStreamClient(model))

    assert "".join(e.reasoning_delta for e in events if isinstance(e, LLMDelta)) == "Thinking..."
    assert _text(events) == "Answer"


@pytest.mark.asyncio
async def test_provider_error_ends_stream():
    model = ChunkedChatModel(
        chunks=[make_chunk("Part")],
        error=_StatusError("Service Unavailable", 503),
    )
    events = await _collect(LangChainStreamClient(model))

    assert _text(events) == "Part"
    error = events[-1]
    assert isinstance(error, LLMError)
    assert error.message == "Service Unavailable"
    assert error.status == 503
    assert not any(isinstance(e, LLMDone) for e in events)
