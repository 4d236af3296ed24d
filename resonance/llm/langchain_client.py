"""LLMStreamClient backed by any LangChain chat model."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any, TypedDict

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    AIMessageChunk,
    BaseMessage,
    SystemMessage,
    ToolCallChunk,
)
from langchain_core.messages.content import is_text_content_block

from resonance.llm.retry import _status_of
from resonance.llm.types import (
    LLMDelta,
    LLMDone,
    LLMError,
    LLMEvent,
    LLMStreamClient,
    ToolCallFragment,
    ToolInfo,
)
from resonance.llm.xml_tools import XMLToolCallParser
from resonance.tools.names import ChatMode, ToolFormat
from resonance.utils.logger import agent_logger


class AccumulatedToolCall(TypedDict):
    index: int
    id: str
    name: str
    args: str


def _openai_tool_spec(tool: ToolInfo) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.json_schema or {"type": "object", "properties": {}},
        },
    }


def _extract_reasoning_from_chunk(chunk: AIMessageChunk) -> str:
    """Reasoning text of a chunk, normalized by LangChain's content_blocks."""
    parts: list[str] = []
    for block in chunk.content_blocks:
        if block.get("type") == "reasoning":
            reasoning = block.get("reasoning")
            if isinstance(reasoning, str) and reasoning:
                parts.append(reasoning)
    return "".join(parts)


def _extract_text_from_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    text_parts: list[str] = []
    for item in content:
        if isinstance(item, str):
            text_parts.append(item)
        elif isinstance(item, dict) and is_text_content_block(item):
            text = item.get("text")
            if text:
                text_parts.append(text)
    return "".join(text_parts)


def _accumulate_tool_call_chunk(
    tc_chunk: ToolCallChunk, current: AccumulatedToolCall | None
) -> AccumulatedToolCall | None:
    """Fold one tool_call_chunk into the first tool call of the reply.

    Only the first call is used, so chunks for later indexes are ignored.
    """
    chunk_index = tc_chunk.get("index")
    if current is None:
        return {
            "index": chunk_index or 0,
            "id": tc_chunk.get("id") or "",
            "name": tc_chunk.get("name") or "",
            "args": tc_chunk.get("args") or "",
        }
    if chunk_index is not None and chunk_index != current["index"]:
        return current
    if tc_chunk.get("id") and not current["id"]:
        current["id"] = tc_chunk["id"] or ""
    if tc_chunk.get("name"):
        current["name"] += tc_chunk["name"] or ""
    if tc_chunk.get("args"):
        current["args"] += tc_chunk["args"] or ""
    return current


def _args_to_raw_params(args: str) -> dict[str, str]:
    try:
        parsed = json.loads(args or "{}")
    except json.JSONDecodeError:
        agent_logger.warning("Tool call arguments are not valid JSON", args=args[:200])
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {
        str(k): v if isinstance(v, str) else json.dumps(v) for k, v in parsed.items()
    }


class LangChainStreamClient(LLMStreamClient):
    """Streams a reply from a LangChain chat model.

    With ``ToolFormat.XML`` tools are described in the system prompt and calls
    are parsed out of the text; with ``ToolFormat.NATIVE`` they are bound to
    the model and read from ``tool_call_chunks``.
    """

    def __init__(
        self,
        model: BaseChatModel,
        tool_format: ToolFormat | Callable[[], ToolFormat] = ToolFormat.XML,
        stream_kwargs: dict[str, Any] | None = None,
    ):
        self.model = model
        self._tool_format = tool_format
        self.stream_kwargs = stream_kwargs or {}

    @property
    def tool_format(self) -> ToolFormat:
        # A callable follows hot-reloaded settings
        if callable(self._tool_format):
            return self._tool_format()
        return self._tool_format

    async def stream(
        self,
        system_message: str,
        messages: Sequence[BaseMessage],
        tools: Sequence[ToolInfo],
        chat_mode: ChatMode,
    ) -> AsyncIterator[LLMEvent]:
        runnable: Any = self.model
        tool_format = self.tool_format
        native = tool_format == ToolFormat.NATIVE
        if native and tools:
            runnable = self.model.bind_tools([_openai_tool_spec(t) for t in tools])
        parser = XMLToolCallParser(t.name for t in tools) if not native else None
        current: AccumulatedToolCall | None = None
        announced = False

        conversation = [SystemMessage(content=system_message), *messages]
        agent_logger.info(
            "LLM streaming",
            messages=len(conversation),
            tools=len(tools),
            chat_mode=chat_mode.value,
            tool_format=tool_format.value,
        )

        try:
            async for chunk in runnable.astream(conversation, **self.stream_kwargs):
                if not isinstance(chunk, AIMessageChunk):
                    continue

                reasoning = _extract_reasoning_from_chunk(chunk)
                if reasoning:
                    yield LLMDelta(reasoning_delta=reasoning)

                text = _extract_text_from_content(chunk.content) if chunk.content else ""
                if text:
                    if parser is not None:
                        for delta in parser.feed(text):
                            yield delta
                    else:
                        yield LLMDelta(display_content_delta=text)

                for tc_chunk in chunk.tool_call_chunks:
                    current = _accumulate_tool_call_chunk(tc_chunk, current)
                    if current["name"] and not announced:
                        announced = True
                        yield LLMDelta(
                            tool_call_fragment=ToolCallFragment(
                                id=current["id"] or None, name=current["name"]
                            )
                        )
        except Exception as e:
            agent_logger.error("LLM streaming failed", exc_info=True, error=str(e))
            status = _status_of(e)
            if status is None and getattr(e, "response", None) is not None:
                status = _status_of(e.response)  # type: ignore[attr-defined]
            yield LLMError(message=str(e), status=status, full_error=repr(e))
            return

        if parser is not None:
            for delta in parser.finish():
                yield delta
        elif current is not None and current["name"]:
            raw_params = _args_to_raw_params(current["args"])
            fragment_id = current["id"] or None
            for key, value in raw_params.items():
                yield LLMDelta(
                    tool_call_fragment=ToolCallFragment(
                        id=fragment_id, param=key, value_delta=value, param_done=True
                    )
                )
            yield LLMDelta(
                tool_call_fragment=ToolCallFragment(
                    id=fragment_id, name=current["name"], call_done=True
                )
            )
        yield LLMDone()
