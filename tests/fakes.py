"""Scripted stand-ins for the LLM client and settings."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from resonance.chat.service import ChatThreadService
from resonance.llm.retry import RetryConfig
from resonance.llm.types import (
    LLMDelta,
    LLMDone,
    LLMStreamClient,
    ToolCallFragment,
    ToolInfo,
)
from resonance.llm.xml_tools import XMLToolCallParser
from resonance.tools.names import (
    BuiltinToolName,
    ChatMode,
    ToolApprovalType,
    ToolFormat,
)


def text_reply(text: str) -> list[Any]:
    return [LLMDelta(display_content_delta=text), LLMDone()]


def xml_reply(text: str, chunk_size: int = 7) -> list[Any]:
    """Run ``text`` through the XML parser in small chunks, like a real stream."""
    parser = XMLToolCallParser(name.value for name in BuiltinToolName)
    events: list[Any] = []
    for i in range(0, len(text), chunk_size):
        events.extend(parser.feed(text[i : i + chunk_size]))
    events.extend(parser.finish())
    events.append(LLMDone())
    return events


def native_call(name: str, params: dict[str, str], call_id: str = "call_1") -> list[Any]:
    events: list[Any] = [LLMDelta(tool_call_fragment=ToolCallFragment(id=call_id, name=name))]
    for key, value in params.items():
        events.append(
            LLMDelta(
                tool_call_fragment=ToolCallFragment(
                    id=call_id, param=key, value_delta=value, param_done=True
                )
            )
        )
    events.append(LLMDelta(tool_call_fragment=ToolCallFragment(id=call_id, call_done=True)))
    events.append(LLMDone())
    return events


class ScriptedLLMClient(LLMStreamClient):
    """Replays one scripted reply per stream() call.

    A script item may be an LLM event (yielded), an ``asyncio.Event`` (awaited,
    to pause mid-stream) or an exception (raised).
    """

    def __init__(self, *scripts: list[Any]):
        self.scripts = list(scripts)
        self.calls: list[dict[str, Any]] = []

    def add(self, *scripts: list[Any]) -> None:
        self.scripts.extend(scripts)

    async def stream(
        self,
        system_message: str,
        messages: Sequence[Any],
        tools: Sequence[ToolInfo],
        chat_mode: ChatMode,
    ):
        self.calls.append(
            {
                "system_message": system_message,
                "messages": list(messages),
                "tools": [t.name for t in tools],
                "chat_mode": chat_mode,
            }
        )
        if not self.scripts:
            raise AssertionError("LLM called more times than scripted")
        for item in self.scripts.pop(0):
            if isinstance(item, asyncio.Event):
                await item.wait()
            elif isinstance(item, BaseException):
                raise item
            else:
                yield item


@dataclass
class FakeSettings:
    chat_mode: ChatMode = ChatMode.AGENT
    tool_format: ToolFormat = ToolFormat.XML
    max_agent_iterations: int = 50
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    approvals: dict[ToolApprovalType, bool] = field(default_factory=dict)

    def auto_approve(self, approval_type: ToolApprovalType) -> bool:
        return self.approvals.get(approval_type, False)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


async def wait_until(predicate: Callable[[], bool], what: str = "condition") -> None:
    for _ in range(500):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"Timed out waiting for {what}")


async def wait_for_state(service: ChatThreadService, thread_id: str, running: str) -> None:
    await wait_until(
        lambda: service.stream_state(thread_id).is_running == running,
        f"state {running!r}",
    )
