"""Streaming contract between the chat service and LLM clients."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from langchain_core.messages import BaseMessage

from resonance.tools.names import ChatMode


@dataclass(frozen=True)
class ToolCallFragment:
    """One increment of a streamed tool call.

    ``param`` with an empty ``value_delta`` still marks the parameter as
    started, so an empty value is distinguishable from an absent one.
    """

    id: str | None = None
    name: str | None = None
    param: str | None = None
    value_delta: str = ""
    param_done: bool = False
    call_done: bool = False


@dataclass
class ToolCallBuilder:
    """Tool call accumulated from fragments.

    ``done_keys`` holds the parameters whose value is final; the rest of
    ``raw_params`` may still grow.
    """

    name: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    raw_params: dict[str, str] = field(default_factory=dict)
    done_keys: set[str] = field(default_factory=set)
    is_done: bool = False

    def apply(self, fragment: ToolCallFragment) -> None:
        if fragment.id:
            self.id = fragment.id
        if fragment.name:
            self.name = fragment.name
        if fragment.param is not None:
            current = self.raw_params.get(fragment.param, "")
            self.raw_params[fragment.param] = current + fragment.value_delta
            if fragment.param_done:
                self.done_keys.add(fragment.param)
        if fragment.call_done:
            self.done_keys.update(self.raw_params)
            self.is_done = True

    def snapshot(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "raw_params": dict(self.raw_params),
            "done_keys": sorted(self.done_keys),
            "is_done": self.is_done,
        }


@dataclass(frozen=True)
class LLMDelta:
    display_content_delta: str = ""
    reasoning_delta: str = ""
    tool_call_fragment: ToolCallFragment | None = None


@dataclass(frozen=True)
class LLMDone:
    pass


@dataclass(frozen=True)
class LLMError:
    message: str
    status: int | None = None
    full_error: Any | None = None


type LLMEvent = LLMDelta | LLMDone | LLMError


@dataclass(frozen=True)
class ToolInfo:
    """Tool description offered to the model."""

    name: str
    description: str
    params: dict[str, str]
    json_schema: dict[str, Any] = field(default_factory=dict)
    mcp_server_name: str | None = None


class LLMStreamClient(ABC):
    """Streams one model reply.

    Implementations either end with ``LLMDone``/``LLMError`` or raise; the
    chat service treats a raised ``LLMProviderError`` like ``LLMError``.
    """

    @abstractmethod
    def stream(
        self,
        system_message: str,
        messages: Sequence[BaseMessage],
        tools: Sequence[ToolInfo],
        chat_mode: ChatMode,
    ) -> AsyncIterator[LLMEvent]:
        raise NotImplementedError
