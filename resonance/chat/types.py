"""Thread, message and stream-state models.

Messages are frozen. A thread's message list only grows, except that the
tail tool message is replaced (never edited in place) while its call moves
through ``tool_request`` and ``running_now``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _now() -> datetime:
    return datetime.now(UTC)


class ToolMessageType(str, Enum):
    TOOL_REQUEST = "tool_request"
    RUNNING_NOW = "running_now"
    SUCCESS = "success"
    TOOL_ERROR = "tool_error"
    REJECTED = "rejected"
    INVALID_PARAMS = "invalid_params"

    @property
    def is_terminal(self) -> bool:
        return self not in (ToolMessageType.TOOL_REQUEST, ToolMessageType.RUNNING_NOW)


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True)


class UserMessage(_Message):
    role: Literal["user"] = "user"
    content: str
    images: list[str] = Field(default_factory=list)


class AssistantMessage(_Message):
    role: Literal["assistant"] = "assistant"
    display_content: str = ""
    reasoning: str = ""


class ToolMessage(_Message):
    role: Literal["tool"] = "tool"
    type: ToolMessageType
    id: str
    name: str
    raw_params: dict[str, str] = Field(default_factory=dict)
    params: dict[str, Any] | None = None
    result: Any | None = None
    # Text handed back to the model
    content: str = ""
    mcp_server_name: str | None = None
    # Set when the call came from prose rather than from the model
    heuristic: bool = False


class InterruptedStreamingToolMessage(_Message):
    role: Literal["interrupted_streaming_tool"] = "interrupted_streaming_tool"
    id: str
    name: str
    raw_params: dict[str, str] = Field(default_factory=dict)
    mcp_server_name: str | None = None


class CheckpointEntry(_Message):
    role: Literal["checkpoint"] = "checkpoint"
    kind: Literal["user", "tool_edit"]
    # Workspace path -> file text at this point (None: file absent)
    snapshots: dict[str, str | None] = Field(default_factory=dict)


ChatMessage = Annotated[
    UserMessage
    | AssistantMessage
    | ToolMessage
    | InterruptedStreamingToolMessage
    | CheckpointEntry,
    Field(discriminator="role"),
]


class ThreadState(BaseModel):
    # None means the thread is at its end (nothing ghosted)
    curr_checkpoint_idx: int | None = None


class ChatThread(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=_now)
    last_modified: datetime = Field(default_factory=_now)
    messages: list[ChatMessage] = Field(default_factory=list)
    state: ThreadState = Field(default_factory=ThreadState)

    def touch(self) -> None:
        self.last_modified = _now()


type RunningState = Literal["LLM", "tool", "idle", "awaiting_user"]


class LLMInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    display_content_so_far: str = ""
    reasoning_so_far: str = ""
    tool_call_so_far: dict[str, Any] | None = None


class ToolRunInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    params: dict[str, Any] = Field(default_factory=dict)


class StreamError(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    full_error: str | None = None


class ThreadStreamState(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_running: RunningState | None = None
    error: StreamError | None = None
    llm_info: LLMInfo | None = None
    tool_info: ToolRunInfo | None = None

    @model_validator(mode="after")
    def _llm_info_iff_running(self) -> ThreadStreamState:
        if bool(self.is_running) != (self.llm_info is not None):
            raise ValueError("llm_info must be present exactly when the thread is running")
        return self

    @classmethod
    def running(
        cls,
        state: RunningState,
        llm_info: LLMInfo | None = None,
        tool_info: ToolRunInfo | None = None,
    ) -> ThreadStreamState:
        return cls(is_running=state, llm_info=llm_info or LLMInfo(), tool_info=tool_info)

    @classmethod
    def stopped(cls, error: StreamError | None = None) -> ThreadStreamState:
        return cls(error=error)
