"""API request/response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from resonance.chat.types import ChatThread, RunningState, ThreadStreamState


class SendMessageRequest(BaseModel):
    content: str
    images: list[str] = Field(default_factory=list)


class JumpRequest(BaseModel):
    message_idx: int
    jump_to_user_modified: bool = False


class ThreadCreatedResponse(BaseModel):
    id: str


class ThreadSummary(BaseModel):
    id: str
    created_at: datetime
    last_modified: datetime
    message_count: int
    is_running: RunningState | None = None


class ThreadListResponse(BaseModel):
    threads: list[ThreadSummary]


class ThreadResponse(BaseModel):
    thread: ChatThread
    stream_state: ThreadStreamState
    ghosted_message_indices: list[int] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "resonance-agent"
    version: str
    any_running: bool = False
