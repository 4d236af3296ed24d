"""Thread events published to subscribers (UI refresh, SSE stream)."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Literal


class ThreadEventType(str, Enum):
    STREAM_STATE = "stream_state"
    MESSAGES = "messages"
    CHECKPOINT = "checkpoint"


@dataclass
class ThreadEvent:
    thread_id: str
    type: ThreadEventType

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for k, v in list(data.items()):
            if isinstance(v, Enum):
                data[k] = v.value
        return data

    def to_sse(self) -> dict[str, str]:
        return {
            "event": self.type.value,
            "data": json.dumps(self.to_dict(), ensure_ascii=False, default=str),
        }


@dataclass
class StreamStateEvent(ThreadEvent):
    type: Literal[ThreadEventType.STREAM_STATE] = ThreadEventType.STREAM_STATE
    state: dict[str, Any] = field(default_factory=dict)


@dataclass
class MessagesEvent(ThreadEvent):
    type: Literal[ThreadEventType.MESSAGES] = ThreadEventType.MESSAGES
    message_count: int = 0
    # Last message as JSON, when one was added or replaced
    last_message: dict[str, Any] | None = None


@dataclass
class CheckpointEvent(ThreadEvent):
    type: Literal[ThreadEventType.CHECKPOINT] = ThreadEventType.CHECKPOINT
    curr_checkpoint_idx: int | None = None
