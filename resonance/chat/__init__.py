"""Chat threads: models, events, checkpoints and the orchestration service."""

from resonance.chat.events import ThreadEvent, ThreadEventType
from resonance.chat.service import ChatThreadService
from resonance.chat.types import ChatThread, ThreadStreamState

__all__ = [
    "ChatThread",
    "ChatThreadService",
    "ThreadEvent",
    "ThreadEventType",
    "ThreadStreamState",
]
