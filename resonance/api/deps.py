from __future__ import annotations

from resonance.chat.service import ChatThreadService

# Global chat service instance, installed by create_app
_chat_service: ChatThreadService | None = None


def set_chat_service(service: ChatThreadService | None) -> None:
    global _chat_service
    _chat_service = service


def get_chat_service() -> ChatThreadService:
    if _chat_service is None:
        raise RuntimeError("Chat service is not configured; call create_app(service)")
    return _chat_service
