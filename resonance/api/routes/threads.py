"""Thread routes.

Turn-starting routes (send, edit, approve) return once the turn completes,
pauses for approval, fails or is aborted. Progress is observed through
``GET /api/threads/{thread_id}/events``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from resonance.api.deps import get_chat_service
from resonance.api.schemas import (
    JumpRequest,
    SendMessageRequest,
    ThreadCreatedResponse,
    ThreadListResponse,
    ThreadResponse,
    ThreadSummary,
)
from resonance.api.sse import stream_response, thread_event_stream
from resonance.chat.service import ChatThreadService
from resonance.utils.logger import api_logger

router = APIRouter(prefix="/api/threads")


def _thread_response(service: ChatThreadService, thread_id: str) -> ThreadResponse:
    return ThreadResponse(
        thread=service.get_thread(thread_id),
        stream_state=service.stream_state(thread_id),
        ghosted_message_indices=service.ghosted_message_indices(thread_id),
    )


@router.post("", response_model=ThreadCreatedResponse)
async def create_thread(service: ChatThreadService = Depends(get_chat_service)):  # noqa: B008
    return ThreadCreatedResponse(id=service.create_thread())


@router.get("", response_model=ThreadListResponse)
async def list_threads(service: ChatThreadService = Depends(get_chat_service)):  # noqa: B008
    return ThreadListResponse(
        threads=[
            ThreadSummary(
                id=t.id,
                created_at=t.created_at,
                last_modified=t.last_modified,
                message_count=len(t.messages),
                is_running=service.stream_state(t.id).is_running,
            )
            for t in service.list_threads()
        ]
    )


@router.get("/{thread_id}", response_model=ThreadResponse)
async def get_thread(
    thread_id: str,
    service: ChatThreadService = Depends(get_chat_service),  # noqa: B008
):
    return _thread_response(service, thread_id)


@router.post("/{thread_id}/messages", response_model=ThreadResponse)
async def send_message(
    thread_id: str,
    payload: SendMessageRequest,
    service: ChatThreadService = Depends(get_chat_service),  # noqa: B008
):
    api_logger.info("User message received", thread_id=thread_id, length=len(payload.content))
    await service.add_user_message_and_stream_response(
        thread_id, payload.content, payload.images
    )
    return _thread_response(service, thread_id)


@router.put("/{thread_id}/messages/{message_idx}", response_model=ThreadResponse)
async def edit_message(
    thread_id: str,
    message_idx: int,
    payload: SendMessageRequest,
    service: ChatThreadService = Depends(get_chat_service),  # noqa: B008
):
    await service.edit_user_message_and_stream_response(
        thread_id, message_idx, payload.content, payload.images
    )
    return _thread_response(service, thread_id)


@router.post("/{thread_id}/approve", response_model=ThreadResponse)
async def approve(
    thread_id: str,
    service: ChatThreadService = Depends(get_chat_service),  # noqa: B008
):
    await service.approve_latest_tool_request(thread_id)
    return _thread_response(service, thread_id)


@router.post("/{thread_id}/reject", response_model=ThreadResponse)
async def reject(
    thread_id: str,
    service: ChatThreadService = Depends(get_chat_service),  # noqa: B008
):
    service.reject_latest_tool_request(thread_id)
    return _thread_response(service, thread_id)


@router.post("/{thread_id}/abort", response_model=ThreadResponse)
async def abort(
    thread_id: str,
    service: ChatThreadService = Depends(get_chat_service),  # noqa: B008
):
    await service.abort_running(thread_id)
    return _thread_response(service, thread_id)


@router.post("/{thread_id}/jump", response_model=ThreadResponse)
async def jump_to_checkpoint(
    thread_id: str,
    payload: JumpRequest,
    service: ChatThreadService = Depends(get_chat_service),  # noqa: B008
):
    service.jump_to_checkpoint_before_message_idx(
        thread_id, payload.message_idx, payload.jump_to_user_modified
    )
    return _thread_response(service, thread_id)


@router.post("/{thread_id}/dismiss-error", response_model=ThreadResponse)
async def dismiss_error(
    thread_id: str,
    service: ChatThreadService = Depends(get_chat_service),  # noqa: B008
):
    service.dismiss_stream_error(thread_id)
    return _thread_response(service, thread_id)


@router.get("/{thread_id}/events")
async def thread_events(
    thread_id: str,
    service: ChatThreadService = Depends(get_chat_service),  # noqa: B008
):
    # Unknown threads fail here with 404, before the stream opens
    service.get_thread(thread_id)
    return stream_response(thread_event_stream(service, thread_id))
