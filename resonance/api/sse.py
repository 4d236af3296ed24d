"""SSE adapter: thread events as an EventSourceResponse."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from sse_starlette.sse import EventSourceResponse

from resonance.chat.events import StreamStateEvent, ThreadEvent
from resonance.chat.service import ChatThreadService
from resonance.utils.logger import api_logger, stream_log


async def thread_event_stream(
    service: ChatThreadService, thread_id: str
) -> AsyncIterator[dict[str, str]]:
    """Current stream state, then every event of the thread as it happens."""
    queue: asyncio.Queue[ThreadEvent] = asyncio.Queue()

    def on_event(event: ThreadEvent) -> None:
        if event.thread_id == thread_id:
            queue.put_nowait(event)

    unsubscribe = service.subscribe(on_event)
    try:
        state = service.stream_state(thread_id)
        yield StreamStateEvent(
            thread_id=thread_id, state=state.model_dump(mode="json")
        ).to_sse()
        while True:
            event = await queue.get()
            stream_log(api_logger, event.type.value, thread_id=thread_id)
            yield event.to_sse()
    finally:
        unsubscribe()


def stream_response(event_stream: AsyncIterator[dict[str, str]]) -> EventSourceResponse:
    async def guarded_stream() -> AsyncIterator[dict[str, str]]:
        try:
            async for event in event_stream:
                yield event
        except GeneratorExit:
            # Client went away; nothing may be yielded here
            api_logger.info("SSE generator closed")
            return
        except asyncio.CancelledError:
            api_logger.info("SSE stream cancelled")
            raise

    return EventSourceResponse(
        guarded_stream(),
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
