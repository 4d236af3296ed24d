from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resonance import __version__
from resonance.api.deps import get_chat_service, set_chat_service
from resonance.api.routes.health import router as health_router
from resonance.api.routes.threads import router as threads_router
from resonance.chat.service import ChatThreadService
from resonance.errors import (
    InvalidMessageIndexError,
    ThreadBusyError,
    ThreadNotFoundError,
)
from resonance.utils.logger import api_logger, request_log


@asynccontextmanager
async def lifespan(app: FastAPI):
    if hasattr(app.state, "config_manager"):
        await app.state.config_manager.start_watching()
        api_logger.info("Config file watcher started")

    yield

    try:
        api_logger.info("Starting shutdown cleanup")
        if hasattr(app.state, "config_manager"):
            try:
                await app.state.config_manager.stop_watching()
                api_logger.info("Config file watcher stopped")
            except asyncio.CancelledError:
                api_logger.debug("Config watcher stop cancelled, continuing cleanup")
        try:
            await get_chat_service().shutdown()
        except asyncio.CancelledError:
            api_logger.debug("Chat service shutdown cancelled, continuing cleanup")
        api_logger.info("Shutdown completed")
    except Exception as e:
        api_logger.error("Shutdown cleanup failed", exc_info=True, error=str(e))


def create_app(service: ChatThreadService) -> FastAPI:
    set_chat_service(service)
    app = FastAPI(
        title="Resonance Agent",
        description="Agentic chat core: threads, tool calls, approvals and checkpoints",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(threads_router)

    @app.exception_handler(ThreadNotFoundError)
    async def thread_not_found(request: Request, exc: ThreadNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ThreadBusyError)
    async def thread_busy(request: Request, exc: ThreadBusyError):
        return JSONResponse(
            status_code=409, content={"detail": str(exc), "running": exc.running}
        )

    @app.exception_handler(InvalidMessageIndexError)
    async def invalid_message_index(request: Request, exc: InvalidMessageIndexError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000
        request_log(
            api_logger,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    return app
