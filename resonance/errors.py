"""Exception hierarchy for the agent core.

Caller errors (unknown thread, busy thread, bad message index) are raised to
the host. Provider and tool failures are raised internally and converted into
thread state or message data by the chat service.
"""

from __future__ import annotations

from typing import Any


class ResonanceError(Exception):
    """Base class for all agent core errors."""


class ThreadNotFoundError(ResonanceError):
    def __init__(self, thread_id: str):
        super().__init__(f"Thread not found: {thread_id}")
        self.thread_id = thread_id


class ThreadBusyError(ResonanceError):
    """A turn is already running on the thread."""

    def __init__(self, thread_id: str, running: str | None = None):
        super().__init__(
            f"Thread {thread_id} is already running ({running or 'busy'}); abort it first"
        )
        self.thread_id = thread_id
        self.running = running


class InvalidMessageIndexError(ResonanceError):
    def __init__(self, thread_id: str, message_idx: int, reason: str):
        super().__init__(f"Invalid message index {message_idx} in {thread_id}: {reason}")
        self.thread_id = thread_id
        self.message_idx = message_idx


class LLMProviderError(ResonanceError):
    """Error reported by an LLM provider while streaming.

    ``status`` mirrors the HTTP status code when the provider exposes one; the
    retry policy classifies on it.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        full_error: Any | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.full_error = full_error


class ToolParamsError(ResonanceError):
    """The model produced parameters that fail the tool's argument schema."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolParamsError):
    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Tool not found or not available: {tool_name}")


class ToolExecutionError(ResonanceError):
    """A tool ran and failed."""

    def __init__(
        self,
        tool_name: str,
        message: str,
        *,
        code: str = "execution_failed",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.tool_name = tool_name
        self.code = code
        self.details = details
