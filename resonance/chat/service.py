"""Chat thread service: the agent loop behind every thread.

One turn streams a model reply, detects at most one tool call, asks the user
for approval when settings require it, runs the tool and feeds the result
back, until the model stops calling tools. Each running turn is an asyncio
task held in a per-thread run handle so it can be aborted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, cast

from resonance.chat.checkpoints import (
    CheckpointTracker,
    end_of_checkpoint_run,
    last_checkpoint_at_or_before,
)
from resonance.chat.conversation import build_conversation
from resonance.chat.events import (
    CheckpointEvent,
    MessagesEvent,
    StreamStateEvent,
    ThreadEvent,
)
from resonance.chat.types import (
    AssistantMessage,
    ChatMessage,
    ChatThread,
    InterruptedStreamingToolMessage,
    LLMInfo,
    StreamError,
    ThreadStreamState,
    ToolMessage,
    ToolMessageType,
    ToolRunInfo,
    UserMessage,
)
from resonance.config.settings import ChatSettings
from resonance.errors import (
    InvalidMessageIndexError,
    LLMProviderError,
    ThreadBusyError,
    ThreadNotFoundError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolParamsError,
)
from resonance.llm.retry import RetryPolicy
from resonance.llm.types import (
    LLMDelta,
    LLMDone,
    LLMError,
    LLMStreamClient,
    ToolCallBuilder,
    ToolInfo,
)
from resonance.llm.xml_tools import strip_param_value
from resonance.prompts.chat import chat_system_message
from resonance.tools.enforcer import ToolCallHeuristicDetector
from resonance.tools.names import (
    EDIT_TOOLS,
    ChatMode,
    ExternalToolName,
    ToolFormat,
    ToolName,
    approval_type_of,
    is_available_in_mode,
)
from resonance.tools.registry import ToolService
from resonance.utils.logger import agent_logger, tool_logger
from resonance.workspace import WorkspaceAccessor

REJECTED_CONTENT = "Tool call was rejected by the user."

type ThreadListener = Callable[[ThreadEvent], None]
type SystemMessageBuilder = Callable[
    [ChatMode, Sequence[ToolInfo], ToolFormat, str | None], str
]


@dataclass
class _RunHandle:
    task: asyncio.Task[None] | None = None
    aborted: bool = False
    # Files the running edit tool may touch
    edit_paths: list[str] | None = None


@dataclass
class _ReplyProgress:
    display: str = ""
    reasoning: str = ""
    builder: ToolCallBuilder | None = None

    def llm_info(self) -> LLMInfo:
        return LLMInfo(
            display_content_so_far=self.display,
            reasoning_so_far=self.reasoning,
            tool_call_so_far=self.builder.snapshot() if self.builder else None,
        )


@dataclass
class _DetectedCall:
    builder: ToolCallBuilder
    heuristic: bool = False
    raw_params: dict[str, str] = field(default_factory=dict)


def _guard(handle: _RunHandle) -> None:
    # A tool may swallow the cancellation; the turn must still stop
    if handle.aborted:
        raise asyncio.CancelledError()


class ChatThreadService:
    def __init__(
        self,
        llm_client: LLMStreamClient,
        tool_service: ToolService,
        settings: ChatSettings,
        workspace: WorkspaceAccessor | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        detector: ToolCallHeuristicDetector | None = None,
        system_message_builder: SystemMessageBuilder = chat_system_message,
    ) -> None:
        self.llm_client = llm_client
        self.tool_service = tool_service
        self.settings = settings
        self.workspace = workspace
        self.retry_policy = retry_policy or RetryPolicy()
        self.detector = detector or ToolCallHeuristicDetector()
        self._system_message_builder = system_message_builder
        self._checkpoints = CheckpointTracker(workspace)
        self._threads: dict[str, ChatThread] = {}
        self._states: dict[str, ThreadStreamState] = {}
        self._runs: dict[str, _RunHandle] = {}
        self._listeners: list[ThreadListener] = []

    # ---- accessors -------------------------------------------------------

    def create_thread(self) -> str:
        thread = ChatThread()
        self._threads[thread.id] = thread
        self._states[thread.id] = ThreadStreamState.stopped()
        agent_logger.info("Thread created", thread_id=thread.id)
        return thread.id

    def get_thread(self, thread_id: str) -> ChatThread:
        thread = self._threads.get(thread_id)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        return thread

    def list_threads(self) -> list[ChatThread]:
        return sorted(self._threads.values(), key=lambda t: t.last_modified, reverse=True)

    def stream_state(self, thread_id: str) -> ThreadStreamState:
        self.get_thread(thread_id)
        return self._states[thread_id]

    def ghosted_message_indices(self, thread_id: str) -> list[int]:
        thread = self.get_thread(thread_id)
        curr = thread.state.curr_checkpoint_idx
        if curr is None or self._states[thread_id].is_running:
            return []
        return list(range(curr + 1, len(thread.messages)))

    def is_any_running(self) -> bool:
        return any(state.is_running for state in self._states.values())

    # ---- events ----------------------------------------------------------

    def subscribe(self, listener: ThreadListener) -> Callable[[], None]:
        """Register a listener for thread events; returns the unsubscribe call."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: ThreadEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                agent_logger.error(
                    "Thread event listener failed",
                    exc_info=True,
                    event=event.type.value,
                    error=str(e),
                )

    def _set_state(self, thread_id: str, state: ThreadStreamState) -> None:
        self._states[thread_id] = state
        self._publish(
            StreamStateEvent(thread_id=thread_id, state=state.model_dump(mode="json"))
        )

    def _messages_changed(self, thread: ChatThread) -> None:
        thread.touch()
        last = thread.messages[-1].model_dump(mode="json") if thread.messages else None
        self._publish(
            MessagesEvent(
                thread_id=thread.id,
                message_count=len(thread.messages),
                last_message=last,
            )
        )

    def _append(self, thread: ChatThread, message: ChatMessage) -> None:
        thread.messages.append(message)
        self._messages_changed(thread)

    def _replace_tail(self, thread: ChatThread, message: ChatMessage) -> None:
        thread.messages[-1] = message
        self._messages_changed(thread)

    # ---- public operations -----------------------------------------------

    async def add_user_message_and_stream_response(
        self, thread_id: str, user_message: str, images: list[str] | None = None
    ) -> None:
        thread = self.get_thread(thread_id)
        self._ensure_not_busy(thread_id)
        if self._states[thread_id].is_running == "awaiting_user":
            self._reject_latest(thread)
        self._discard_ghosted(thread)
        await self._submit(thread, user_message, images)

    async def edit_user_message_and_stream_response(
        self,
        thread_id: str,
        message_idx: int,
        user_message: str,
        images: list[str] | None = None,
    ) -> None:
        thread = self.get_thread(thread_id)
        self._ensure_not_busy(thread_id)
        if not 0 <= message_idx < len(thread.messages):
            raise InvalidMessageIndexError(thread_id, message_idx, "out of range")
        if not isinstance(thread.messages[message_idx], UserMessage):
            raise InvalidMessageIndexError(thread_id, message_idx, "not a user message")

        agent_logger.info("Editing user message", thread_id=thread_id, message_idx=message_idx)
        del thread.messages[message_idx:]
        thread.state.curr_checkpoint_idx = None
        self._messages_changed(thread)
        if self._states[thread_id].is_running == "awaiting_user":
            self._set_state(thread_id, ThreadStreamState.stopped())
        await self._submit(thread, user_message, images)

    async def approve_latest_tool_request(self, thread_id: str) -> None:
        thread = self.get_thread(thread_id)
        request = self._latest_tool_request(thread)
        if request is None:
            agent_logger.debug("No tool request to approve", thread_id=thread_id)
            return
        self._ensure_not_busy(thread_id)
        agent_logger.info("Tool request approved", thread_id=thread_id, tool=request.name)

        async def first_step(handle: _RunHandle) -> bool:
            return await self._execute_tool(thread, handle, request)

        await self._start_run(thread.id, first_step)

    def reject_latest_tool_request(self, thread_id: str) -> None:
        thread = self.get_thread(thread_id)
        if self._latest_tool_request(thread) is None:
            agent_logger.debug("No tool request to reject", thread_id=thread_id)
            return
        self._reject_latest(thread)

    async def abort_running(self, thread_id: str) -> None:
        thread = self.get_thread(thread_id)
        running = self._states[thread_id].is_running
        if running is None:
            return
        agent_logger.info("Aborting", thread_id=thread_id, running=running)
        if running == "awaiting_user":
            self._reject_latest(thread)
            return

        handle = self._runs.get(thread_id)
        if handle is None or handle.task is None:
            self._set_state(thread_id, ThreadStreamState.stopped())
            return
        handle.aborted = True
        handle.task.cancel()
        await asyncio.wait({handle.task})
        # The task was cancelled before its first step and never cleaned up
        if self._runs.get(thread_id) is handle:
            del self._runs[thread_id]
            self._set_state(thread_id, ThreadStreamState.stopped())

    def _finish_aborted(self, thread: ChatThread, handle: _RunHandle) -> None:
        """Commit the progress of an aborted turn; runs inside the turn's task."""
        state = self._states[thread.id]
        match state.is_running:
            case "LLM":
                self._commit_partial_reply(thread, state.llm_info or LLMInfo())
            case "tool":
                tail = thread.messages[-1] if thread.messages else None
                if isinstance(tail, ToolMessage) and tail.type == ToolMessageType.RUNNING_NOW:
                    self._replace_tail(
                        thread,
                        InterruptedStreamingToolMessage(
                            id=tail.id,
                            name=tail.name,
                            raw_params=tail.raw_params,
                            mcp_server_name=tail.mcp_server_name,
                        ),
                    )
                if handle.edit_paths is not None:
                    self._checkpoints.after_edit(thread, handle.edit_paths)
                    handle.edit_paths = None
                    self._messages_changed(thread)
        self._set_state(thread.id, ThreadStreamState.stopped())

    def jump_to_checkpoint_before_message_idx(
        self, thread_id: str, message_idx: int, jump_to_user_modified: bool = False
    ) -> None:
        thread = self.get_thread(thread_id)
        if self.is_any_running():
            agent_logger.warning(
                "Checkpoint jump refused while running", thread_id=thread_id
            )
            return
        target = last_checkpoint_at_or_before(thread, message_idx)
        if target is None:
            agent_logger.debug("No checkpoint before message", message_idx=message_idx)
            return

        if thread.state.curr_checkpoint_idx is None:
            # Keep the current disk state reachable before rolling back
            self._checkpoints.add_user_checkpoint(thread)
            self._messages_changed(thread)
        if jump_to_user_modified:
            target = end_of_checkpoint_run(thread, target)

        self._checkpoints.restore(thread, target)
        thread.state.curr_checkpoint_idx = target
        thread.touch()
        agent_logger.info("Jumped to checkpoint", thread_id=thread_id, checkpoint_idx=target)
        self._publish(CheckpointEvent(thread_id=thread_id, curr_checkpoint_idx=target))

    def dismiss_stream_error(self, thread_id: str) -> None:
        state = self.stream_state(thread_id)
        if state.error is not None:
            self._set_state(thread_id, state.model_copy(update={"error": None}))

    async def shutdown(self) -> None:
        """Abort every running turn."""
        for thread_id in list(self._runs):
            await self.abort_running(thread_id)

    # ---- run lifecycle ---------------------------------------------------

    def _ensure_not_busy(self, thread_id: str) -> None:
        if thread_id in self._runs:
            raise ThreadBusyError(thread_id, self._states[thread_id].is_running)

    def _latest_tool_request(self, thread: ChatThread) -> ToolMessage | None:
        if not thread.messages:
            return None
        last = thread.messages[-1]
        if isinstance(last, ToolMessage) and last.type == ToolMessageType.TOOL_REQUEST:
            return last
        return None

    def _reject_latest(self, thread: ChatThread) -> None:
        request = self._latest_tool_request(thread)
        if request is not None:
            agent_logger.info("Tool request rejected", thread_id=thread.id, tool=request.name)
            self._replace_tail(
                thread,
                request.model_copy(
                    update={"type": ToolMessageType.REJECTED, "content": REJECTED_CONTENT}
                ),
            )
        self._set_state(thread.id, ThreadStreamState.stopped())

    def _discard_ghosted(self, thread: ChatThread) -> None:
        curr = thread.state.curr_checkpoint_idx
        if curr is None:
            return
        agent_logger.info(
            "Discarding rolled back messages",
            thread_id=thread.id,
            count=len(thread.messages) - curr - 1,
        )
        del thread.messages[curr + 1 :]
        thread.state.curr_checkpoint_idx = None
        self._messages_changed(thread)
        self._publish(CheckpointEvent(thread_id=thread.id, curr_checkpoint_idx=None))

    async def _submit(
        self, thread: ChatThread, user_message: str, images: list[str] | None
    ) -> None:
        self._checkpoints.add_user_checkpoint(thread)
        self._append(thread, UserMessage(content=user_message, images=images or []))
        state = self._states[thread.id]
        if state.error is not None:
            self._set_state(thread.id, ThreadStreamState.stopped())
        await self._start_run(thread.id)

    async def _start_run(
        self,
        thread_id: str,
        first_step: Callable[[_RunHandle], Awaitable[bool]] | None = None,
    ) -> None:
        """Run a turn as a task and wait until it stops, pauses or is aborted."""
        handle = _RunHandle()
        self._runs[thread_id] = handle
        self._set_state(thread_id, ThreadStreamState.running("idle"))
        task = asyncio.create_task(self._run(thread_id, handle, first_step))
        handle.task = task
        # Waiting does not cancel the turn if the caller goes away
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()  # type: ignore[misc]

    async def _run(
        self,
        thread_id: str,
        handle: _RunHandle,
        first_step: Callable[[_RunHandle], Awaitable[bool]] | None,
    ) -> None:
        thread = self._threads[thread_id]
        try:
            if first_step is not None and not await first_step(handle):
                return
            await self._agent_loop(thread, handle)
        except asyncio.CancelledError:
            agent_logger.info("Turn cancelled", thread_id=thread_id)
            if handle.aborted:
                self._finish_aborted(thread, handle)
            raise
        except Exception as e:
            agent_logger.error("Agent loop failed", exc_info=True, thread_id=thread_id)
            self._set_state(
                thread_id,
                ThreadStreamState.stopped(
                    StreamError(message=f"Internal error: {e}", full_error=repr(e))
                ),
            )
            raise
        finally:
            if self._runs.get(thread_id) is handle:
                del self._runs[thread_id]

    async def _agent_loop(self, thread: ChatThread, handle: _RunHandle) -> None:
        max_iterations = self.settings.max_agent_iterations
        for _ in range(max_iterations):
            _guard(handle)
            call = await self._llm_turn(thread, handle)
            if call is None:
                return
            if not await self._handle_tool_call(thread, handle, call):
                return
        agent_logger.warning(
            "Agent iteration limit reached", thread_id=thread.id, limit=max_iterations
        )
        self._set_state(
            thread.id,
            ThreadStreamState.stopped(
                StreamError(message=f"Stopped after {max_iterations} agent iterations")
            ),
        )

    # ---- LLM turn --------------------------------------------------------

    def _apply_delta(self, progress: _ReplyProgress, delta: LLMDelta) -> None:
        progress.display += delta.display_content_delta
        progress.reasoning += delta.reasoning_delta
        if delta.tool_call_fragment is not None:
            if progress.builder is None:
                progress.builder = ToolCallBuilder()
            progress.builder.apply(delta.tool_call_fragment)

    async def _llm_turn(self, thread: ChatThread, handle: _RunHandle) -> _DetectedCall | None:
        chat_mode = self.settings.chat_mode
        tool_format = self.settings.tool_format
        tools = self.tool_service.tool_infos(chat_mode)
        system_message = self._system_message_builder(
            chat_mode,
            tools,
            tool_format,
            str(self.workspace.root) if self.workspace is not None else None,
        )
        messages = build_conversation(thread.messages, tool_format)
        progress = _ReplyProgress()

        async def attempt() -> None:
            # A retried attempt starts the reply over
            progress.display, progress.reasoning, progress.builder = "", "", None
            self._set_state(thread.id, ThreadStreamState.running("LLM"))
            async for event in self.llm_client.stream(system_message, messages, tools, chat_mode):
                _guard(handle)
                match event:
                    case LLMDelta():
                        self._apply_delta(progress, event)
                        self._set_state(
                            thread.id,
                            ThreadStreamState.running("LLM", progress.llm_info()),
                        )
                    case LLMError():
                        raise LLMProviderError(
                            event.message, status=event.status, full_error=event.full_error
                        )
                    case LLMDone():
                        break

        try:
            await self.retry_policy.execute(attempt, self.settings.retry_config)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            _guard(handle)
            agent_logger.error(
                "LLM request failed", thread_id=thread.id, error=str(e), exc_info=True
            )
            self._commit_partial_reply(thread, progress.llm_info())
            full_error = getattr(e, "full_error", None) or repr(e)
            self._set_state(
                thread.id,
                ThreadStreamState.stopped(StreamError(message=str(e), full_error=str(full_error))),
            )
            return None

        _guard(handle)
        if progress.display or progress.reasoning:
            self._append(
                thread,
                AssistantMessage(display_content=progress.display, reasoning=progress.reasoning),
            )

        builder = progress.builder
        if builder is not None and builder.name:
            raw_params = dict(builder.raw_params)
            if tool_format == ToolFormat.XML:
                raw_params = {k: strip_param_value(v) for k, v in raw_params.items()}
            return _DetectedCall(builder=builder, raw_params=raw_params)

        candidate = self.detector.detect(progress.display, chat_mode)
        if candidate is not None:
            return _DetectedCall(
                builder=candidate, heuristic=True, raw_params=dict(candidate.raw_params)
            )

        self._set_state(thread.id, ThreadStreamState.stopped())
        return None

    def _commit_partial_reply(self, thread: ChatThread, info: LLMInfo) -> None:
        if info.display_content_so_far or info.reasoning_so_far:
            self._append(
                thread,
                AssistantMessage(
                    display_content=info.display_content_so_far,
                    reasoning=info.reasoning_so_far,
                ),
            )
        call = info.tool_call_so_far
        if call and call.get("name"):
            raw_params = dict(call.get("raw_params") or {})
            if self.settings.tool_format == ToolFormat.XML:
                raw_params = {k: strip_param_value(v) for k, v in raw_params.items()}
            self._append(
                thread,
                InterruptedStreamingToolMessage(
                    id=call.get("id") or "", name=call["name"], raw_params=raw_params
                ),
            )

    # ---- tool calls ------------------------------------------------------

    async def _handle_tool_call(
        self, thread: ChatThread, handle: _RunHandle, call: _DetectedCall
    ) -> bool:
        """Validate, gate and maybe run a detected call; False ends the turn."""
        chat_mode = self.settings.chat_mode
        name, call_id = call.builder.name, call.builder.id
        tool = self.tool_service.resolve(name)
        server_name = tool.server_name if isinstance(tool, ExternalToolName) else None

        params: dict[str, Any] | None = None
        problem: ToolParamsError | None = None
        if tool is None or not is_available_in_mode(tool, chat_mode):
            problem = ToolNotFoundError(name)
        else:
            try:
                params = self.tool_service.validate_params(name, call.raw_params)
            except ToolParamsError as e:
                problem = e

        if problem is not None:
            tool_logger.warning("Invalid tool call", tool=name, error=str(problem))
            if call.heuristic:
                self._set_state(thread.id, ThreadStreamState.stopped())
                return False
            self._append(
                thread,
                ToolMessage(
                    type=ToolMessageType.INVALID_PARAMS,
                    id=call_id,
                    name=name,
                    raw_params=call.raw_params,
                    content=str(problem),
                    mcp_server_name=server_name,
                ),
            )
            return True

        tool = cast(ToolName, tool)
        request = ToolMessage(
            type=ToolMessageType.TOOL_REQUEST,
            id=call_id,
            name=name,
            raw_params=call.raw_params,
            params=params,
            mcp_server_name=server_name,
            heuristic=call.heuristic,
        )
        self._append(thread, request)

        approval = approval_type_of(tool)
        if call.heuristic or (approval is not None and not self.settings.auto_approve(approval)):
            agent_logger.info(
                "Awaiting tool approval",
                thread_id=thread.id,
                tool=name,
                approval_type=approval.value if approval else None,
                heuristic=call.heuristic,
            )
            self._set_state(thread.id, ThreadStreamState.running("awaiting_user"))
            return False
        return await self._execute_tool(thread, handle, request)

    async def _execute_tool(
        self, thread: ChatThread, handle: _RunHandle, request: ToolMessage
    ) -> bool:
        _guard(handle)
        params = request.params or {}
        self._replace_tail(thread, request.model_copy(update={"type": ToolMessageType.RUNNING_NOW}))
        self._set_state(
            thread.id,
            ThreadStreamState.running(
                "tool", tool_info=ToolRunInfo(id=request.id, name=request.name, params=params)
            ),
        )

        if self.tool_service.resolve(request.name) in EDIT_TOOLS and "uri" in params:
            handle.edit_paths = self._checkpoints.paths_for(str(params["uri"]))
            self._checkpoints.before_edit(thread, handle.edit_paths)

        try:
            result = await self.tool_service.call_tool(request.name, params)
        except asyncio.CancelledError:
            raise
        except ToolExecutionError as e:
            final = request.model_copy(
                update={"type": ToolMessageType.TOOL_ERROR, "result": e.details, "content": str(e)}
            )
        except Exception as e:
            tool_logger.error("Tool raised", tool=request.name, exc_info=True, error=str(e))
            final = request.model_copy(
                update={"type": ToolMessageType.TOOL_ERROR, "content": str(e) or repr(e)}
            )
        else:
            final = request.model_copy(
                update={
                    "type": ToolMessageType.SUCCESS,
                    "result": result,
                    "content": self.tool_service.stringify_result(request.name, params, result),
                }
            )

        _guard(handle)
        self._replace_tail(thread, final)
        if handle.edit_paths is not None:
            self._checkpoints.after_edit(thread, handle.edit_paths)
            handle.edit_paths = None
            self._messages_changed(thread)
        self._set_state(thread.id, ThreadStreamState.running("idle"))
        return True
