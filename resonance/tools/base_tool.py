from __future__ import annotations

import asyncio
from abc import ABC
from typing import Any
from uuid import UUID

from langchain_core.callbacks.base import BaseCallbackHandler
from langchain_core.callbacks.manager import BaseCallbackManager
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool as LCBaseTool

from resonance.workspace import WorkspaceAccessor


class BaseTool(LCBaseTool, ABC):
    """Base class for built-in tools.

    Tools receive validated arguments and act on the workspace accessor
    attached by the registry. Subclasses implement ``_arun`` and return a
    JSON-friendly dict: a success payload or a ``result.error`` envelope.
    """

    # Tool subclasses should declare: name: str, description: str, args_schema: type[BaseModel]

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        # Internal, non-pydantic state
        self._workspace: WorkspaceAccessor | None = None
        self._terminal_timeout: float = 30.0

    def set_workspace(self, workspace: WorkspaceAccessor | None) -> None:
        self._workspace = workspace

    def set_terminal_timeout(self, seconds: float) -> None:
        self._terminal_timeout = seconds

    @property
    def workspace(self) -> WorkspaceAccessor:
        if self._workspace is None:
            raise RuntimeError(f"Tool {self.name} has no workspace attached")
        return self._workspace

    # Match LangChain signature for compatibility and type-checking
    async def arun(
        self,
        tool_input: str | dict[Any, Any],
        verbose: bool | None = None,
        start_color: str | None = None,
        color: str | None = None,
        callbacks: list[BaseCallbackHandler] | BaseCallbackManager | None = None,
        *,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        run_name: str | None = None,
        run_id: UUID | None = None,
        config: RunnableConfig | None = None,
        tool_call_id: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Execute tool asynchronously. Default calls the ``_arun`` hook."""
        if not isinstance(tool_input, dict):
            raise TypeError(
                "tool_input must be a dict of arguments; callers should pass structured args via tool_input"
            )
        merged_kwargs: dict[Any, Any] = {**tool_input, **kwargs}
        return await self._arun(**merged_kwargs)

    def _run(self, *args: Any, **kwargs: Any) -> Any:  # pragma: no cover
        # LangChain's sync entry point; tools here are async-only
        return asyncio.run(self._arun(**kwargs))
