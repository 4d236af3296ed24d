"""Tool registry: the tool execution service the chat loop talks to.

- Exposes ToolService (the interface) and ToolRegistry (built-in tools plus
  externally provided tools)
- Hosts FORMATTER_REGISTRY, the per-tool functions turning a result into
  the text handed back to the model
- Provides the decorator register_formatter_for(*tool_classes)
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from resonance.errors import ToolExecutionError, ToolNotFoundError, ToolParamsError
from resonance.llm.types import ToolInfo
from resonance.tools.base_tool import BaseTool
from resonance.tools.core import result as result_factory
from resonance.tools.names import (
    BuiltinToolName,
    ChatMode,
    ExternalToolName,
    ToolName,
    is_available_in_mode,
    parse_tool_name,
)
from resonance.utils.logger import tool_logger
from resonance.workspace import WorkspaceAccessor

# Formatter signature: (params, result) -> str
ResultFormatter = Callable[[dict[str, Any], dict[str, Any]], str]

FORMATTER_REGISTRY: dict[str, ResultFormatter] = {}

ExternalHandler = Callable[[dict[str, Any]], Awaitable[Any]]


def register_formatter_for(*tool_classes: type[BaseTool]):
    """Decorator registering how results of the given tools read to the model."""

    def decorator(func: ResultFormatter):
        real = getattr(func, "__func__", func)
        for cls in tool_classes:
            field_info = cls.model_fields.get("name")
            name = getattr(field_info, "default", None) or cls.__name__.lower()
            FORMATTER_REGISTRY[name] = real
        return func

    return decorator


# Params naming workspace paths; they may not point outside the workspace
PATH_PARAMS = ("uri", "search_in_folder", "cwd")


@dataclass
class ExternalTool:
    """A tool served by an external (MCP) server."""

    name: str
    description: str
    handler: ExternalHandler
    params: dict[str, str] = field(default_factory=dict)
    server_name: str | None = None

    @property
    def tool_name(self) -> ExternalToolName:
        return ExternalToolName(self.name, self.server_name)


class ToolService(ABC):
    """What the chat loop needs from tool execution."""

    @abstractmethod
    def tool_infos(self, chat_mode: ChatMode) -> list[ToolInfo]: ...

    @abstractmethod
    def resolve(self, name: str) -> ToolName | None: ...

    @abstractmethod
    def validate_params(self, name: str, raw_params: dict[str, str]) -> dict[str, Any]:
        """Coerce raw string params; raises ToolParamsError."""

    @abstractmethod
    async def call_tool(self, name: str, params: dict[str, Any]) -> Any:
        """Run a tool; raises ToolExecutionError (or anything) on failure."""

    @abstractmethod
    def stringify_result(self, name: str, params: dict[str, Any], result: Any) -> str: ...


def _args_schema(tool: BaseTool) -> type[BaseModel]:
    schema = tool.args_schema
    if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
        raise TypeError(f"Tool {tool.name} has no pydantic args_schema")
    return schema


def _param_descriptions(schema: type[BaseModel]) -> dict[str, str]:
    params: dict[str, str] = {}
    for key, info in schema.model_fields.items():
        desc = info.description or key
        if not info.is_required() and not desc.startswith("Optional"):
            desc = f"Optional. {desc}"
        params[key] = desc
    return params


class ToolRegistry(ToolService):
    """Registry and lifecycle manager for tools.

    Holds built-in tools by name in registration order, plus external tools,
    and attaches the workspace accessor to every built-in tool.
    """

    def __init__(self, workspace: WorkspaceAccessor | None = None) -> None:
        self._tools: dict[str, BaseTool] = {}
        self._external: dict[str, ExternalTool] = {}
        self._workspace = workspace
        self._terminal_timeout = 30.0

    def set_workspace(self, workspace: WorkspaceAccessor | None) -> None:
        self._workspace = workspace
        for tool in self._tools.values():
            tool.set_workspace(workspace)

    def set_terminal_timeout(self, seconds: float) -> None:
        self._terminal_timeout = seconds
        for tool in self._tools.values():
            tool.set_terminal_timeout(seconds)

    def register(self, tool: BaseTool) -> None:
        # Built-in names form a closed set
        BuiltinToolName(tool.name)
        tool.set_workspace(self._workspace)
        tool.set_terminal_timeout(self._terminal_timeout)
        self._tools[tool.name] = tool

    def register_external(self, tool: ExternalTool) -> None:
        if parse_tool_name(tool.name) is not None:
            raise ValueError(f"External tool shadows a built-in tool: {tool.name}")
        self._external[tool.name] = tool
        tool_logger.info(
            "External tool registered", tool=tool.name, server=tool.server_name
        )

    def unregister_external(self, name: str) -> bool:
        return self._external.pop(name, None) is not None

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools or name in self._external

    def resolve(self, name: str) -> ToolName | None:
        resolved = parse_tool_name(
            name, {n: t.tool_name for n, t in self._external.items()}
        )
        if isinstance(resolved, BuiltinToolName) and resolved.value not in self._tools:
            return None
        return resolved

    def tool_infos(self, chat_mode: ChatMode) -> list[ToolInfo]:
        infos: list[ToolInfo] = []
        for name, tool in self._tools.items():
            if not is_available_in_mode(BuiltinToolName(name), chat_mode):
                continue
            schema = _args_schema(tool)
            infos.append(
                ToolInfo(
                    name=name,
                    description=tool.description,
                    params=_param_descriptions(schema),
                    json_schema=schema.model_json_schema(),
                )
            )
        for ext in self._external.values():
            if not is_available_in_mode(ext.tool_name, chat_mode):
                continue
            infos.append(
                ToolInfo(
                    name=ext.name,
                    description=ext.description,
                    params=dict(ext.params),
                    json_schema={
                        "type": "object",
                        "properties": {
                            key: {"type": "string", "description": desc}
                            for key, desc in ext.params.items()
                        },
                    },
                    mcp_server_name=ext.server_name,
                )
            )
        return infos

    def validate_params(self, name: str, raw_params: dict[str, str]) -> dict[str, Any]:
        match self.resolve(name):
            case None:
                raise ToolNotFoundError(name)
            case ExternalToolName():
                return dict(raw_params)
            case BuiltinToolName():
                schema = _args_schema(self._tools[name])
                fields = schema.model_fields
                # An empty optional param means "not given"
                args = {
                    k: v
                    for k, v in raw_params.items()
                    if not (v == "" and k in fields and not fields[k].is_required())
                }
                try:
                    params = schema.model_validate(args).model_dump()
                except ValidationError as ve:
                    problems = "; ".join(
                        f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}"
                        for err in ve.errors()
                    )
                    raise ToolParamsError(name, f"Invalid parameters for {name}: {problems}") from ve
                self._check_paths(name, params)
                return params

    def _check_paths(self, name: str, params: dict[str, Any]) -> None:
        if self._workspace is None:
            return
        for key in PATH_PARAMS:
            value = params.get(key)
            if value and not self._workspace.contains(str(value)):
                raise ToolParamsError(
                    name, f"Invalid parameters for {name}: {key}: {value} is outside the workspace"
                )

    async def call_tool(self, name: str, params: dict[str, Any]) -> Any:
        tool_logger.info("Tool call", tool=name, args=params)
        match self.resolve(name):
            case None:
                raise ToolNotFoundError(name)
            case ExternalToolName():
                result = await self._external[name].handler(params)
            case BuiltinToolName():
                result = await self._tools[name].arun(tool_input=params)

        if result_factory.is_error(result):
            tool_logger.warning(
                "Tool returned error", tool=name, code=result.get("code")
            )
            raise ToolExecutionError(
                name,
                str(result.get("error", "Tool failed")),
                code=str(result.get("code", "execution_failed")),
                details=result.get("details"),
            )

        try:
            serialized = json.dumps(result, ensure_ascii=False, default=str)
            tool_logger.info(
                "Tool result", tool=name, size_bytes=len(serialized.encode("utf-8"))
            )
        except (TypeError, ValueError):
            pass
        return result

    def stringify_result(self, name: str, params: dict[str, Any], result: Any) -> str:
        formatter = FORMATTER_REGISTRY.get(name)
        if formatter is not None and isinstance(result, dict):
            return formatter(params, result)
        if isinstance(result, str):
            return result
        return json.dumps(result, ensure_ascii=False, indent=2, default=str)
