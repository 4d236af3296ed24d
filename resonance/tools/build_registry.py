from __future__ import annotations

from resonance.workspace import WorkspaceAccessor

from .registry import ToolRegistry


def build_registry(
    workspace: WorkspaceAccessor | None = None,
    *,
    include: set[str] | None = None,
    exclude: set[str] | None = None,
    terminal_timeout: float | None = None,
) -> ToolRegistry:
    """Build a tool registry from the static builtin TOOL_CLASSES.

    The builtin package is imported here, not at module level, because every
    builtin module imports the registry for its formatter decorator.
    """
    registry = ToolRegistry(workspace)
    if terminal_timeout is not None:
        registry.set_terminal_timeout(terminal_timeout)

    include = include or set()
    exclude = exclude or set()

    from resonance.tools.builtin import TOOL_CLASSES as BUILTIN_TOOL_CLASSES

    for tool_cls in BUILTIN_TOOL_CLASSES:
        tool = tool_cls()
        if include and tool.name not in include:
            continue
        if tool.name in exclude:
            continue
        registry.register(tool)

    return registry
