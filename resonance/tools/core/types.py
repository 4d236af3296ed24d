"""Typed views over the plain-dict results built-in tools return."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

__all__ = ["ToolError", "parse_tool_result"]


class ToolError(BaseModel):
    """A ``tool_error`` envelope as built by ``core.result.error``."""

    type: Literal["tool_error"] = "tool_error"
    name: str
    code: str
    error: str
    error_type: str | None = None
    details: dict[str, Any] | None = None


def parse_tool_result[TSuccess: BaseModel](
    result: dict[str, Any], success_type: type[TSuccess]
) -> TSuccess | ToolError:
    """Validate a tool's result dict as its success model or as a ToolError.

    Formatters branch on the outcome::

        r = parse_tool_result(result, LsDirSuccess)
        if isinstance(r, ToolError):
            return f"{uri}: {r.error}"
        return "\\n".join(child.name for child in r.children)
    """
    if result.get("type") == "tool_error":
        return ToolError.model_validate(result)
    return success_type.model_validate(result)
