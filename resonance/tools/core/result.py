from __future__ import annotations

from typing import Any

__all__ = ["error", "not_found", "is_error"]


def error(
    tool: str,
    code: str,
    message: str,
    *,
    error_type: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Standard error envelope for tools (JSON friendly).

    Shape:
    {"type": "tool_error", "name": "<tool>", "code": "<code>", "error": "<message>", "error_type": "<Exc>", "details": {...}}
    """
    payload: dict[str, Any] = {
        "type": "tool_error",
        "name": tool,
        "code": code,
        "error": message,
    }
    if error_type:
        payload["error_type"] = error_type
    if details:
        payload["details"] = details
    return payload


def not_found(tool: str, path: str, *, what: str = "File") -> dict[str, Any]:
    """Error envelope with code=not_found for a missing workspace path."""
    return error(
        tool,
        code="not_found",
        message=f"{what} not found: {path}",
        error_type="FileNotFoundError",
        details={"path": path},
    )


def is_error(result: Any) -> bool:
    return isinstance(result, dict) and result.get("type") == "tool_error"
