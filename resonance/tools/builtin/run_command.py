from __future__ import annotations

import os
import platform
import sys
from typing import Any, Literal

from pydantic import BaseModel, Field

from resonance.config.constants import MAX_TERMINAL_CHARS
from resonance.tools.core import result as result_factory
from resonance.tools.core.types import ToolError, parse_tool_result
from resonance.tools.registry import register_formatter_for

from ..base_tool import BaseTool


def _detect_shell() -> str:
    if os.name == "nt":
        return os.environ.get("COMSPEC") or "cmd.exe"
    return os.environ.get("SHELL") or "/bin/sh"


_OS_DESC = (
    f"System context: system={platform.system()} {platform.release()}"
    f", python={platform.python_version()}, shell={_detect_shell()}"
)


class RunCommandSuccess(BaseModel):
    type: Literal["run_command_result"] = "run_command_result"
    command: str
    cwd: str
    exit_code: int | None
    output: str
    truncated: bool = False
    timed_out: bool = False
    duration_ms: int = 0


class RunCommandArgs(BaseModel):
    command: str = Field(..., description="The terminal command to run.")
    cwd: str | None = Field(
        None,
        description="Optional. The directory in which to run the command. Defaults to the workspace root.",
    )


class RunCommandTool(BaseTool):
    name: str = "run_command"
    description: str = (
        "Runs a terminal command and waits for the result (times out after"
        " inactivity). Do not edit files with this tool; use edit_file instead."
        " Pipe pager output (e.g. git diff) to cat. " + _OS_DESC
    )
    args_schema: type[BaseModel] | dict[str, Any] | None = RunCommandArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = RunCommandArgs(**kwargs)
        ws = self.workspace
        try:
            res = await ws.run_command(
                args.command, cwd=args.cwd, timeout=self._terminal_timeout
            )
        except (NotADirectoryError, FileNotFoundError) as e:
            return result_factory.error(
                self.name,
                code="invalid_cwd",
                message=str(e),
                error_type=type(e).__name__,
                details={"cwd": args.cwd, "platform": sys.platform},
            )

        output = res.output
        truncated = len(output) > MAX_TERMINAL_CHARS
        if truncated:
            # Keep the tail; the end of the output is where errors show up
            output = output[-MAX_TERMINAL_CHARS:]
        return RunCommandSuccess(
            command=res.command,
            cwd=res.cwd,
            exit_code=res.exit_code,
            output=output,
            truncated=truncated,
            timed_out=res.timed_out,
            duration_ms=res.duration_ms,
        ).model_dump()


@register_formatter_for(RunCommandTool)
def _format_run_command(args: dict[str, Any], result: dict[str, Any]) -> str:
    r = parse_tool_result(result, RunCommandSuccess)
    if isinstance(r, ToolError):
        return f"{args.get('command')}: {r.error}"
    header = f"$ {r.command}\n"
    body = r.output or "(no output)"
    if r.truncated:
        body = f"(output truncated to last {MAX_TERMINAL_CHARS} chars)\n{body}"
    if r.timed_out:
        footer = "\n(command timed out and was terminated)"
    else:
        footer = f"\n(exit code {r.exit_code})"
    return header + body + footer
