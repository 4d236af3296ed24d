from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from resonance.tools.core import result as result_factory
from resonance.tools.core.types import ToolError, parse_tool_result
from resonance.tools.registry import register_formatter_for

from ..base_tool import BaseTool


class RewriteFileSuccess(BaseModel):
    type: Literal["rewrite_file_result"] = "rewrite_file_result"
    uri: str
    chars: int


class RewriteFileArgs(BaseModel):
    uri: str = Field(..., description="The FULL path to the file.")
    new_content: str = Field(..., description="The new contents of the file.")


class RewriteFileTool(BaseTool):
    name: str = "rewrite_file"
    description: str = (
        "Edits a file, deleting all the old contents and replacing them with your"
        " new contents. Use this tool if you want to edit a file you just created."
    )
    args_schema: type[BaseModel] | dict[str, Any] | None = RewriteFileArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = RewriteFileArgs(**kwargs)
        ws = self.workspace
        path = ws.resolve(args.uri)
        if not path.exists():
            return result_factory.not_found(self.name, str(path))
        if path.is_dir():
            return result_factory.error(
                self.name,
                code="not_a_file",
                message=f"Path is a folder: {path}",
                error_type="IsADirectoryError",
                details={"path": str(path)},
            )

        ws.write_text(args.uri, args.new_content)
        return RewriteFileSuccess(uri=str(path), chars=len(args.new_content)).model_dump()


@register_formatter_for(RewriteFileTool)
def _format_rewrite_file(args: dict[str, Any], result: dict[str, Any]) -> str:
    r = parse_tool_result(result, RewriteFileSuccess)
    if isinstance(r, ToolError):
        return f"{args.get('uri')}: {r.error}"
    return f"Change successfully made to {r.uri}."
