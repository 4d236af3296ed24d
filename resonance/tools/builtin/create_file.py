from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from resonance.tools.core import result as result_factory
from resonance.tools.core.types import ToolError, parse_tool_result
from resonance.tools.registry import register_formatter_for

from ..base_tool import BaseTool


class CreateFileSuccess(BaseModel):
    type: Literal["create_file_result"] = "create_file_result"
    uri: str
    is_folder: bool


class CreateFileArgs(BaseModel):
    uri: str = Field(
        ...,
        description="The FULL path to the file or folder. End with a trailing slash to create a folder.",
    )


class CreateFileOrFolderTool(BaseTool):
    name: str = "create_file_or_folder"
    description: str = (
        "Create a file or folder at the given path. To create a folder, the path"
        " MUST end with a trailing slash."
    )
    args_schema: type[BaseModel] | dict[str, Any] | None = CreateFileArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = CreateFileArgs(**kwargs)
        ws = self.workspace
        is_folder = args.uri.endswith(("/", "\\"))
        path = ws.resolve(args.uri)

        if path.exists():
            return result_factory.error(
                self.name,
                code="already_exists",
                message=f"Path already exists: {path}",
                error_type="FileExistsError",
                details={"path": str(path)},
            )

        if is_folder:
            ws.create_folder(args.uri)
        else:
            ws.write_text(args.uri, "")
        return CreateFileSuccess(uri=str(path), is_folder=is_folder).model_dump()


@register_formatter_for(CreateFileOrFolderTool)
def _format_create(args: dict[str, Any], result: dict[str, Any]) -> str:
    r = parse_tool_result(result, CreateFileSuccess)
    if isinstance(r, ToolError):
        return f"{args.get('uri')}: {r.error}"
    kind = "Folder" if r.is_folder else "File"
    return f"{kind} successfully created at {r.uri}."
