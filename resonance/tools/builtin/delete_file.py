from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from resonance.tools.core import result as result_factory
from resonance.tools.core.types import ToolError, parse_tool_result
from resonance.tools.registry import register_formatter_for

from ..base_tool import BaseTool


class DeleteFileSuccess(BaseModel):
    type: Literal["delete_file_result"] = "delete_file_result"
    uri: str
    was_folder: bool


class DeleteFileArgs(BaseModel):
    uri: str = Field(..., description="The FULL path to the file or folder.")
    is_recursive: bool = Field(
        False,
        description="Optional. Whether to delete a non-empty folder and its contents. Default is false.",
    )


class DeleteFileOrFolderTool(BaseTool):
    name: str = "delete_file_or_folder"
    description: str = "Delete a file or folder at the given path."
    args_schema: type[BaseModel] | dict[str, Any] | None = DeleteFileArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = DeleteFileArgs(**kwargs)
        ws = self.workspace
        path = ws.resolve(args.uri)
        if not path.exists():
            return result_factory.not_found(self.name, str(path), what="Path")

        was_folder = path.is_dir()
        try:
            ws.delete(args.uri, recursive=args.is_recursive)
        except OSError as e:
            return result_factory.error(
                self.name,
                code="delete_failed",
                message=(
                    f"Could not delete {path}: {e}. Set is_recursive to delete a"
                    " non-empty folder."
                    if was_folder and not args.is_recursive
                    else f"Could not delete {path}: {e}"
                ),
                error_type=type(e).__name__,
                details={"path": str(path)},
            )
        return DeleteFileSuccess(uri=str(path), was_folder=was_folder).model_dump()


@register_formatter_for(DeleteFileOrFolderTool)
def _format_delete(args: dict[str, Any], result: dict[str, Any]) -> str:
    r = parse_tool_result(result, DeleteFileSuccess)
    if isinstance(r, ToolError):
        return f"{args.get('uri')}: {r.error}"
    return f"URI {r.uri} successfully deleted."
