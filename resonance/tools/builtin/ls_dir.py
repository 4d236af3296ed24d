from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from resonance.config.constants import MAX_CHILDREN_URIS_PAGE
from resonance.tools.core import result as result_factory
from resonance.tools.core.paging import page_slice
from resonance.tools.core.types import ToolError, parse_tool_result
from resonance.tools.registry import register_formatter_for

from ..base_tool import BaseTool


class DirEntry(BaseModel):
    name: str
    is_dir: bool


class LsDirSuccess(BaseModel):
    type: Literal["ls_dir_result"] = "ls_dir_result"
    uri: str
    children: list[DirEntry]
    page_number: int = 1
    has_next_page: bool = False
    total: int = 0


class LsDirArgs(BaseModel):
    uri: str | None = Field(
        None,
        description="Optional. The FULL path to the folder. Defaults to the workspace root.",
    )
    page_number: int = Field(
        1, ge=1, description="Optional. The page number of the result. Default is 1."
    )


class LsDirTool(BaseTool):
    name: str = "ls_dir"
    description: str = "Lists all files and folders in the given folder."
    args_schema: type[BaseModel] | dict[str, Any] | None = LsDirArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = LsDirArgs(**kwargs)
        ws = self.workspace
        uri = args.uri or str(ws.root)
        path = ws.resolve(uri)

        if not path.exists():
            return result_factory.not_found(self.name, str(path), what="Folder")
        if not path.is_dir():
            return result_factory.error(
                self.name,
                code="not_a_directory",
                message=f"Path is not a directory: {path}",
                error_type="NotADirectoryError",
                details={"path": str(path)},
            )

        try:
            entries = ws.list_dir(uri)
        except PermissionError:
            return result_factory.error(
                self.name,
                code="permission_denied",
                message=f"Permission denied accessing directory: {path}",
                error_type="PermissionError",
                details={"path": str(path)},
            )

        page, has_next = page_slice(entries, args.page_number, MAX_CHILDREN_URIS_PAGE)
        return LsDirSuccess(
            uri=str(path),
            children=[DirEntry(name=name, is_dir=is_dir) for name, is_dir in page],
            page_number=args.page_number,
            has_next_page=has_next,
            total=len(entries),
        ).model_dump()


@register_formatter_for(LsDirTool)
def _format_ls_dir(args: dict[str, Any], result: dict[str, Any]) -> str:
    r = parse_tool_result(result, LsDirSuccess)
    if isinstance(r, ToolError):
        return f"{args.get('uri')}: {r.error}"
    if not r.children:
        return f"{r.uri} is empty."
    lines = [f"{c.name}/" if c.is_dir else c.name for c in r.children]
    text = f"{r.uri}\n" + "\n".join(lines)
    if r.has_next_page:
        text += f"\n({r.total} entries, call again with page_number={r.page_number + 1})"
    return text
