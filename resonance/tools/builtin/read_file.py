from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from resonance.config.constants import MAX_FILE_CHARS_PAGE
from resonance.tools.core import result as result_factory
from resonance.tools.core.types import ToolError, parse_tool_result
from resonance.tools.registry import register_formatter_for

from ..base_tool import BaseTool


class ReadFileSuccess(BaseModel):
    type: Literal["read_file_result"] = "read_file_result"
    uri: str
    content: str
    total_lines: int
    total_chars: int
    page_number: int = 1
    has_next_page: bool = False


class ReadFileArgs(BaseModel):
    uri: str = Field(..., description="The FULL path to the file.")
    start_line: int | None = Field(
        None, ge=1, description="Optional. First line to read (1-based)."
    )
    end_line: int | None = Field(
        None, ge=1, description="Optional. Last line to read (inclusive)."
    )
    page_number: int = Field(
        1, ge=1, description="Optional. The page number of the result. Default is 1."
    )


class ReadFileTool(BaseTool):
    name: str = "read_file"
    description: str = (
        "Returns full contents of a given file. Use start_line/end_line to read"
        " part of a large file."
    )
    args_schema: type[BaseModel] | dict[str, Any] | None = ReadFileArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = ReadFileArgs(**kwargs)
        ws = self.workspace
        path = ws.resolve(args.uri)

        if not path.exists():
            return result_factory.not_found(self.name, str(path))
        if not path.is_file():
            return result_factory.error(
                self.name,
                code="not_a_file",
                message=f"Path is not a file: {path}",
                error_type="NotAFileError",
                details={"path": str(path)},
            )

        try:
            text = ws.read_text(args.uri)
        except UnicodeDecodeError:
            return result_factory.error(
                self.name,
                code="decode_error",
                message=f"File is not a valid UTF-8 text file: {path}",
                error_type="UnicodeDecodeError",
                details={"path": str(path)},
            )
        except PermissionError:
            return result_factory.error(
                self.name,
                code="permission_denied",
                message=f"Permission denied reading file: {path}",
                error_type="PermissionError",
                details={"path": str(path)},
            )

        lines = text.splitlines(keepends=True)
        if args.start_line is not None or args.end_line is not None:
            start = (args.start_line or 1) - 1
            end = args.end_line or len(lines)
            text = "".join(lines[start:end])

        offset = (args.page_number - 1) * MAX_FILE_CHARS_PAGE
        page = text[offset : offset + MAX_FILE_CHARS_PAGE]
        return ReadFileSuccess(
            uri=str(path),
            content=page,
            total_lines=len(lines),
            total_chars=len(text),
            page_number=args.page_number,
            has_next_page=len(text) > offset + MAX_FILE_CHARS_PAGE,
        ).model_dump()


@register_formatter_for(ReadFileTool)
def _format_read_file(args: dict[str, Any], result: dict[str, Any]) -> str:
    r = parse_tool_result(result, ReadFileSuccess)
    if isinstance(r, ToolError):
        return f"{args.get('uri')}: {r.error}"
    text = f"{r.uri}\n```\n{r.content}\n```"
    if r.has_next_page:
        text += (
            f"\nMore content is available. Call read_file again with"
            f" page_number={r.page_number + 1}."
        )
    return text
