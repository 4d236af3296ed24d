from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, Field

from resonance.tools.core import result as result_factory
from resonance.tools.core.types import ToolError, parse_tool_result
from resonance.tools.registry import register_formatter_for
from resonance.utils.logger import tool_logger

from ..base_tool import BaseTool

ORIGINAL = "<<<<<<< ORIGINAL"
DIVIDER = "======="
FINAL = ">>>>>>> UPDATED"

_SEARCH_REPLACE_TEMPLATE = f"""\
{ORIGINAL}
// ... original code goes here
{DIVIDER}
// ... final code goes here
{FINAL}"""


class SearchReplaceError(ValueError):
    pass


class EditFileSuccess(BaseModel):
    type: Literal["edit_file_result"] = "edit_file_result"
    uri: str
    blocks_applied: int


class EditFileArgs(BaseModel):
    uri: str = Field(..., description="The FULL path to the file.")
    search_replace_blocks: str = Field(
        ...,
        description=(
            "A string of SEARCH/REPLACE block(s) which will be applied to the given"
            f" file, formatted as:\n{_SEARCH_REPLACE_TEMPLATE}\nThe ORIGINAL code"
            " must EXACTLY match lines in the file and identify a unique location."
            " Blocks must not overlap."
        ),
    )


_start_re = re.compile(r"^<{7}\s*ORIGINAL\s*$")
_middle_re = re.compile(r"^={7}\s*$")
_end_re = re.compile(r"^>{7}\s*UPDATED\s*$")


def parse_search_replace_blocks(text: str) -> list[tuple[str, str]]:
    """Split ORIGINAL/UPDATED marker text into ``(original, updated)`` pairs."""
    blocks: list[tuple[str, str]] = []
    state = "idle"
    search_buf: list[str] = []
    replace_buf: list[str] = []

    for line in text.splitlines():
        if _start_re.match(line):
            if state != "idle":
                raise SearchReplaceError("Found ORIGINAL marker inside an open block")
            state = "search"
            search_buf, replace_buf = [], []
            continue
        if _middle_re.match(line) and state == "search":
            state = "replace"
            continue
        if _end_re.match(line):
            if state != "replace":
                raise SearchReplaceError(f"Found {FINAL} without a matching {DIVIDER}")
            blocks.append(("\n".join(search_buf), "\n".join(replace_buf)))
            state = "idle"
            continue

        if state == "search":
            search_buf.append(line)
        elif state == "replace":
            replace_buf.append(line)

    if state != "idle":
        raise SearchReplaceError(f"Unterminated block; every block must end with {FINAL}")
    if not blocks:
        raise SearchReplaceError(
            f"No SEARCH/REPLACE blocks found. Expected the format:\n{_SEARCH_REPLACE_TEMPLATE}"
        )
    return blocks


def apply_search_replace_blocks(original: str, blocks: list[tuple[str, str]]) -> str:
    """Apply blocks to ``original``; each ORIGINAL must occur exactly once."""
    replacements: list[tuple[int, int, str]] = []
    for search, replace in blocks:
        if not search:
            raise SearchReplaceError("ORIGINAL block is empty; use rewrite_file instead")
        count = original.count(search)
        preview = search[:100] + "..." if len(search) > 100 else search
        if count == 0:
            raise SearchReplaceError(
                f"The ORIGINAL block does not match anything in the file:\n```\n{preview}\n```"
            )
        if count > 1:
            raise SearchReplaceError(
                f"The ORIGINAL block matches {count} locations; add surrounding lines"
                f" to make it unique:\n```\n{preview}\n```"
            )
        start = original.index(search)
        replacements.append((start, start + len(search), replace))

    replacements.sort(key=lambda r: r[0])
    out: list[str] = []
    pos = 0
    for start, end, content in replacements:
        if start < pos:
            raise SearchReplaceError("ORIGINAL blocks overlap; they must be disjoint")
        out.append(original[pos:start])
        out.append(content)
        pos = end
    out.append(original[pos:])
    return "".join(out)


class EditFileTool(BaseTool):
    name: str = "edit_file"
    description: str = (
        "Edit the contents of a file by applying SEARCH/REPLACE blocks."
        " Read the file first so ORIGINAL text matches exactly."
    )
    args_schema: type[BaseModel] | dict[str, Any] | None = EditFileArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = EditFileArgs(**kwargs)
        ws = self.workspace
        path = ws.resolve(args.uri)
        if not path.is_file():
            return result_factory.not_found(self.name, str(path))

        try:
            blocks = parse_search_replace_blocks(args.search_replace_blocks)
            updated = apply_search_replace_blocks(ws.read_text(args.uri), blocks)
        except SearchReplaceError as e:
            return result_factory.error(
                self.name,
                code="search_replace_failed",
                message=str(e),
                error_type=type(e).__name__,
                details={"path": str(path)},
            )

        ws.write_text(args.uri, updated)
        tool_logger.debug("edit_file applied", path=str(path), blocks=len(blocks))
        return EditFileSuccess(uri=str(path), blocks_applied=len(blocks)).model_dump()


@register_formatter_for(EditFileTool)
def _format_edit_file(args: dict[str, Any], result: dict[str, Any]) -> str:
    r = parse_tool_result(result, EditFileSuccess)
    if isinstance(r, ToolError):
        return f"{args.get('uri')}: {r.error}"
    return f"Change successfully made to {r.uri} ({r.blocks_applied} block(s) applied)."
