from __future__ import annotations

import fnmatch
import re
from typing import Any, Literal

from pydantic import BaseModel, Field

from resonance.config.constants import MAX_SEARCH_RESULTS_PAGE
from resonance.tools.core import result as result_factory
from resonance.tools.core.paging import page_slice
from resonance.tools.core.types import ToolError, parse_tool_result
from resonance.tools.registry import register_formatter_for

from ..base_tool import BaseTool


class SearchSuccess(BaseModel):
    type: Literal["search_result"] = "search_result"
    query: str
    uris: list[str]
    page_number: int = 1
    has_next_page: bool = False


class SearchPathnamesArgs(BaseModel):
    query: str = Field(..., description="Your query for the search.")
    include_pattern: str | None = Field(
        None,
        description="Optional. Only include files matching this glob pattern.",
    )
    page_number: int = Field(
        1, ge=1, description="Optional. The page number of the result. Default is 1."
    )


class SearchForFilesArgs(BaseModel):
    query: str = Field(..., description="Your query for the search.")
    search_in_folder: str | None = Field(
        None,
        description="Optional. Only search files in this folder.",
    )
    is_regex: bool = Field(
        False, description="Optional. Whether the query is a regex. Default is false."
    )
    page_number: int = Field(
        1, ge=1, description="Optional. The page number of the result. Default is 1."
    )


class SearchPathnamesOnlyTool(BaseTool):
    name: str = "search_pathnames_only"
    description: str = (
        "Returns all pathnames that match a given query (searches ONLY file names)."
    )
    args_schema: type[BaseModel] | dict[str, Any] | None = SearchPathnamesArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = SearchPathnamesArgs(**kwargs)
        ws = self.workspace
        needle = args.query.lower()
        matches: list[str] = []
        for path in ws.walk_files():
            rel = ws.relative(path)
            if needle not in rel.lower():
                continue
            if args.include_pattern and not (
                fnmatch.fnmatch(rel, args.include_pattern)
                or fnmatch.fnmatch(path.name, args.include_pattern)
            ):
                continue
            matches.append(rel)

        page, has_next = page_slice(matches, args.page_number, MAX_SEARCH_RESULTS_PAGE)
        return SearchSuccess(
            query=args.query,
            uris=page,
            page_number=args.page_number,
            has_next_page=has_next,
        ).model_dump()


class SearchForFilesTool(BaseTool):
    name: str = "search_for_files"
    description: str = "Returns a list of file names whose content matches the given query."
    args_schema: type[BaseModel] | dict[str, Any] | None = SearchForFilesArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = SearchForFilesArgs(**kwargs)
        ws = self.workspace

        if args.is_regex:
            try:
                regex = re.compile(args.query)
            except re.error as e:
                return result_factory.error(
                    self.name,
                    code="regex_error",
                    message=f"Invalid regex pattern: {args.query} - {e}",
                    error_type="RegexError",
                    details={"query": args.query},
                )
        else:
            regex = re.compile(re.escape(args.query), re.IGNORECASE)

        if args.search_in_folder and not ws.is_dir(args.search_in_folder):
            return result_factory.not_found(
                self.name, args.search_in_folder, what="Folder"
            )

        matches: list[str] = []
        for path in ws.walk_files(args.search_in_folder):
            try:
                content = path.read_text(encoding="utf-8", errors="ignore")
            except OSError:
                continue
            if regex.search(content):
                matches.append(ws.relative(path))

        page, has_next = page_slice(matches, args.page_number, MAX_SEARCH_RESULTS_PAGE)
        return SearchSuccess(
            query=args.query,
            uris=page,
            page_number=args.page_number,
            has_next_page=has_next,
        ).model_dump()


@register_formatter_for(SearchPathnamesOnlyTool, SearchForFilesTool)
def _format_search(args: dict[str, Any], result: dict[str, Any]) -> str:
    r = parse_tool_result(result, SearchSuccess)
    if isinstance(r, ToolError):
        return f"{args.get('query')}: {r.error}"
    if not r.uris:
        return f"No results for '{r.query}'."
    text = "\n".join(r.uris)
    if r.has_next_page:
        text += f"\nMore results: call again with page_number={r.page_number + 1}."
    return text
