from __future__ import annotations

import pytest

pytestmark = pytest.mark.asyncio


async def _run(registry, name, **kwargs):
    return await registry.get(name).arun(kwargs)


@pytest.fixture
def tree(workspace):
    workspace.write_text("src/app.py", "def main():\n    return 'Hello'\n")
    workspace.write_text("src/util.py", "HELPER = 1\n")
    workspace.write_text("docs/app.md", "# App\nhello world\n")
    workspace.write_text("node_modules/pkg/app.js", "hello")
    return workspace


async def test_search_pathnames_only(registry, tree):
    res = await _run(registry, "search_pathnames_only", query="app")
    assert res["type"] == "search_result"
    assert res["uris"] == ["docs/app.md", "src/app.py"]

    res = await _run(registry, "search_pathnames_only", query="app", include_pattern="*.py")
    assert res["uris"] == ["src/app.py"]


async def test_search_for_files_by_content(registry, tree):
    res = await _run(registry, "search_for_files", query="hello")
    assert res["uris"] == ["docs/app.md", "src/app.py"]

    res = await _run(registry, "search_for_files", query="hello", search_in_folder="docs")
    assert res["uris"] == ["docs/app.md"]


async def test_search_for_files_regex(registry, tree):
    res = await _run(registry, "search_for_files", query=r"^HELPER\s*=", is_regex=True)
    assert res["uris"] == ["src/util.py"]

    res = await _run(registry, "search_for_files", query="(", is_regex=True)
    assert res["type"] == "tool_error"
    assert res["code"] == "regex_error"


async def test_search_missing_folder(registry, tree):
    res = await _run(registry, "search_for_files", query="x", search_in_folder="nowhere")
    assert res["code"] == "not_found"


async def test_no_results_formatting(registry, tree):
    res = await _run(registry, "search_pathnames_only", query="zzz")
    assert registry.stringify_result("search_pathnames_only", {"query": "zzz"}, res) == (
        "No results for 'zzz'."
    )
