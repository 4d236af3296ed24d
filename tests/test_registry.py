from __future__ import annotations

import pytest

from resonance.errors import ToolExecutionError, ToolNotFoundError, ToolParamsError
from resonance.tools.build_registry import build_registry
from resonance.tools.builtin.read_file import ReadFileTool
from resonance.tools.names import BuiltinToolName, ChatMode, ExternalToolName
from resonance.tools.registry import ExternalTool


async def _echo(params):
    return {"echo": params}


async def _failing(params):
    return {"type": "tool_error", "name": "broken", "code": "upstream", "error": "server down"}


@pytest.fixture
def weather(registry):
    tool = ExternalTool(
        name="weather",
        description="Weather for a city",
        handler=_echo,
        params={"city": "City name"},
        server_name="weather-server",
    )
    registry.register_external(tool)
    return tool


def test_all_builtin_tools_registered(registry):
    names = [t.name for t in registry.tool_infos(ChatMode.AGENT)]
    assert names == [n.value for n in BuiltinToolName]


def test_tool_infos_per_mode(registry, weather):
    assert registry.tool_infos(ChatMode.NORMAL) == []

    gather = {t.name for t in registry.tool_infos(ChatMode.GATHER)}
    assert gather == {"read_file", "ls_dir", "search_pathnames_only", "search_for_files"}

    agent = {t.name: t for t in registry.tool_infos(ChatMode.AGENT)}
    assert agent["weather"].mcp_server_name == "weather-server"
    assert agent["weather"].json_schema["properties"]["city"]["type"] == "string"


def test_param_descriptions_mark_optional(registry):
    info = next(t for t in registry.tool_infos(ChatMode.AGENT) if t.name == "read_file")
    assert info.params["uri"] == "The FULL path to the file."
    assert info.params["start_line"].startswith("Optional.")
    assert "uri" in info.json_schema["required"]


def test_include_and_exclude(workspace):
    only = build_registry(workspace, include={"read_file", "ls_dir"}, exclude={"ls_dir"})
    assert [t.name for t in only.tool_infos(ChatMode.AGENT)] == ["read_file"]


def test_resolve(registry, weather):
    assert registry.resolve("read_file") is BuiltinToolName.READ_FILE
    assert registry.resolve("weather") == ExternalToolName("weather", "weather-server")
    assert registry.resolve("nope") is None


def test_external_tool_cannot_shadow_builtin(registry):
    with pytest.raises(ValueError):
        registry.register_external(ExternalTool(name="read_file", description="", handler=_echo))


def test_validate_params_coerces_strings(registry):
    params = registry.validate_params(
        "read_file", {"uri": "a.txt", "start_line": "3", "end_line": ""}
    )
    assert params == {"uri": "a.txt", "start_line": 3, "end_line": None, "page_number": 1}

    params = registry.validate_params(
        "search_for_files", {"query": "x", "is_regex": "true"}
    )
    assert params["is_regex"] is True


def test_validate_params_errors(registry):
    with pytest.raises(ToolParamsError, match="uri"):
        registry.validate_params("read_file", {})
    with pytest.raises(ToolParamsError, match="start_line"):
        registry.validate_params("read_file", {"uri": "a", "start_line": "first"})
    with pytest.raises(ToolNotFoundError):
        registry.validate_params("teleport", {})


def test_validate_params_keeps_paths_inside_workspace(registry, workspace, tmp_path):
    inside = str(workspace.resolve("a.txt"))
    assert registry.validate_params("read_file", {"uri": inside})["uri"] == inside

    with pytest.raises(ToolParamsError, match="outside the workspace"):
        registry.validate_params("read_file", {"uri": "../secret.txt"})
    with pytest.raises(ToolParamsError, match="outside the workspace"):
        registry.validate_params("ls_dir", {"uri": str(tmp_path.parent)})
    with pytest.raises(ToolParamsError, match="search_in_folder"):
        registry.validate_params("search_for_files", {"query": "x", "search_in_folder": "/"})
    with pytest.raises(ToolParamsError, match="cwd"):
        registry.validate_params("run_command", {"command": "ls", "cwd": "../.."})


@pytest.mark.asyncio
async def test_call_external_tool(registry, weather):
    params = registry.validate_params("weather", {"city": "Oslo"})
    result = await registry.call_tool("weather", params)
    assert result == {"echo": {"city": "Oslo"}}
    assert '"city": "Oslo"' in registry.stringify_result("weather", params, result)


@pytest.mark.asyncio
async def test_error_envelope_raises(registry):
    registry.register_external(ExternalTool(name="broken", description="", handler=_failing))
    with pytest.raises(ToolExecutionError) as exc_info:
        await registry.call_tool("broken", {})
    assert exc_info.value.code == "upstream"
    assert str(exc_info.value) == "server down"


@pytest.mark.asyncio
async def test_builtin_error_raises(registry):
    with pytest.raises(ToolExecutionError) as exc_info:
        await registry.call_tool("read_file", {"uri": "missing.txt"})
    assert exc_info.value.code == "not_found"


def test_stringify_uses_formatter(registry, workspace):
    result = {
        "type": "create_file_result",
        "uri": str(workspace.resolve("a.txt")),
        "is_folder": False,
    }
    text = registry.stringify_result("create_file_or_folder", {"uri": "a.txt"}, result)
    assert text == f"File successfully created at {workspace.resolve('a.txt')}."
    assert registry.stringify_result("unknown", {}, "plain text") == "plain text"


def test_tool_without_args_schema_is_rejected(registry):
    registry.register(ReadFileTool(args_schema=None))

    with pytest.raises(TypeError, match="read_file"):
        registry.tool_infos(ChatMode.AGENT)
    with pytest.raises(TypeError, match="read_file"):
        registry.validate_params("read_file", {"uri": "a.txt"})
