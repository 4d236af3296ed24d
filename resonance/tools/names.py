"""Tool names, chat modes and approval policy.

Built-in tools form a closed enum; tools provided by external (MCP) servers
are wrapped in ``ExternalToolName`` so every dispatch on a tool name is an
exhaustive ``match`` over the two variants.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ChatMode(str, Enum):
    NORMAL = "normal"
    GATHER = "gather"
    AGENT = "agent"


class ToolFormat(str, Enum):
    XML = "xml"
    NATIVE = "native"


class ToolApprovalType(str, Enum):
    EDITS = "edits"
    TERMINAL = "terminal"
    MCP_TOOLS = "mcp_tools"


class BuiltinToolName(str, Enum):
    READ_FILE = "read_file"
    LS_DIR = "ls_dir"
    SEARCH_PATHNAMES_ONLY = "search_pathnames_only"
    SEARCH_FOR_FILES = "search_for_files"
    CREATE_FILE_OR_FOLDER = "create_file_or_folder"
    DELETE_FILE_OR_FOLDER = "delete_file_or_folder"
    EDIT_FILE = "edit_file"
    REWRITE_FILE = "rewrite_file"
    RUN_COMMAND = "run_command"


@dataclass(frozen=True)
class ExternalToolName:
    name: str
    server_name: str | None = None

    def __str__(self) -> str:
        return self.name


type ToolName = BuiltinToolName | ExternalToolName

EDIT_TOOLS = frozenset(
    {
        BuiltinToolName.CREATE_FILE_OR_FOLDER,
        BuiltinToolName.DELETE_FILE_OR_FOLDER,
        BuiltinToolName.EDIT_FILE,
        BuiltinToolName.REWRITE_FILE,
    }
)


def parse_tool_name(
    name: str, external: dict[str, ExternalToolName] | None = None
) -> ToolName | None:
    """Resolve a raw name to a built-in or registered external tool."""
    try:
        return BuiltinToolName(name)
    except ValueError:
        pass
    if external and name in external:
        return external[name]
    return None


def approval_type_of(tool: ToolName) -> ToolApprovalType | None:
    """Return the approval type gating ``tool``, or None if it never asks."""
    match tool:
        case ExternalToolName():
            return ToolApprovalType.MCP_TOOLS
        case BuiltinToolName.RUN_COMMAND:
            return ToolApprovalType.TERMINAL
        case BuiltinToolName() if tool in EDIT_TOOLS:
            return ToolApprovalType.EDITS
        case _:
            return None


def is_available_in_mode(tool: ToolName, mode: ChatMode) -> bool:
    """normal: nothing; gather: tools that never ask; agent: everything."""
    match mode:
        case ChatMode.NORMAL:
            return False
        case ChatMode.GATHER:
            return isinstance(tool, BuiltinToolName) and approval_type_of(tool) is None
        case ChatMode.AGENT:
            return True
