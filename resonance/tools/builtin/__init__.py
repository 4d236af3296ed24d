"""Builtin tool package.

Static export of tool classes; the order is the order tools are offered to
the model.
"""

from __future__ import annotations

from resonance.tools.builtin.create_file import CreateFileOrFolderTool
from resonance.tools.builtin.delete_file import DeleteFileOrFolderTool
from resonance.tools.builtin.edit_file import EditFileTool
from resonance.tools.builtin.ls_dir import LsDirTool
from resonance.tools.builtin.read_file import ReadFileTool
from resonance.tools.builtin.rewrite_file import RewriteFileTool
from resonance.tools.builtin.run_command import RunCommandTool
from resonance.tools.builtin.search_files import (
    SearchForFilesTool,
    SearchPathnamesOnlyTool,
)

TOOL_CLASSES = [
    ReadFileTool,
    LsDirTool,
    SearchPathnamesOnlyTool,
    SearchForFilesTool,
    CreateFileOrFolderTool,
    DeleteFileOrFolderTool,
    EditFileTool,
    RewriteFileTool,
    RunCommandTool,
]

__all__ = [
    "TOOL_CLASSES",
    "CreateFileOrFolderTool",
    "DeleteFileOrFolderTool",
    "EditFileTool",
    "LsDirTool",
    "ReadFileTool",
    "RewriteFileTool",
    "RunCommandTool",
    "SearchForFilesTool",
    "SearchPathnamesOnlyTool",
]
