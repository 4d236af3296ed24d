"""Workspace accessor: the file system and terminal capabilities tools use.

Hosts embedding the core may provide their own ``WorkspaceAccessor``; the
``LocalWorkspace`` implementation works directly on a directory tree.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from resonance.utils.logger import tool_logger

# Directories never worth walking into when searching
IGNORED_DIRS = frozenset(
    {".git", "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache", ".pytest_cache"}
)


@dataclass(frozen=True)
class CommandResult:
    command: str
    cwd: str
    exit_code: int | None
    output: str
    timed_out: bool
    duration_ms: int


class WorkspaceAccessor(ABC):
    """File system and terminal access rooted at a workspace folder."""

    @property
    @abstractmethod
    def root(self) -> Path: ...

    def resolve(self, uri: str) -> Path:
        """Resolve ``uri`` against the workspace root."""
        path = Path(uri).expanduser()
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()

    def contains(self, uri: str) -> bool:
        """Whether ``uri`` resolves to the root or a path below it."""
        return self.resolve(uri).is_relative_to(self.root.resolve())

    def relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    @abstractmethod
    def exists(self, uri: str) -> bool: ...

    @abstractmethod
    def is_dir(self, uri: str) -> bool: ...

    @abstractmethod
    def read_text(self, uri: str) -> str: ...

    @abstractmethod
    def write_text(self, uri: str, content: str) -> None: ...

    @abstractmethod
    def create_folder(self, uri: str) -> None: ...

    @abstractmethod
    def delete(self, uri: str, *, recursive: bool = False) -> None: ...

    @abstractmethod
    def list_dir(self, uri: str) -> list[tuple[str, bool]]:
        """Return ``(name, is_dir)`` children sorted by name."""

    @abstractmethod
    def walk_files(self, uri: str | None = None) -> Iterator[Path]:
        """Yield every file below ``uri`` (default: the root)."""

    @abstractmethod
    async def run_command(
        self, command: str, *, cwd: str | None = None, timeout: float = 30.0
    ) -> CommandResult: ...

    def snapshot(self, uri: str) -> str | None:
        """Current text of a file, or None when it does not exist."""
        if not self.exists(uri) or self.is_dir(uri):
            return None
        try:
            return self.read_text(uri)
        except (UnicodeDecodeError, OSError):
            return None

    def restore(self, uri: str, content: str | None) -> None:
        """Bring a file back to a snapshot taken by ``snapshot``."""
        if content is None:
            if self.exists(uri) and not self.is_dir(uri):
                self.delete(uri)
            return
        self.write_text(uri, content)


class LocalWorkspace(WorkspaceAccessor):
    def __init__(self, root: str | Path):
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def exists(self, uri: str) -> bool:
        return self.resolve(uri).exists()

    def is_dir(self, uri: str) -> bool:
        return self.resolve(uri).is_dir()

    def read_text(self, uri: str) -> str:
        return self.resolve(uri).read_text(encoding="utf-8")

    def write_text(self, uri: str, content: str) -> None:
        path = self.resolve(uri)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def create_folder(self, uri: str) -> None:
        self.resolve(uri).mkdir(parents=True, exist_ok=True)

    def delete(self, uri: str, *, recursive: bool = False) -> None:
        path = self.resolve(uri)
        if path.is_dir():
            if recursive:
                shutil.rmtree(path)
            else:
                path.rmdir()
        else:
            path.unlink()

    def list_dir(self, uri: str) -> list[tuple[str, bool]]:
        path = self.resolve(uri)
        return sorted((child.name, child.is_dir()) for child in path.iterdir())

    def walk_files(self, uri: str | None = None) -> Iterator[Path]:
        base = self.resolve(uri) if uri else self._root
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
            for name in sorted(filenames):
                yield Path(dirpath) / name

    async def run_command(
        self, command: str, *, cwd: str | None = None, timeout: float = 30.0
    ) -> CommandResult:
        cwd_path = self.resolve(cwd) if cwd else self._root
        if not cwd_path.is_dir():
            raise NotADirectoryError(f"Working directory not found: {cwd_path}")

        start = time.perf_counter()
        proc = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=str(cwd_path),
        )
        tool_logger.debug("run_command started", command=command, pid=proc.pid)
        timed_out = False
        try:
            out_b, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            timed_out = True
            proc.kill()
            out_b, _ = await proc.communicate()
        except asyncio.CancelledError:
            # Aborted by the user: do not leave the process running
            proc.kill()
            await proc.wait()
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        tool_logger.debug(
            "run_command done",
            exit_code=proc.returncode,
            timed_out=timed_out,
            duration_ms=duration_ms,
        )
        return CommandResult(
            command=command,
            cwd=str(cwd_path),
            exit_code=None if timed_out else proc.returncode,
            output=out_b.decode("utf-8", errors="replace"),
            timed_out=timed_out,
            duration_ms=duration_ms,
        )
