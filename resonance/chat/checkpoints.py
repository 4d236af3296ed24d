"""Checkpoint bookkeeping: which files a thread touched and how to roll back.

A thread tracks every workspace file an edit tool has touched. Each checkpoint
entry stores snapshots of some of those files; the state of a path at
checkpoint ``c`` is its latest snapshot at or before ``c``.
"""

from __future__ import annotations

from resonance.chat.types import ChatThread, CheckpointEntry
from resonance.utils.logger import agent_logger
from resonance.workspace import WorkspaceAccessor


def last_checkpoint_at_or_before(thread: ChatThread, message_idx: int) -> int | None:
    for i in range(min(message_idx, len(thread.messages) - 1), -1, -1):
        if isinstance(thread.messages[i], CheckpointEntry):
            return i
    return None


def end_of_checkpoint_run(thread: ChatThread, idx: int) -> int:
    """Last index of the run of consecutive checkpoints starting at ``idx``."""
    end = idx
    while end + 1 < len(thread.messages) and isinstance(
        thread.messages[end + 1], CheckpointEntry
    ):
        end += 1
    return end


def tracked_paths(thread: ChatThread) -> set[str]:
    paths: set[str] = set()
    for m in thread.messages:
        if isinstance(m, CheckpointEntry):
            paths.update(m.snapshots)
    return paths


class CheckpointTracker:
    """Snapshots and restores workspace files for one thread at a time."""

    def __init__(self, workspace: WorkspaceAccessor | None):
        self.workspace = workspace

    def _key(self, uri: str) -> str:
        if self.workspace is None:
            return uri
        return self.workspace.relative(self.workspace.resolve(uri))

    def paths_for(self, uri: str) -> list[str]:
        """Files an edit of ``uri`` may touch; a folder stands for its files."""
        if self.workspace is None:
            return []
        if self.workspace.is_dir(uri):
            return [self.workspace.relative(p) for p in self.workspace.walk_files(uri)]
        return [self._key(uri)]

    def _snapshot(self, paths: set[str] | list[str]) -> dict[str, str | None]:
        if self.workspace is None:
            return {}
        return {p: self.workspace.snapshot(p) for p in sorted(paths)}

    def add_user_checkpoint(self, thread: ChatThread) -> int:
        entry = CheckpointEntry(kind="user", snapshots=self._snapshot(tracked_paths(thread)))
        thread.messages.append(entry)
        return len(thread.messages) - 1

    def before_edit(self, thread: ChatThread, paths: list[str]) -> None:
        """Record the pre-edit content of paths the thread has never tracked.

        The content goes into the latest checkpoint, which describes the state
        right before this edit.
        """
        known = tracked_paths(thread)
        new = [p for p in paths if p not in known]
        if not new:
            return
        idx = last_checkpoint_at_or_before(thread, len(thread.messages) - 1)
        if idx is None:
            return
        entry = thread.messages[idx]
        if not isinstance(entry, CheckpointEntry):
            raise TypeError(f"Message {idx} is not a checkpoint")
        thread.messages[idx] = entry.model_copy(
            update={"snapshots": {**entry.snapshots, **self._snapshot(new)}}
        )

    def after_edit(self, thread: ChatThread, paths: list[str]) -> int:
        entry = CheckpointEntry(kind="tool_edit", snapshots=self._snapshot(paths))
        thread.messages.append(entry)
        return len(thread.messages) - 1

    def restore(self, thread: ChatThread, checkpoint_idx: int) -> None:
        """Write every tracked file back to its state at ``checkpoint_idx``."""
        if self.workspace is None:
            return
        entries = [
            (i, m) for i, m in enumerate(thread.messages) if isinstance(m, CheckpointEntry)
        ]
        for path in sorted(tracked_paths(thread)):
            before = [m for i, m in entries if i <= checkpoint_idx and path in m.snapshots]
            if before:
                content = before[-1].snapshots[path]
            else:
                # Touched only later: its first snapshot is its earlier state
                after = [m for i, m in entries if i > checkpoint_idx and path in m.snapshots]
                content = after[0].snapshots[path]
            try:
                self.workspace.restore(path, content)
            except OSError as e:
                agent_logger.warning("Could not restore file", path=path, error=str(e))
