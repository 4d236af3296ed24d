"""Heuristic detection of tool calls the model described instead of emitting.

Some models answer "I'll run `npm test`" without producing a tool call. In
agent mode the detector turns such prose into a candidate call. Candidates
are always surfaced to the user as a tool request, never executed directly.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from resonance.config.constants import HEURISTIC_MIN_TEXT_LENGTH
from resonance.llm.types import ToolCallBuilder
from resonance.tools.names import BuiltinToolName, ChatMode
from resonance.utils.logger import agent_logger

_QUOTED_ARG = r"[`\"]?([^`\"\n]+)[`\"]?"


@dataclass(frozen=True)
class ToolCallPattern:
    pattern: re.Pattern[str]
    tool: BuiltinToolName
    extract: Callable[[re.Match[str]], dict[str, str]]


def _single(key: str) -> Callable[[re.Match[str]], dict[str, str]]:
    return lambda m: {key: m.group(1).strip()}


# First match wins; order matters
TOOL_CALL_PATTERNS: tuple[ToolCallPattern, ...] = (
    ToolCallPattern(
        re.compile(rf"(?:run|execute|start)\s+(?:the\s+command\s+)?{_QUOTED_ARG}", re.I),
        BuiltinToolName.RUN_COMMAND,
        _single("command"),
    ),
    ToolCallPattern(
        re.compile(
            rf"create\s+(?:a\s+)?(?:new\s+)?file\s+(?:called\s+|named\s+)?{_QUOTED_ARG}",
            re.I,
        ),
        BuiltinToolName.CREATE_FILE_OR_FOLDER,
        _single("uri"),
    ),
    # Editing starts by reading the file
    ToolCallPattern(
        re.compile(rf"edit\s+(?:the\s+)?file\s+{_QUOTED_ARG}", re.I),
        BuiltinToolName.READ_FILE,
        _single("uri"),
    ),
    ToolCallPattern(
        re.compile(rf"read\s+(?:the\s+)?file\s+{_QUOTED_ARG}", re.I),
        BuiltinToolName.READ_FILE,
        _single("uri"),
    ),
)


class ToolCallHeuristicDetector:
    def __init__(self, patterns: tuple[ToolCallPattern, ...] = TOOL_CALL_PATTERNS):
        self.patterns = patterns

    def detect(self, response_text: str, chat_mode: ChatMode) -> ToolCallBuilder | None:
        """Return a candidate call implied by ``response_text``, if any."""
        if chat_mode != ChatMode.AGENT:
            return None
        if len(response_text) < HEURISTIC_MIN_TEXT_LENGTH:
            return None

        for p in self.patterns:
            match = p.pattern.search(response_text)
            if not match:
                continue
            params = p.extract(match)
            if not all(params.values()):
                continue
            agent_logger.info(
                "Heuristic tool call detected",
                tool=p.tool.value,
                params=params,
                matched_text=match.group(0)[:200],
            )
            return ToolCallBuilder(
                name=p.tool.value,
                id=str(uuid.uuid4()),
                raw_params=params,
                done_keys=set(params),
                is_done=False,
            )

        agent_logger.debug("No heuristic tool call found")
        return None
