"""Incremental parser for XML-formatted tool calls in a text stream.

The model writes ordinary prose and may finish its reply with one call::

    <read_file>
    <uri>src/app.py</uri>
    </read_file>

``XMLToolCallParser.feed`` splits each text chunk into display text and
``ToolCallFragment``s. Text that might be the start of a tag is held back
until the next chunk disambiguates it.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from enum import Enum

from resonance.llm.types import LLMDelta, ToolCallFragment, ToolInfo


class _State(Enum):
    TEXT = "text"
    TOOL = "tool"
    PARAM = "param"
    DONE = "done"


def _held_suffix(buffer: str, candidates: Iterable[str]) -> int:
    """Length of the longest suffix of ``buffer`` that prefixes a candidate."""
    best = 0
    for cand in candidates:
        for size in range(min(len(cand) - 1, len(buffer)), best, -1):
            if cand.startswith(buffer[-size:]):
                best = size
                break
    return best


class XMLToolCallParser:
    def __init__(self, tool_names: Iterable[str]):
        self._open_tags = {f"<{name}>": name for name in tool_names}
        self._state = _State.TEXT
        self._buffer = ""
        self._tool: str | None = None
        self._param: str | None = None
        self._call_id = str(uuid.uuid4())

    @property
    def in_tool_call(self) -> bool:
        return self._state in (_State.TOOL, _State.PARAM)

    def feed(self, chunk: str) -> list[LLMDelta]:
        self._buffer += chunk
        out: list[LLMDelta] = []
        progressed = True
        while progressed and self._buffer:
            match self._state:
                case _State.TEXT:
                    progressed = self._consume_text(out)
                case _State.TOOL:
                    progressed = self._consume_tool(out)
                case _State.PARAM:
                    progressed = self._consume_param(out)
                case _State.DONE:
                    # Only the first call counts; trailing output is dropped
                    self._buffer = ""
                    progressed = False
        return out

    def finish(self) -> list[LLMDelta]:
        """Flush held text and close a call the model left unterminated."""
        out: list[LLMDelta] = []
        match self._state:
            case _State.TEXT:
                if self._buffer:
                    out.append(LLMDelta(display_content_delta=self._buffer))
            case _State.PARAM:
                out.append(
                    LLMDelta(
                        tool_call_fragment=ToolCallFragment(
                            param=self._param,
                            value_delta=self._buffer,
                            param_done=True,
                        )
                    )
                )
                out.append(LLMDelta(tool_call_fragment=ToolCallFragment(call_done=True)))
            case _State.TOOL:
                out.append(LLMDelta(tool_call_fragment=ToolCallFragment(call_done=True)))
            case _State.DONE:
                pass
        self._buffer = ""
        self._state = _State.DONE
        return out

    def _consume_text(self, out: list[LLMDelta]) -> bool:
        buf = self._buffer
        first: tuple[int, str] | None = None
        for tag in self._open_tags:
            idx = buf.find(tag)
            if idx != -1 and (first is None or idx < first[0]):
                first = (idx, tag)
        if first is not None:
            idx, tag = first
            if idx:
                out.append(LLMDelta(display_content_delta=buf[:idx]))
            self._tool = self._open_tags[tag]
            self._buffer = buf[idx + len(tag) :]
            self._state = _State.TOOL
            out.append(
                LLMDelta(
                    tool_call_fragment=ToolCallFragment(id=self._call_id, name=self._tool)
                )
            )
            return True
        hold = _held_suffix(buf, self._open_tags)
        emit = buf[: len(buf) - hold]
        if emit:
            out.append(LLMDelta(display_content_delta=emit))
        self._buffer = buf[len(buf) - hold :]
        return False

    def _consume_tool(self, out: list[LLMDelta]) -> bool:
        buf = self._buffer.lstrip()
        self._buffer = buf
        close = f"</{self._tool}>"
        if buf.startswith(close):
            self._buffer = buf[len(close) :]
            self._state = _State.DONE
            out.append(LLMDelta(tool_call_fragment=ToolCallFragment(call_done=True)))
            return True
        if not buf.startswith("<"):
            if buf:
                # Stray text between parameters is ignored
                nxt = buf.find("<")
                self._buffer = buf[nxt:] if nxt != -1 else ""
                return nxt != -1
            return False
        end = buf.find(">")
        if end == -1:
            return False
        name = buf[1:end]
        self._buffer = buf[end + 1 :]
        if not name or name.startswith("/"):
            return True
        self._param = name
        self._state = _State.PARAM
        out.append(LLMDelta(tool_call_fragment=ToolCallFragment(param=name)))
        return True

    def _consume_param(self, out: list[LLMDelta]) -> bool:
        close = f"</{self._param}>"
        buf = self._buffer
        idx = buf.find(close)
        if idx != -1:
            out.append(
                LLMDelta(
                    tool_call_fragment=ToolCallFragment(
                        param=self._param, value_delta=buf[:idx], param_done=True
                    )
                )
            )
            self._buffer = buf[idx + len(close) :]
            self._param = None
            self._state = _State.TOOL
            return True
        hold = _held_suffix(buf, [close])
        emit = buf[: len(buf) - hold]
        if emit:
            out.append(
                LLMDelta(
                    tool_call_fragment=ToolCallFragment(
                        param=self._param, value_delta=emit
                    )
                )
            )
        self._buffer = buf[len(buf) - hold :]
        return False


def strip_param_value(value: str) -> str:
    """Values usually sit on their own line; drop the surrounding newlines."""
    if value.startswith("\n"):
        value = value[1:]
    if value.endswith("\n"):
        value = value[:-1]
    return value


def render_tool_call(name: str, params: dict[str, str]) -> str:
    """Render a call in the same shape the model is asked to write."""
    inner = "".join(f"\n<{key}>{value}</{key}>" for key, value in params.items())
    return f"<{name}>{inner}\n</{name}>"


def tool_definitions_xml(tools: Iterable[ToolInfo]) -> str:
    """Describe tools for the system prompt in the XML calling convention."""
    blocks = [
        f"{idx}. {tool.name}\n"
        f"Description: {tool.description}\n"
        f"Format:\n{render_tool_call(tool.name, tool.params)}"
        for idx, tool in enumerate(tools, start=1)
    ]
    return "\n\n".join(blocks)
