"""Convert thread messages to the LangChain messages sent to the model."""

from __future__ import annotations

from collections.abc import Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.messages import ToolMessage as LCToolMessage

from resonance.chat.types import (
    AssistantMessage,
    ChatMessage,
    ToolMessage,
    UserMessage,
)
from resonance.llm.xml_tools import render_tool_call
from resonance.tools.names import ToolFormat


def _user_content(message: UserMessage) -> str | list[str | dict]:
    if not message.images:
        return message.content
    blocks: list[str | dict] = [{"type": "text", "text": message.content}]
    blocks.extend({"type": "image_url", "image_url": {"url": url}} for url in message.images)
    return blocks


def _xml_result(message: ToolMessage) -> str:
    return f"{message.name} result ({message.type.value}):\n{message.content}"


def build_conversation(
    messages: Sequence[ChatMessage], tool_format: ToolFormat
) -> list[BaseMessage]:
    """LangChain messages for the visible part of a thread.

    A tool call is attached to the assistant reply that produced it, so the
    model sees its own text and call as one turn. Pending and interrupted
    tool calls and checkpoint markers are not sent.
    """
    out: list[BaseMessage] = []
    # AI message of the current reply, still open for a tool call
    open_reply: AIMessage | None = None

    for message in messages:
        match message:
            case UserMessage():
                out.append(HumanMessage(content=_user_content(message)))
                open_reply = None
            case AssistantMessage():
                if not message.display_content:
                    continue
                open_reply = AIMessage(content=message.display_content)
                out.append(open_reply)
            case ToolMessage() if message.type.is_terminal:
                if tool_format == ToolFormat.XML:
                    call = render_tool_call(message.name, message.raw_params)
                    if open_reply is not None and isinstance(open_reply.content, str):
                        out[-1] = AIMessage(content=f"{open_reply.content}\n\n{call}")
                    else:
                        out.append(AIMessage(content=call))
                    out.append(HumanMessage(content=_xml_result(message)))
                else:
                    tool_call = {
                        "name": message.name,
                        "args": message.params if message.params is not None else dict(message.raw_params),
                        "id": message.id,
                    }
                    content = open_reply.content if open_reply is not None else ""
                    ai = AIMessage(content=content, tool_calls=[tool_call])
                    if open_reply is not None:
                        out[-1] = ai
                    else:
                        out.append(ai)
                    out.append(LCToolMessage(content=message.content, tool_call_id=message.id))
                open_reply = None
            case _:
                continue
    return out
