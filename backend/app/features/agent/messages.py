"""
Agent feature: chat request models and conversion to LangChain messages.

Clients send UI-style messages whose content is either a string, a list of
parts, or a `parts` array of typed blocks; all of them are flattened to text.
"""

import logging
from typing import Any, Literal

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system", "tool"]
    content: str | list[Any] | None = None
    parts: list[dict[str, Any]] | None = None
    tool_calls: list[dict[str, Any]] | None = None  # assistant: [{id, name, args}]
    tool_call_id: str | None = None  # tool: id of the call answered


class ClientToolSpec(BaseModel):
    """Tool declared by the client; executed client-side, never by the server."""
    description: str | None = None
    parameters: dict[str, Any] = {"type": "object", "properties": {}}


class ChatRequest(BaseModel):
    messages: list[ChatMessage]
    system: str | None = None
    tools: dict[str, ClientToolSpec] | None = None


def message_text(message: ChatMessage) -> str:
    """Flatten a message's content to plain text."""
    if isinstance(message.content, str):
        return message.content

    if isinstance(message.content, list):
        texts = []
        for part in message.content:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict) and "text" in part:
                texts.append(str(part.get("text") or ""))
        return " ".join(texts).strip()

    if message.parts:
        return " ".join(
            str(p.get("text") or "") for p in message.parts if p.get("type") == "text"
        ).strip()

    return ""


def extract_latest_user_text(messages: list[ChatMessage]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message_text(message)
    return ""


def to_langchain_messages(messages: list[ChatMessage]) -> list[BaseMessage]:
    """Convert the client history, oldest first."""
    converted: list[BaseMessage] = []
    for message in messages:
        text = message_text(message)
        match message.role:
            case "user":
                converted.append(HumanMessage(content=text))
            case "assistant":
                converted.append(AIMessage(content=text, tool_calls=[
                    {"id": tc.get("id"), "name": tc["name"], "args": tc.get("args") or {}}
                    for tc in (message.tool_calls or [])
                ]))
            case "system":
                converted.append(SystemMessage(content=text))
            case "tool":
                if not message.tool_call_id:
                    logger.warning("Dropping tool message without tool_call_id")
                    continue
                converted.append(ToolMessage(content=text, tool_call_id=message.tool_call_id))
    return converted


def client_tool_definitions(tools: dict[str, ClientToolSpec] | None) -> list[dict]:
    """OpenAI-style function definitions for client-declared tools."""
    return [
        {
            "type": "function",
            "function": {
                "name": name,
                "description": spec.description or "",
                "parameters": spec.parameters,
            },
        }
        for name, spec in (tools or {}).items()
    ]
