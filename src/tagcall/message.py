from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_serializer


class MessageRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: dict


class FunctionDelta(BaseModel):
    name: str | None = None
    arguments: str = ""


class ToolCallDelta(BaseModel):
    """One step in the construction of a tool call.

    Deltas sharing an ``id`` build a single call: ``function.arguments``
    values are appended in the order they arrive.
    """

    id: str
    type: Literal["function"] = "function"
    function: FunctionDelta


class ChatMessage(BaseModel):
    role: MessageRole
    content: str | list[TextPart | ImagePart] = ""
    tool_calls: list[ToolCallDelta] | None = None

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value


class PromptLog(BaseModel):
    """Record of a finished exchange, the last item of a message stream."""

    model: str
    prompt: list[ChatMessage] = Field(default_factory=list)
    completion: str = ""


def render_content(message: ChatMessage) -> str:
    """Flatten a message body to text; non-text parts are dropped."""
    if isinstance(message.content, str):
        return message.content
    return "\n".join(
        part.text for part in message.content if isinstance(part, TextPart)
    )
