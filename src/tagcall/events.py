"""Event view of an intercepted message stream."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from tagcall.message import ChatMessage, MessageRole, PromptLog, render_content


@dataclass
class StreamEvent:
    """Base for all streaming events."""


@dataclass
class PlainTextEvent(StreamEvent):
    """Assistant text that is not part of a tool call."""

    content: str = ""


@dataclass
class ToolCallDeltaEvent(StreamEvent):
    """One step in the construction of the tool call ``call_id``."""

    call_id: str = ""
    name: str | None = None
    arguments_delta: str = ""


@dataclass
class PassThroughEvent(StreamEvent):
    """A non-assistant message, serialized as it arrived."""

    message: dict = field(default_factory=dict)


@dataclass
class InterceptCompleteEvent(StreamEvent):
    """Final event, always the last one yielded.

    ``result`` is the upstream :class:`~tagcall.message.PromptLog`, or
    ``None`` when the upstream sent none or the run was cancelled.
    """

    result: Any = None


async def iter_events(
    stream: AsyncIterable[list[ChatMessage] | PromptLog],
) -> AsyncIterator[StreamEvent]:
    """Translate an intercepted stream into :class:`StreamEvent` objects."""
    result = None
    async for item in stream:
        if isinstance(item, PromptLog):
            result = item
            continue
        for message in item:
            if message.role is not MessageRole.ASSISTANT:
                yield PassThroughEvent(message=message.model_dump())
                continue
            text = render_content(message)
            if text:
                yield PlainTextEvent(content=text)
            for delta in message.tool_calls or []:
                yield ToolCallDeltaEvent(
                    call_id=delta.id,
                    name=delta.function.name,
                    arguments_delta=delta.function.arguments,
                )
    yield InterceptCompleteEvent(result=result)
