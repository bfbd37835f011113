"""Server-Sent Events adapter for streaming events.

Tool-call deltas are rendered in the shape of an OpenAI chat completion
chunk's ``delta``, so a client that already assembles native tool calls
can assemble recovered ones the same way: calls are numbered by
``index`` in order of appearance, and only the first delta of a call
carries its ``id``, ``type`` and ``name``.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import asdict

from tagcall.events import (
    InterceptCompleteEvent,
    PassThroughEvent,
    PlainTextEvent,
    StreamEvent,
    ToolCallDeltaEvent,
)


def tool_call_delta_payload(event: ToolCallDeltaEvent, indexes: dict[str, int]) -> dict:
    """Render *event* as an OpenAI ``delta`` carrying one tool call.

    *indexes* maps call ids to their index and is updated for new ids.
    """
    function: dict = {"arguments": event.arguments_delta}
    tool_call: dict = {"index": indexes.get(event.call_id, len(indexes))}
    if event.call_id not in indexes:
        indexes[event.call_id] = tool_call["index"]
        tool_call["id"] = event.call_id
        tool_call["type"] = "function"
        function = {"name": event.name, **function}
    tool_call["function"] = function
    return {"tool_calls": [tool_call]}


async def sse_generator(
    event_stream: AsyncIterator[StreamEvent],
) -> AsyncIterator[str]:
    """Convert a StreamEvent async iterator into SSE-formatted strings."""
    indexes: dict[str, int] = {}
    async for event in event_stream:
        event_type = type(event).__name__
        if isinstance(event, InterceptCompleteEvent):
            data = event.result.model_dump_json() if event.result else "{}"
        elif isinstance(event, ToolCallDeltaEvent):
            data = json.dumps(tool_call_delta_payload(event, indexes))
        elif isinstance(event, PlainTextEvent):
            data = json.dumps({"role": "assistant", "content": event.content})
        elif isinstance(event, PassThroughEvent):
            data = json.dumps(event.message)
        else:
            data = json.dumps(asdict(event))
        yield f"event: {event_type}\ndata: {data}\n\n"
    yield "event: done\ndata: {}\n\n"
