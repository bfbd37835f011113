"""Consumer-side helpers for intercepted message streams.

The :class:`ToolCallAccumulator` reassembles tool calls whose
arguments arrive in fragments across many messages, and
:func:`collect` drains a whole stream into an :class:`InterceptResult`.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable
from dataclasses import dataclass, field

from tagcall.message import ChatMessage, MessageRole, PromptLog, ToolCallDelta, render_content


@dataclass
class ToolCall:
    """A resolved tool call ready for dispatch."""

    id: str = ""
    name: str = ""
    arguments: str = ""

    def parsed_arguments(self) -> dict:
        return json.loads(self.arguments or "{}")


class ToolCallAccumulator:
    """Assembles complete tool calls from streamed deltas, keyed by id."""

    def __init__(self) -> None:
        self._pending: dict[str, ToolCall] = {}

    def feed(self, delta: ToolCallDelta) -> None:
        if delta.id not in self._pending:
            self._pending[delta.id] = ToolCall(id=delta.id)
        tc = self._pending[delta.id]
        if delta.function.name and not tc.name:
            tc.name = delta.function.name
        tc.arguments += delta.function.arguments

    def finalize(self) -> list[ToolCall]:
        """Return the calls in the order their first delta arrived."""
        return list(self._pending.values())


@dataclass
class InterceptResult:
    """Everything an intercepted stream produced.

    Args:
        content: Concatenated assistant text.
        tool_calls: Calls rebuilt from their deltas.
        prompt_log: Final record from the upstream, if it sent one.
        passed_through: Non-assistant messages, in arrival order.
    """

    content: str
    tool_calls: list[ToolCall]
    prompt_log: PromptLog | None = None
    passed_through: list[ChatMessage] = field(default_factory=list)


async def collect(
    stream: AsyncIterable[list[ChatMessage] | PromptLog],
) -> InterceptResult:
    """Drain *stream* and return the text and tool calls it carried."""
    acc = ToolCallAccumulator()
    content = ""
    prompt_log = None
    passed_through: list[ChatMessage] = []
    async for item in stream:
        if isinstance(item, PromptLog):
            prompt_log = item
            continue
        for message in item:
            if message.role is not MessageRole.ASSISTANT:
                passed_through.append(message)
                continue
            content += render_content(message)
            for delta in message.tool_calls or []:
                acc.feed(delta)
    return InterceptResult(
        content=content,
        tool_calls=acc.finalize(),
        prompt_log=prompt_log,
        passed_through=passed_through,
    )
