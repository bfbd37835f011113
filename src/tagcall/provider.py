"""Upstream message streams from OpenAI-compatible chat endpoints.

Each provider turns a streamed chat completion into the batches that
:func:`tagcall.intercept.intercept_xml_tool_calls` consumes: one
``[ChatMessage]`` per delta, then a :class:`PromptLog`.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from tagcall.message import (
    ChatMessage,
    FunctionDelta,
    MessageRole,
    PromptLog,
    ToolCallDelta,
)

logger = logging.getLogger(__name__)


class ModelProvider:
    """Base provider.  Subclasses set ``self.client``."""

    client: AsyncOpenAI

    async def stream(
            self,
            model: str,
            messages: list[ChatMessage],
            tools: list[dict] | None = None,
    ) -> AsyncIterator[list[ChatMessage] | PromptLog]:
        kwargs = {}
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        response = await self.client.chat.completions.create(
            model=model,
            messages=[m.model_dump(exclude_none=True) for m in messages],
            stream=True,
            **kwargs,
        )

        completion = ""
        native_ids: dict[int, str] = {}
        async for chunk in response:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                completion += delta.content
                yield [ChatMessage(role=MessageRole.ASSISTANT, content=delta.content)]
            if delta.tool_calls:
                yield [ChatMessage(
                    role=MessageRole.ASSISTANT,
                    tool_calls=[_native_delta(tc, native_ids) for tc in delta.tool_calls],
                )]

        logger.debug(f"Stream from {model} finished, {len(completion)} characters")
        yield PromptLog(model=model, prompt=list(messages), completion=completion)


def _native_delta(tool_call, native_ids: dict[int, str]) -> ToolCallDelta:
    # only the first fragment of a native call carries its id
    if tool_call.id:
        native_ids[tool_call.index] = tool_call.id
    call_id = native_ids.get(tool_call.index, f"call_{tool_call.index}")
    function = tool_call.function
    return ToolCallDelta(
        id=call_id,
        function=FunctionDelta(
            name=function.name if function else None,
            arguments=(function.arguments or "") if function else "",
        ),
    )


class OpenAIProvider(ModelProvider):

    def __init__(self, api_key: str | None = None):
        if not api_key:
            api_key = os.getenv("OPENAI_API_KEY")
        self.client = AsyncOpenAI(
            api_key=api_key,
            max_retries=5,
            timeout=600.0
        )


class OpenRouter(ModelProvider):

    def __init__(self, api_key: str | None = None):
        if not api_key:
            api_key = os.getenv("OPENROUTER_API_KEY")
        self.client = AsyncOpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=api_key,
            max_retries=5,
            timeout=180.0
        )


class VLLMProvider(ModelProvider):

    def __init__(self, url: str, port: int):
        self.base_url = f"http://{url}:{port}/v1"
        self.client = AsyncOpenAI(base_url=self.base_url, api_key="DUMMY")
