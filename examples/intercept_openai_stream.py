"""Recover embedded tool calls from a plain chat completion stream.

Demonstrates:

- Teaching the model the tag convention with ``add_tools_to_system_message``

- Turning tagged calls in the streamed text into tool-call deltas

- Cancelling a run once the reply grows too long

- OpenTelemetry tracing with ConsoleSpanExporter

Usage:
    Add OPENAI_API_KEY=sk-... to .env, then:
    uv run --env-file=.env examples/intercept_openai_stream.py
"""

import asyncio
import json
import logging

from tagcall.events import PlainTextEvent, ToolCallDeltaEvent, iter_events
from tagcall.instrumentation import instrument, uninstrument
from tagcall.intercept import intercept_xml_tool_calls
from tagcall.log import configure_logging
from tagcall.message import ChatMessage, MessageRole
from tagcall.prompt import add_tools_to_system_message
from tagcall.provider import OpenAIProvider


# ---------------------------------------------------------------------------
# Tools the model may call
# ---------------------------------------------------------------------------

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "get_weather",
            "description": "Current weather for a city.",
            "parameters": {
                "type": "object",
                "properties": {
                    "city": {"type": "string", "description": "City name"},
                    "celsius": {"type": "boolean", "description": "Metric units"},
                },
                "required": ["city"],
            },
        },
    },
]


def get_weather(city: str, celsius: bool = True) -> str:
    return f"It is {21 if celsius else 70} degrees and sunny in {city}."


HANDLERS = {"get_weather": get_weather}

MAX_REPLY_CHARS = 2000


async def main():
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import SimpleSpanProcessor, ConsoleSpanExporter

    configure_logging(logging.INFO)

    tracer_provider = TracerProvider(
        resource=Resource({SERVICE_NAME: "tagcall-example"})
    )
    tracer_provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(tracer_provider)
    instrument()

    provider = OpenAIProvider()
    system = add_tools_to_system_message("You are a helpful assistant.", TOOLS)

    while True:
        try:
            user_input = input("You: ")
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        messages = [
            ChatMessage(role=MessageRole.SYSTEM, content=system),
            ChatMessage(role=MessageRole.USER, content=user_input),
        ]
        cancel = asyncio.Event()
        stream = intercept_xml_tool_calls(
            provider.stream("gpt-4o-mini", messages), cancel,
        )

        calls: dict[str, dict] = {}
        printed = 0
        print("Assistant: ", end="", flush=True)
        async for event in iter_events(stream):
            if isinstance(event, PlainTextEvent):
                print(event.content, end="", flush=True)
                printed += len(event.content)
                if printed > MAX_REPLY_CHARS:
                    cancel.set()
            elif isinstance(event, ToolCallDeltaEvent):
                call = calls.setdefault(event.call_id, {"name": event.name, "arguments": ""})
                call["arguments"] += event.arguments_delta
        print()

        for call_id, call in calls.items():
            handler = HANDLERS.get(call["name"])
            if handler is None:
                print(f"[{call_id}] unknown tool {call['name']}")
                continue
            result = handler(**json.loads(call["arguments"]))
            print(f"[{call_id}] {call['name']} -> {result}")

    uninstrument()


if __name__ == "__main__":
    asyncio.run(main())
