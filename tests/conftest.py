import itertools

import pytest

from tagcall.intercept import intercept_xml_tool_calls
from tagcall.markup import ToolCallMarkup
from tagcall.message import ChatMessage, MessageRole, PromptLog
from tagcall.streaming import collect


# ---------------------------------------------------------------------------
# Message builders
# ---------------------------------------------------------------------------

def assistant(content) -> ChatMessage:
    return ChatMessage(role=MessageRole.ASSISTANT, content=content)


def user(content: str) -> ChatMessage:
    return ChatMessage(role=MessageRole.USER, content=content)


SHORT_MARKUP = ToolCallMarkup(call_tag="call", name_tag="name", args_tag="args")


# ---------------------------------------------------------------------------
# Fake upstreams
# ---------------------------------------------------------------------------

class FakeUpstream:
    """Async iterator over pre-built batches that records its progress."""

    def __init__(self, batches, prompt_log: PromptLog | None = None):
        self.batches = list(batches)
        if prompt_log is not None:
            self.batches.append(prompt_log)
        self.pulled = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed or self.pulled >= len(self.batches):
            raise StopAsyncIteration
        batch = self.batches[self.pulled]
        self.pulled += 1
        return batch

    async def aclose(self):
        self.closed = True


def text_stream(*chunks: str, prompt_log: PromptLog | None = None) -> FakeUpstream:
    """One assistant message per chunk, one message per batch."""
    return FakeUpstream([[assistant(c)] for c in chunks], prompt_log=prompt_log)


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"call_{next(counter)}"


async def drain(stream) -> list:
    return [item async for item in stream]


async def run(*chunks: str, markup: ToolCallMarkup | None = None, **kwargs):
    """Intercept *chunks* and collect the result."""
    if markup is not None:
        kwargs["markup"] = markup
    kwargs.setdefault("new_tool_call_id", sequential_ids())
    return await collect(intercept_xml_tool_calls(text_stream(*chunks), **kwargs))


@pytest.fixture
def new_id():
    return sequential_ids()


@pytest.fixture
def prompt_log():
    return PromptLog(model="mock-model", prompt=[user("hi")], completion="done")
