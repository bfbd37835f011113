"""Recover tool calls that a model embeds as tags in streamed text."""

from tagcall.instrumentation import instrument, uninstrument
from tagcall.intercept import XmlToolCallInterceptor, intercept_xml_tool_calls
from tagcall.markup import DEFAULT_MARKUP, ToolCallMarkup
from tagcall.message import (
    ChatMessage,
    FunctionDelta,
    MessageRole,
    PromptLog,
    ToolCallDelta,
)
from tagcall.streaming import InterceptResult, ToolCall, ToolCallAccumulator, collect

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_MARKUP",
    "ChatMessage",
    "FunctionDelta",
    "InterceptResult",
    "MessageRole",
    "PromptLog",
    "ToolCall",
    "ToolCallAccumulator",
    "ToolCallDelta",
    "ToolCallMarkup",
    "XmlToolCallInterceptor",
    "collect",
    "instrument",
    "intercept_xml_tool_calls",
    "uninstrument",
]
