"""Intercept tool calls embedded as tags in a streamed assistant response.

Assistant text is cut at tag boundaries and scanned for the opening
call marker.  Text that cannot be part of a call is passed on as soon
as that is certain.  Once inside a call, the call text seen so far is
reparsed on every fragment and each step is emitted as a
:class:`~tagcall.message.ToolCallDelta` on an otherwise empty
assistant message.  A call with no resolvable tool name is dropped
without a trace in the output.

Only the first call is captured: after its closing marker the rest of
the stream is read but ignored (see ``stop_after_first_call``).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable
from enum import Enum

from tagcall.delta import get_string_delta, serialize_arguments
from tagcall.detect import detect_tool_call_start
from tagcall.ids import generate_tool_call_id
from tagcall.instrumentation import (
    interception_span,
    record_cancelled,
    record_tool_call,
)
from tagcall.markup import (
    DEFAULT_MARKUP,
    ToolCallMarkup,
    split_at_tags_and_codeblocks,
)
from tagcall.message import (
    ChatMessage,
    FunctionDelta,
    MessageRole,
    PromptLog,
    ToolCallDelta,
    render_content,
)
from tagcall.partial_xml import PartialToolCall, parse_partial_tool_call

logger = logging.getLogger(__name__)

MessageStream = AsyncIterator[list[ChatMessage] | PromptLog]


class InterceptState(Enum):
    OUTSIDE = "outside"
    AMBIGUOUS_PREFIX = "ambiguous_prefix"
    INSIDE_CALL = "inside_call"
    DONE = "done"


class XmlToolCallInterceptor:
    """State machine for one interception run.

    ``feed()`` takes one upstream message and returns the messages to
    emit for it, in order.  ``flush()`` is called once the upstream is
    exhausted.

    Args:
        markup: Tag convention the model was instructed to use.
        new_tool_call_id: Produces the id of each captured call.
        stop_after_first_call: Stop processing after the first call
            closes.  When ``False`` the interceptor goes back to
            scanning plain text and later calls get their own ids.
        span: Tracing span, or ``None`` when tracing is off.
    """

    def __init__(
        self,
        markup: ToolCallMarkup = DEFAULT_MARKUP,
        new_tool_call_id: Callable[[], str] = generate_tool_call_id,
        stop_after_first_call: bool = True,
        span=None,
    ):
        self.markup = markup
        self.new_tool_call_id = new_tool_call_id
        self.stop_after_first_call = stop_after_first_call
        self.span = span
        self.state = InterceptState.OUTSIDE

        self._buffer = ""
        self._call_text = ""
        self._call_id: str | None = None
        self._arguments = ""
        self._last_message: ChatMessage | None = None

    @property
    def done(self) -> bool:
        return self.state is InterceptState.DONE

    def feed(self, message: ChatMessage) -> list[ChatMessage]:
        if self.done:
            return []
        if message.role is not MessageRole.ASSISTANT or message.tool_calls is not None:
            return [message]

        self._last_message = message
        emitted: list[ChatMessage] = []
        for piece in split_at_tags_and_codeblocks(render_content(message)):
            while piece and not self.done:
                if self.state is InterceptState.INSIDE_CALL:
                    piece = self._feed_call(message, piece, emitted)
                else:
                    piece = self._feed_text(message, piece, emitted)
            if self.done:
                break
        return emitted

    def flush(self) -> list[ChatMessage]:
        """Release a held partial marker once no more text can follow."""
        if self.state is InterceptState.INSIDE_CALL:
            logger.debug(f"Stream ended inside unterminated tool call {self._call_id}")
            return []
        if not self._buffer or self._last_message is None:
            return []
        held = self._last_message.model_copy(update={"content": self._buffer})
        self._buffer = ""
        self.state = InterceptState.OUTSIDE
        return [held]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _feed_text(
        self, message: ChatMessage, text: str, emitted: list[ChatMessage],
    ) -> str:
        """Scan *text* for the opening marker; return text inside a call."""
        start = detect_tool_call_start(self._buffer + text, self.markup)
        if start.plain_text:
            emitted.append(message.model_copy(update={"content": start.plain_text}))

        if start.in_tool_call:
            self._buffer = ""
            self._start_call()
            return start.buffer

        self._buffer = start.buffer
        if start.in_partial_start:
            self.state = InterceptState.AMBIGUOUS_PREFIX
        else:
            self.state = InterceptState.OUTSIDE
        return ""

    def _feed_call(
        self, message: ChatMessage, text: str, emitted: list[ChatMessage],
    ) -> str:
        """Add *text* to the call; return text after its closing marker."""
        self._call_text += text
        leftover = ""
        end = self._call_text.find(self.markup.close_marker)
        closed = end != -1
        if closed:
            end += len(self.markup.close_marker)
            leftover = self._call_text[end:]
            self._call_text = self._call_text[:end]

        call = parse_partial_tool_call(
            self.markup.open_marker + self._call_text, self.markup,
        )
        if call is not None:
            arguments = serialize_arguments(call, final=closed)
            delta = ToolCallDelta(
                id=self._call_id,
                function=FunctionDelta(
                    name=call.name,
                    arguments=get_string_delta(self._arguments, arguments),
                ),
            )
            self._arguments = arguments
            emitted.append(message.model_copy(
                update={"content": "", "tool_calls": [delta]},
            ))

        if not closed:
            return ""
        self._finish_call(call)
        if self.done:
            return ""
        return leftover

    def _start_call(self) -> None:
        self.state = InterceptState.INSIDE_CALL
        self._call_id = self.new_tool_call_id()
        self._call_text = ""
        self._arguments = ""
        logger.info(f"Tool call {self._call_id} started")

    def _finish_call(self, call: PartialToolCall | None) -> None:
        if call is None:
            logger.debug(
                f"Dropping tool call {self._call_id}: closed without a tool name"
            )
        else:
            logger.info(f"Tool call {self._call_id} ({call.name}) closed")
            record_tool_call(self.span, self._call_id, call.name)

        self._call_text = ""
        self._call_id = None
        self._arguments = ""
        if self.stop_after_first_call:
            self.state = InterceptState.DONE
        else:
            self.state = InterceptState.OUTSIDE


async def intercept_xml_tool_calls(
    messages: AsyncIterable[list[ChatMessage] | PromptLog],
    cancel: asyncio.Event | None = None,
    *,
    markup: ToolCallMarkup = DEFAULT_MARKUP,
    new_tool_call_id: Callable[[], str] = generate_tool_call_id,
    stop_after_first_call: bool = True,
) -> MessageStream:
    """Yield single-message lists with embedded tool calls turned into deltas.

    Messages other than plain assistant text pass through unchanged.  A
    :class:`PromptLog` from the upstream is yielded last, untouched,
    even when the stream stopped being processed after a tool call.

    *cancel* is checked before each upstream batch is pulled.  Once it is
    set the upstream is closed and nothing more is yielded: no held
    text, no final record.
    """
    prompt_log: PromptLog | None = None
    with interception_span(markup.call_tag) as span:
        interceptor = XmlToolCallInterceptor(
            markup=markup,
            new_tool_call_id=new_tool_call_id,
            stop_after_first_call=stop_after_first_call,
            span=span,
        )
        upstream = aiter(messages)
        while True:
            if cancel is not None and cancel.is_set():
                logger.info("Tool call interception cancelled")
                record_cancelled(span)
                await _close(upstream)
                return
            try:
                item = await anext(upstream)
            except StopAsyncIteration:
                break

            if isinstance(item, PromptLog):
                prompt_log = item
                continue
            for message in item:
                for out in interceptor.feed(message):
                    yield [out]

        for out in interceptor.flush():
            yield [out]
    if prompt_log is not None:
        yield prompt_log


async def _close(upstream) -> None:
    aclose = getattr(upstream, "aclose", None)
    if aclose is not None:
        await aclose()
