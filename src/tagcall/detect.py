"""Decide whether buffered assistant text opens an embedded tool call."""

from __future__ import annotations

from dataclasses import dataclass

from tagcall.markup import DEFAULT_MARKUP, ToolCallMarkup


@dataclass
class ToolCallStart:
    """Outcome of scanning a buffer for the opening marker.

    ``plain_text`` can be shown right away.  ``buffer`` is what the
    caller keeps: the held-back partial marker when ``in_partial_start``
    is set, the text after the marker when ``in_tool_call`` is set, and
    empty otherwise.
    """

    plain_text: str = ""
    in_partial_start: bool = False
    in_tool_call: bool = False
    buffer: str = ""

    @property
    def is_plain_text(self) -> bool:
        return not (self.in_partial_start or self.in_tool_call)


def detect_tool_call_start(
    buffer: str, markup: ToolCallMarkup = DEFAULT_MARKUP,
) -> ToolCallStart:
    """Classify *buffer* against the opening marker, case-sensitively.

    The marker may appear anywhere in the buffer; text in front of it
    is plain text.  Without a full marker, the longest tail of the
    buffer that could still grow into the marker is held back and the
    rest is plain text.
    """
    marker = markup.open_marker
    index = buffer.find(marker)
    if index != -1:
        return ToolCallStart(
            plain_text=buffer[:index],
            in_tool_call=True,
            buffer=buffer[index + len(marker):],
        )

    for start in range(max(0, len(buffer) - len(marker) + 1), len(buffer)):
        if marker.startswith(buffer[start:]):
            return ToolCallStart(
                plain_text=buffer[:start],
                in_partial_start=True,
                buffer=buffer[start:],
            )

    return ToolCallStart(plain_text=buffer)
