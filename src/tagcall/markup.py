"""The tag convention a model uses to embed a tool call in its text.

A call looks like::

    <tool_call>
      <tool_name>read_file</tool_name>
      <args>
        <path>README.md</path>
      </args>
    </tool_call>

:class:`ToolCallMarkup` holds the element names, and
:func:`split_at_tags_and_codeblocks` cuts streamed text so that every
tag starts its own piece.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, field_validator

_TAG_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")
_TAG_OR_FENCE = re.compile(r"(```|<[^<>]*>?)")


def open_tag(name: str) -> str:
    return f"<{name}>"


def close_tag(name: str) -> str:
    return f"</{name}>"


class ToolCallMarkup(BaseModel):
    """Element names of the embedded tool-call convention.

    Args:
        call_tag: Root element wrapping a whole call.
        name_tag: Element holding the tool name.
        args_tag: Element holding one child element per argument.
    """

    model_config = {"frozen": True}

    call_tag: str = "tool_call"
    name_tag: str = "tool_name"
    args_tag: str = "args"

    @field_validator("call_tag", "name_tag", "args_tag")
    @classmethod
    def validate_tag(cls, value: str) -> str:
        if not _TAG_NAME.match(value):
            raise ValueError(f"not a plain XML element name: {value!r}")
        return value

    @property
    def open_marker(self) -> str:
        return open_tag(self.call_tag)

    @property
    def close_marker(self) -> str:
        return close_tag(self.call_tag)


DEFAULT_MARKUP = ToolCallMarkup()


def split_at_tags_and_codeblocks(text: str) -> list[str]:
    """Split *text* so each ``<...>`` tag and each ````` fence is its own piece.

    An unterminated trailing ``<...`` also becomes its own piece.  The
    pieces always concatenate back to *text*.

    >>> split_at_tags_and_codeblocks("hi <tool_call><tool_na")
    ['hi ', '<tool_call>', '<tool_na']
    """
    return [piece for piece in _TAG_OR_FENCE.split(text) if piece]
