"""Best-effort parsing of a tool call whose markup is still streaming in.

The whole call text is parsed again on every fragment.  The standard
library parser stops quietly where the text is truncated, so whatever
it reports up to that point is structurally valid.  Elements seen
before a syntax error are kept as well.

Models rarely escape argument values, so a bare ``&`` or a ``<`` that
does not start a tag is escaped before parsing.  Code such as
``a < b && c`` then reads as text instead of breaking the parse.
"""

from __future__ import annotations

import logging
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any

from tagcall.markup import DEFAULT_MARKUP, ToolCallMarkup

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
# a line break the markup layout puts right after an opening tag or
# right before a closing one
_LAYOUT_BREAK = re.compile(r"\A[ \t]*\r?\n|\r?\n[ \t]*\Z")

_NAME = r"[^\W\d][\w.\-]*"
_MARKUP_TOKEN = re.compile(
    rf"(?P<tag></?{_NAME}(?:\s+{_NAME}\s*=\s*(?:\"[^\"<]*\"|'[^'<]*'))*\s*/?>)"
    r"|(?P<entity>&(?:amp|lt|gt|quot|apos|#[0-9]+|#x[0-9a-fA-F]+);)"
    # whatever is cut off at the end may still become a tag or an entity
    rf"|(?P<partial>(?:</?(?:{_NAME}(?:\s[^<>]*)?)?|&#?\w*)\Z)"
    r"|(?P<lt><)|(?P<amp>&)|(?P<cdata_end>\]\]>)"
)
_ESCAPES = {"lt": "&lt;", "amp": "&amp;", "cdata_end": "]]&gt;"}


@dataclass
class PartialToolCall:
    """What is known so far about a streaming call.

    Args:
        name: Tool name, taken from the closed name element.
        arguments: Arguments parsed so far, or ``None`` before the
            arguments element has started.  Elements that are still
            open are included with the content seen so far.
        held_key: While the arguments element is open, the key of its
            last child.  That value may still grow, or turn into a list
            when the next sibling repeats the key.
        arguments_closed: Whether the arguments element has closed.
    """

    name: str
    arguments: dict[str, Any] | None = None
    held_key: str | None = None
    arguments_closed: bool = False


class _CallTreeBuilder:
    """Parser target that builds the call tree and tracks open elements.

    Unlike :class:`xml.etree.ElementTree.TreeBuilder` it stores text as
    it arrives, so an element cut off mid-text keeps its partial text.
    """

    def __init__(self):
        self.root: ET.Element | None = None
        self.open_elements: list[ET.Element] = []
        self._text_owner: ET.Element | None = None

    def start(self, tag, attrib):
        if self.open_elements:
            element = ET.SubElement(self.open_elements[-1], tag)
        else:
            element = ET.Element(tag)
            self.root = element
        self.open_elements.append(element)
        self._text_owner = element
        return element

    def end(self, tag):
        # text between siblings is layout
        self._text_owner = None
        return self.open_elements.pop()

    def data(self, data):
        if self._text_owner is not None:
            self._text_owner.text = (self._text_owner.text or "") + data

    def close(self):
        return self.root


def escape_bare_text(text: str) -> str:
    """Escape ``&`` and ``<`` that cannot be markup.

    Complete tags, the predefined entities and character references
    are kept.  A trailing ``<...`` or ``&...`` that may still grow into
    a tag or an entity is left for the next fragment to decide.
    """
    return _MARKUP_TOKEN.sub(
        lambda m: _ESCAPES.get(m.lastgroup, m.group()), text,
    )


def coerce_value(text: str | None) -> Any:
    """Turn leaf text into a bool, int, float or string.

    Surrounding whitespace is ignored when looking for a bool or a
    number.  Strings keep their indentation and inner line breaks; only
    the line break after the opening tag and the one before the closing
    tag are dropped, since those belong to the layout.
    """
    raw = text or ""
    value = raw.strip()
    if value == "true":
        return True
    if value == "false":
        return False
    if not _NUMBER.fullmatch(value):
        return _LAYOUT_BREAK.sub("", raw)
    try:
        if any(c in value for c in ".eE"):
            number = float(value)
            return number if math.isfinite(number) else value
        return int(value)
    except ValueError:
        # int() refuses absurdly long digit strings
        return value


def parse_partial_tool_call(
    text: str, markup: ToolCallMarkup = DEFAULT_MARKUP,
) -> PartialToolCall | None:
    """Parse *text*, which starts with the opening call marker.

    Returns ``None`` until the name element is closed and non-empty.
    Never raises on incomplete or malformed markup.
    """
    builder = _CallTreeBuilder()
    parser = ET.XMLParser(target=builder)
    try:
        parser.feed(escape_bare_text(text))
    except ET.ParseError as exc:
        logger.debug(f"Call markup stops parsing: {exc}")

    root = builder.root
    if root is None or root.tag != markup.call_tag:
        return None

    still_open = set(builder.open_elements)
    name_element = root.find(markup.name_tag)
    if name_element is None or name_element in still_open:
        return None
    name = (name_element.text or "").strip()
    if not name:
        return None

    args_element = root.find(markup.args_tag)
    if args_element is None:
        return PartialToolCall(name=name)
    arguments = _mapping(args_element)
    if args_element in still_open:
        held_key = args_element[-1].tag if len(args_element) else None
        return PartialToolCall(name=name, arguments=arguments, held_key=held_key)
    return PartialToolCall(name=name, arguments=arguments, arguments_closed=True)


def _mapping(element: ET.Element) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for child in element:
        value = _mapping(child) if len(child) else coerce_value(child.text)
        _add(result, child.tag, value)
    return result


def _add(result: dict[str, Any], key: str, value: Any) -> None:
    if key not in result:
        result[key] = value
    elif isinstance(result[key], list):
        result[key].append(value)
    else:
        result[key] = [result[key], value]
