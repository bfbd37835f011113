"""Instructions that teach a model the embedded tool-call convention.

The tags in the generated text come from the same
:class:`~tagcall.markup.ToolCallMarkup` the interceptor is given, so
what the model is told to write is exactly what gets parsed.
"""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from typing import Any
from xml.sax.saxutils import escape

from tagcall.markup import DEFAULT_MARKUP, ToolCallMarkup, close_tag, open_tag

INSTRUCTIONS_TAG = "tool_use_instructions"
DEFINITION_TAG = "tool_definition"

_EXAMPLE_TOOL = {
    "type": "function",
    "function": {
        "name": "example_tool",
        "parameters": {
            "type": "object",
            "properties": {
                "arg1": {"description": "First argument", "type": "string"},
                "arg2": {"description": "Second argument", "type": "number"},
            },
        },
    },
}


def tool_to_xml_definition(
    tool: dict, markup: ToolCallMarkup = DEFAULT_MARKUP,
) -> str:
    """Render an OpenAI function tool schema as an XML definition."""
    function = tool.get("function", tool)
    definition = ET.Element(DEFINITION_TAG)
    ET.SubElement(definition, markup.name_tag).text = function["name"]
    if function.get("description"):
        ET.SubElement(definition, "description").text = function["description"]

    properties = (function.get("parameters") or {}).get("properties") or {}
    if properties:
        args = ET.SubElement(definition, markup.args_tag)
        for key, value in properties.items():
            _append_value(args, key, value)

    ET.indent(definition, space="  ")
    return ET.tostring(definition, encoding="unicode")


def _append_value(parent: ET.Element, key: str, value: Any) -> None:
    element = ET.SubElement(parent, key)
    if isinstance(value, dict):
        for child_key, child_value in value.items():
            _append_value(element, child_key, child_value)
    elif isinstance(value, str):
        element.text = value
    else:
        element.text = json.dumps(value)


def example_call(
    name: str,
    arguments: dict[str, Any] | None = None,
    markup: ToolCallMarkup = DEFAULT_MARKUP,
) -> str:
    """Render a call the way the interceptor expects to read it."""
    lines = [
        markup.open_marker,
        f"  {open_tag(markup.name_tag)}{name}{close_tag(markup.name_tag)}",
    ]
    if arguments:
        lines.append(f"  {open_tag(markup.args_tag)}")
        for key, value in arguments.items():
            text = escape(value) if isinstance(value, str) else json.dumps(value)
            lines.append(f"    {open_tag(key)}{text}{close_tag(key)}")
        lines.append(f"  {close_tag(markup.args_tag)}")
    lines.append(markup.close_marker)
    return "\n".join(lines)


def build_tools_system_message(
    tools: list[dict], markup: ToolCallMarkup = DEFAULT_MARKUP,
) -> str | None:
    """Build the tool-use instructions, or ``None`` without tools."""
    if not tools:
        return None

    call, name, args = (
        markup.open_marker,
        open_tag(markup.name_tag),
        open_tag(markup.args_tag),
    )
    prompt = open_tag(INSTRUCTIONS_TAG)
    prompt += (
        'You have access to several "tools" that you can use at any time '
        "to perform tasks for the User."
    )
    prompt += (
        f"\nTo use a tool, respond with a {call} (NOT in a codeblock!!!), "
        f"specifying {name} and {args} (if applicable) as shown in the "
        "examples below. Do NOT use JSON, use only string and number values "
        "within the XML tags."
    )
    prompt += "\n\nThe following tools are available to you:"
    for tool in tools:
        prompt += "\n\n" + tool_to_xml_definition(tool, markup)

    prompt += "\n\nFor example, this tool definition:\n\n"
    prompt += tool_to_xml_definition(_EXAMPLE_TOOL, markup)
    prompt += "\n\nCan be called like this:\n"
    prompt += example_call("example_tool", {"arg1": "value1"}, markup)

    prompt += (
        "\n\nIf it seems like the User's request could be solved with one "
        "of the tools, choose the BEST one for the job based on the User's "
        "request and the tool's description."
    )
    prompt += (
        "\nYou are the one who sends the tool call, not the user. "
        "You can only call one tool at a time."
    )
    prompt += "\n" + close_tag(INSTRUCTIONS_TAG)
    return prompt


def add_tools_to_system_message(
    base: str, tools: list[dict], markup: ToolCallMarkup = DEFAULT_MARKUP,
) -> str:
    tools_message = build_tools_system_message(tools, markup)
    if tools_message is None:
        return base
    return f"{base}\n\n{tools_message}"
