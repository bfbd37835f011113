"""Output must not depend on where the upstream cuts its fragments."""

import json
import random

import pytest

from tagcall.delta import serialize_arguments
from tagcall.intercept import intercept_xml_tool_calls
from tagcall.partial_xml import parse_partial_tool_call
from tagcall.streaming import collect

from tests.conftest import sequential_ids, text_stream

TEXTS = [
    (
        "Sure, reading it now.\n<tool_call>\n<tool_name>read_file</tool_name>\n"
        "<args>\n<path>src/a.py</path>\n<limit>20</limit>\n</args>\n</tool_call>\n"
        "ignored tail"
    ),
    "a <tool_ca<tool_call><tool_name>x</tool_name><args><q>1 &lt; 2</q></args></tool_call>",
    "plain text with <b>html</b> and ```code``` but no call <tool",
    (
        "héllo 🌍 <tool_call><tool_name>ünï</tool_name>"
        "<args><t>çà 🌍</t><n>-1.5</n></args></tool_call>"
    ),
    "<tool_call><tool_name>n</tool_name><args><o><p>true</p><q>x</q></o></args></tool_call>",
    "x <tool_call><args><a>1</a></args></tool_call> y",
    "<tool_call><tool_name>open</tool_name><args><a>1</a><b>two",
    (
        "<tool_call><tool_name>run</tool_name><args><cmd>make && make install</cmd>"
        "<cwd>/tmp</cwd></args></tool_call>"
    ),
    (
        "<tool_call><tool_name>py</tool_name><args><code>\nif a < b:\n    pass\n</code>"
        "<n>1</n><n>2</n></args></tool_call>"
    ),
    "<tool_call><tool_name>f</tool_name><args><a>xy</c> z</a></args></tool_call>",
]


async def _run(chunks):
    stream = intercept_xml_tool_calls(text_stream(*chunks), new_tool_call_id=sequential_ids())
    return await collect(stream)


def _splits(text):
    yield [text]
    yield list(text)
    for cut in range(1, len(text)):
        yield [text[:cut], text[cut:]]
    rng = random.Random(len(text))
    for _ in range(20):
        cuts = sorted(rng.sample(range(1, len(text)), k=min(6, len(text) - 1)))
        bounds = [0, *cuts, len(text)]
        yield [text[a:b] for a, b in zip(bounds, bounds[1:])]


@pytest.mark.asyncio
@pytest.mark.parametrize("text", TEXTS)
async def test_fragmentation_does_not_change_output(text):
    expected = await _run([text])
    for chunks in _splits(text):
        result = await _run(chunks)
        assert result.content == expected.content, chunks
        assert result.tool_calls == expected.tool_calls, chunks


@pytest.mark.asyncio
@pytest.mark.parametrize("text", [t for t in TEXTS if "<tool_name>" in t])
async def test_deltas_rebuild_the_final_parse(text):
    start = text.index("<tool_call>")
    end = text.find("</tool_call>")
    call_text = text[start:] if end == -1 else text[start:end + len("</tool_call>")]
    final = parse_partial_tool_call(call_text)

    for chunks in (list(text), [text]):
        result = await _run(chunks)
        assert len(result.tool_calls) == 1
        call = result.tool_calls[0]
        assert call.name == final.name
        if end != -1:
            assert json.loads(call.arguments) == (final.arguments or {})
            assert call.arguments == serialize_arguments(final, final=True)


@pytest.mark.asyncio
async def test_every_delta_carries_the_name():
    stream = intercept_xml_tool_calls(text_stream(*list(TEXTS[0])), new_tool_call_id=sequential_ids())
    names = [
        batch[0].tool_calls[0].function.name
        async for batch in stream
        if batch[0].tool_calls
    ]
    assert names
    assert set(names) == {"read_file"}
