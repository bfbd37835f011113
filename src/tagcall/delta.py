"""Serialize partially parsed arguments and diff successive serializations.

Arguments are rendered so that later renderings extend earlier ones.
While the arguments element is open its object stays unclosed and the
last key is written without a value: that value may still grow, or
become a list when the same key repeats.  Once the call is complete the
rendering is exactly ``json.dumps`` of the final arguments.
"""

from __future__ import annotations

import json
import logging

from tagcall.partial_xml import PartialToolCall

logger = logging.getLogger(__name__)


def serialize_arguments(call: PartialToolCall, final: bool = False) -> str:
    """Render the arguments of *call* as (possibly unclosed) JSON text.

    ``final`` renders the call as complete even when its markup never
    closed the arguments element: open elements contribute the content
    seen so far.  A call without an arguments element then renders as
    ``"{}"``.
    """
    if call.arguments is None:
        return "{}" if final else ""
    if final or call.arguments_closed:
        return json.dumps(call.arguments)
    items = [
        f"{json.dumps(key)}: {json.dumps(value)}"
        for key, value in call.arguments.items()
        if key != call.held_key
    ]
    if call.held_key is not None:
        items.append(f"{json.dumps(call.held_key)}: ")
    return "{" + ", ".join(items)


def get_string_delta(previous: str, updated: str) -> str:
    """Return what has to be appended to *previous* to obtain *updated*.

    When *updated* does not extend *previous*, the result is *updated*
    from the first differing character onwards.  A consumer that only
    appends will then hold a corrupted string, so the case is logged.
    """
    if updated.startswith(previous):
        return updated[len(previous):]

    index = 0
    for old, new in zip(previous, updated):
        if old != new:
            break
        index += 1
    logger.warning(
        f"Serialized arguments diverged at offset {index}: "
        f"{previous[index:]!r} -> {updated[index:]!r}"
    )
    return updated[index:]
