"""Identifiers for tool calls recovered from text."""

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits


def generate_tool_call_id(length: int = 24) -> str:
    """Return an OpenAI-style ``call_...`` identifier."""
    return "call_" + "".join(secrets.choice(_ALPHABET) for _ in range(length))
