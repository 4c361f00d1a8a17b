"""Decoder for the completion endpoint's partial-event stream.

The body is read in full and split into lines; no incremental parsing is
done. A body looks like::

    data: {"choices":[{"text":"Hello"}]}
    data: {"choices":[{"text":" world"}]}
    data: [DONE]

Lines that do not start with ``data`` (blank keep-alives, ``event:`` lines)
are ignored, as is the ``[DONE]`` sentinel. Fragments are concatenated in
line order.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Union

from storycli.exceptions import DecodeError

EVENT_PREFIX = "data"
DONE_SENTINEL = "data: [DONE]"


def _fragment(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    text = first.get("text")
    return text if isinstance(text, str) else ""


def decode_stream(body: Union[str, Iterable[str]]) -> str:
    """Join the text fragments of a completion stream.

    Args:
        body: The full response text, or an already split sequence of lines.

    Returns:
        The concatenated ``choices[0].text`` values. Events without text
        contribute an empty string.

    Raises:
        DecodeError: If a data line is not valid JSON. The whole decode
            fails; partial text is never returned.
    """
    lines = body.split("\n") if isinstance(body, str) else list(body)

    parts: list[str] = []
    for lineno, raw in enumerate(lines, 1):
        line = raw[:-1] if raw.endswith("\r") else raw
        if not line.startswith(EVENT_PREFIX) or line == DONE_SENTINEL:
            continue
        data = line[len(EVENT_PREFIX) + 1:] if line.startswith(EVENT_PREFIX + ":") else line
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as exc:
            raise DecodeError(
                f"Malformed completion event on line {lineno}: {exc.msg}"
            ) from exc
        parts.append(_fragment(payload))
    return "".join(parts)
