"""Copilot completion requests and stream decoding."""

from storycli.completion.client import CompletionClient
from storycli.completion.stream import decode_stream

__all__ = ["CompletionClient", "decode_stream"]
