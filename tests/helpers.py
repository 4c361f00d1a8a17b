"""HTTP and document helpers shared by the test modules."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import yaml

Handler = Callable[[httpx.Request], httpx.Response]


def json_response(data: Any, status_code: int = 200) -> httpx.Response:
    """Build an httpx.Response with a JSON body."""
    return httpx.Response(status_code=status_code, json=data)


def stream_response(*events: dict[str, Any], done: bool = True) -> httpx.Response:
    """Build a completion stream body from event payloads."""
    lines = [f"data: {json.dumps(event)}" for event in events]
    if done:
        lines.append("data: [DONE]")
    return httpx.Response(200, text="\n".join(lines) + "\n")


def make_client(handler: Handler) -> httpx.Client:
    """Create an httpx.Client whose requests are answered by *handler*."""
    return httpx.Client(transport=httpx.MockTransport(handler))


def read_document(path: Path) -> dict[str, Any]:
    """Load a credential document from disk as a plain dict."""
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


class Recorder:
    """Route requests by URL to queued responses and remember every call.

    Values queued for a URL are consumed in order; the last one repeats.
    A queued exception instance is raised instead of returned.
    """

    def __init__(self, routes: dict[str, list[Any]]) -> None:
        self.routes = {url: list(responses) for url, responses in routes.items()}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        queue = self.routes.get(url)
        if not queue:
            raise AssertionError(f"Unexpected request: {request.method} {url}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    def bodies(self) -> list[Any]:
        return [json.loads(r.content) if r.content else None for r in self.requests]
