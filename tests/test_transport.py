"""Tests for the shared HTTP client factory."""

from __future__ import annotations

import httpx

from storycli import __version__
from storycli.transport import build_client, status_text


class TestBuildClient:
    def test_user_agent(self) -> None:
        with build_client() as client:
            assert client.headers["User-Agent"] == f"storycli/{__version__}"

    def test_timeout(self) -> None:
        with build_client(timeout=5.0) as client:
            assert client.timeout.read == 5.0

    def test_proxy_client_builds(self) -> None:
        with build_client("http://proxy.local:3128") as client:
            assert isinstance(client, httpx.Client)

    def test_custom_transport_is_used(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        with build_client("http://ignored:1", transport=httpx.MockTransport(handler)) as client:
            client.get("https://api.github.com/")

        assert len(seen) == 1
        assert seen[0].headers["User-Agent"].startswith("storycli/")


class TestStatusText:
    def test_code_and_reason(self) -> None:
        assert status_text(httpx.Response(404)) == "404 Not Found"

    def test_unknown_code(self) -> None:
        assert status_text(httpx.Response(599)) == "599"
