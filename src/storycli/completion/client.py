"""Streamed completion requests against the Copilot completion endpoint.

:class:`CompletionClient` makes sure a bearer token is valid, POSTs a
:class:`~storycli.models.CompletionRequest`, reads the whole streamed body,
and hands it to :func:`~storycli.completion.stream.decode_stream`.
"""

from __future__ import annotations

import time
from typing import Optional

import httpx

from storycli.auth.bearer import BearerTokenManager
from storycli.completion.stream import decode_stream
from storycli.config import CredentialStore
from storycli.exceptions import CompletionError
from storycli.models import CompletionRequest
from storycli.output import debug
from storycli.transport import status_text

COMPLETIONS_URL = (
    "https://copilot-proxy.githubusercontent.com/v1/engines/copilot-codex/completions"
)


class CompletionClient:
    """Request a completion and return its decoded text.

    Args:
        store: Credential store holding the bearer token pair.
        client: HTTP client for the run.
        bearer: Bearer token manager; built from *store* and *client* when
            omitted.

    Example::

        with build_client(proxy) as http:
            text = CompletionClient(store, http).complete("Write a haiku")
    """

    def __init__(
        self,
        store: CredentialStore,
        client: httpx.Client,
        bearer: Optional[BearerTokenManager] = None,
    ) -> None:
        self._store = store
        self._client = client
        self._bearer = bearer or BearerTokenManager(store, client)

    def complete(self, prompt: str) -> str:
        """Return the completion text for *prompt*.

        The bearer refresh (if any) finishes before the completion request
        is sent.

        Raises:
            BearerRefreshError: If the bearer token could not be refreshed.
            CompletionError: On a non-success status or network error.
            DecodeError: If the stream contains a malformed event.
        """
        self._bearer.ensure_valid()

        request = CompletionRequest(prompt=prompt)
        bearer_token = self._store.credentials.bearer_token
        try:
            response = self._client.post(
                COMPLETIONS_URL,
                json=request.model_dump(),
                headers={
                    "Authorization": f"Bearer {bearer_token}",
                    "Content-Type": "application/json",
                    "X-Request-Start": f"t={int(time.time() * 1000)}",
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise CompletionError(
                f"Failed to fetch chat completion: {status_text(exc.response)}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CompletionError(f"Failed to fetch chat completion: {exc}") from exc

        debug(f"Completion response: {len(response.text)} characters")
        return decode_stream(response.text)
