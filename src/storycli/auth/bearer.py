"""Copilot bearer token lifecycle.

The completion endpoint does not accept the GitHub access token directly.
It wants a short-lived bearer token minted from it, which expires after
roughly half an hour. :class:`BearerTokenManager` refreshes that token
lazily: only when no expiry is stored or the stored expiry has passed.
"""

from __future__ import annotations

import time
from typing import Any, Callable

import httpx

from storycli.config import CredentialStore
from storycli.exceptions import BearerRefreshError
from storycli.models import to_epoch_seconds
from storycli.output import debug, info
from storycli.transport import status_text

BEARER_TOKEN_URL = "https://api.github.com/copilot_internal/v2/token"


class BearerTokenManager:
    """Keep ``bearerToken``/``expiresAt`` in the credential store valid.

    Args:
        store: Credential store holding ``accessToken`` and receiving the
            bearer token pair.
        client: HTTP client for the run.
        clock: Returns the current time in epoch seconds. Defaults to
            :func:`time.time`; tests inject a fixed clock.
    """

    def __init__(
        self,
        store: CredentialStore,
        client: httpx.Client,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._client = client
        self._clock = clock

    def is_valid(self) -> bool:
        """Return ``True`` iff ``expiresAt`` is set and still in the future."""
        return self._store.credentials.bearer_valid_at(self._clock())

    def ensure_valid(self) -> bool:
        """Refresh the bearer token if it is missing or expired.

        Idempotent: a valid token is left untouched and no request is made.

        Returns:
            ``True`` if a refresh happened, ``False`` if the stored token
            was still valid.

        Raises:
            BearerRefreshError: If no access token is stored or the refresh
                request fails. Not retried.
        """
        if self.is_valid():
            return False
        info("Bearer token expired, generating new bearer token...")
        self.refresh()
        return True

    def refresh(self) -> None:
        """Fetch a new bearer token and persist it together with its expiry.

        Raises:
            BearerRefreshError: On a missing access token, non-success
                status, network error, or malformed response.
        """
        access_token = self._store.credentials.access_token
        if not access_token:
            raise BearerRefreshError("No access token stored; sign in first")

        try:
            response = self._client.get(
                BEARER_TOKEN_URL,
                headers={
                    "Authorization": f"token {access_token}",
                    "Accept": "application/json",
                },
            )
            response.raise_for_status()
            body: Any = response.json()
        except httpx.HTTPStatusError as exc:
            raise BearerRefreshError(
                f"Failed to generate new bearer token: {status_text(exc.response)}"
            ) from exc
        except httpx.HTTPError as exc:
            raise BearerRefreshError(f"Failed to generate new bearer token: {exc}") from exc
        except ValueError as exc:
            raise BearerRefreshError(
                f"Bearer token response is not valid JSON: {exc}"
            ) from exc

        if not isinstance(body, dict) or not body.get("token"):
            raise BearerRefreshError("Bearer token response missing 'token'")
        try:
            expires_at = to_epoch_seconds(body.get("expires_at"))
        except ValueError as exc:
            raise BearerRefreshError(f"Bearer token response has bad 'expires_at': {exc}") from exc
        if expires_at is None:
            raise BearerRefreshError("Bearer token response missing 'expires_at'")

        self._store.update(bearer_token=body["token"], expires_at=expires_at)
        debug(f"Bearer token valid until {expires_at}")
