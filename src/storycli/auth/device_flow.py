"""GitHub OAuth Device Authorization Grant (:rfc:`8628`).

For headless terminals where a browser cannot be opened locally.

Flow:
    1. :func:`initiate` POSTs to the device-code endpoint to obtain a
       ``device_code`` + ``user_code`` and persists them immediately.
    2. The caller prints "Please open {verification_uri} and enter the code
       {user_code}".
    3. :class:`~storycli.auth.poller.AuthorizationPoller` calls
       :func:`exchange` on a fixed period until the user authorizes.

See Also:
    :mod:`storycli.auth.poller` for the polling loop.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from storycli.config import CredentialStore, resolve_client_id
from storycli.exceptions import AuthInitError, TokenExchangeError
from storycli.models import DeviceAuthorization
from storycli.output import debug
from storycli.transport import status_text

DEVICE_CODE_URL = "https://github.com/login/device/code"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"
SCOPE = "read:user"

_JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


def initiate(store: CredentialStore, client: httpx.Client) -> DeviceAuthorization:
    """Request a device + user code pair and persist it.

    ``deviceCode``, ``userCode`` and ``verification_uri`` are written to the
    credential document before this function returns, so a crash after this
    point still leaves the codes on disk.

    Args:
        store: Credential store providing ``clientId`` and receiving the codes.
        client: HTTP client for the run.

    Returns:
        The parsed :class:`~storycli.models.DeviceAuthorization`.

    Raises:
        AuthInitError: On a non-success status, a network error, or a
            response without ``device_code``/``user_code``. No retry.
        ConfigError: If no client ID is configured.
    """
    client_id = resolve_client_id(store.credentials)

    try:
        response = client.post(
            DEVICE_CODE_URL,
            json={"client_id": client_id, "scope": SCOPE},
            headers=_JSON_HEADERS,
        )
        response.raise_for_status()
        body: dict[str, Any] = response.json()
    except httpx.HTTPStatusError as exc:
        raise AuthInitError(
            f"Failed to fetch device code: {status_text(exc.response)}"
        ) from exc
    except httpx.HTTPError as exc:
        raise AuthInitError(f"Failed to fetch device code: {exc}") from exc
    except ValueError as exc:
        raise AuthInitError(f"Device code response is not valid JSON: {exc}") from exc

    if not isinstance(body, dict):
        raise AuthInitError("Device code response is not a JSON object")
    if "device_code" not in body:
        raise AuthInitError("Device code response missing 'device_code'")
    if "user_code" not in body:
        raise AuthInitError("Device code response missing 'user_code'")

    try:
        authorization = DeviceAuthorization.model_validate(body)
    except ValidationError as exc:
        raise AuthInitError(f"Malformed device code response: {exc}") from exc

    store.update(
        device_code=authorization.device_code,
        user_code=authorization.user_code,
        verification_uri=authorization.verification_uri,
    )
    return authorization


def exchange(
    client: httpx.Client, client_id: str, device_code: str
) -> Optional[str]:
    """Attempt one device-code to access-token exchange.

    GitHub answers ``200`` with an ``error`` field while the user has not
    finished authorizing, so an absent or empty ``access_token`` means
    "still pending" rather than failure.

    Args:
        client: HTTP client for the run.
        client_id: OAuth client ID.
        device_code: Code obtained from :func:`initiate`.

    Returns:
        The access token, or ``None`` while authorization is pending.

    Raises:
        TokenExchangeError: On a non-success status, a network error, or a
            non-JSON body.
    """
    try:
        response = client.post(
            ACCESS_TOKEN_URL,
            json={
                "client_id": client_id,
                "device_code": device_code,
                "grant_type": DEVICE_CODE_GRANT,
            },
            headers=_JSON_HEADERS,
        )
        response.raise_for_status()
        body = response.json()
    except httpx.HTTPStatusError as exc:
        raise TokenExchangeError(
            f"Failed to fetch access token: {status_text(exc.response)}"
        ) from exc
    except httpx.HTTPError as exc:
        raise TokenExchangeError(f"Failed to fetch access token: {exc}") from exc
    except ValueError as exc:
        raise TokenExchangeError(
            f"Access token response is not valid JSON: {exc}"
        ) from exc

    if not isinstance(body, dict):
        raise TokenExchangeError("Access token response is not a JSON object")

    token = body.get("access_token")
    if token:
        return str(token)

    if body.get("error"):
        desc = body.get("error_description") or body["error"]
        debug(f"Token endpoint: {body['error']} ({desc})")
    return None
