"""Shared ``httpx.Client`` factory.

Every request storycli makes goes through a client built here, so a run uses
the same forward proxy for the device flow, the bearer refresh, and the
completion call. Certificate verification is switched off for all of them:
the tool is meant to run behind TLS-intercepting corporate proxies whose
root certificates are not in the default trust store.
"""

from __future__ import annotations

from typing import Optional

import httpx

from storycli import __version__

DEFAULT_TIMEOUT = 30.0
USER_AGENT = f"storycli/{__version__}"


def build_client(
    proxy_url: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create the HTTP client used for one run.

    Args:
        proxy_url: Optional forward proxy (``http://host:port``).
        timeout: Per-request timeout in seconds.
        transport: Optional custom transport, mainly
            :class:`httpx.MockTransport` in tests. When given, *proxy_url*
            is ignored.

    Returns:
        An open :class:`httpx.Client`. Callers close it, typically via
        ``with``.
    """
    kwargs: dict[str, object] = {
        "timeout": timeout,
        "verify": False,
        "follow_redirects": True,
        "headers": {"User-Agent": USER_AGENT},
    }
    if transport is not None:
        kwargs["transport"] = transport
    elif proxy_url:
        kwargs["proxy"] = proxy_url
    return httpx.Client(**kwargs)  # type: ignore[arg-type]


def status_text(response: httpx.Response) -> str:
    """Return ``"<code> <reason>"`` for error messages."""
    reason = response.reason_phrase or ""
    return f"{response.status_code} {reason}".strip()
