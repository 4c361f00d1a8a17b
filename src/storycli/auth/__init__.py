"""GitHub sign-in and Copilot token handling.

- :func:`initiate` / :func:`exchange` -- device authorization requests.
- :class:`AuthorizationPoller` -- polls :func:`exchange` on a timer until
  the user authorizes.
- :class:`BearerTokenManager` -- refreshes the short-lived Copilot bearer
  token from the stored access token.
"""

from storycli.auth.bearer import BearerTokenManager
from storycli.auth.device_flow import exchange, initiate
from storycli.auth.poller import AuthorizationPoller, poll_until_authorized
from storycli.auth.timer import RepeatingTimer

__all__ = [
    "AuthorizationPoller",
    "BearerTokenManager",
    "RepeatingTimer",
    "exchange",
    "initiate",
    "poll_until_authorized",
]
