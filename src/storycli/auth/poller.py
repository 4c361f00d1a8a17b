"""Authorization poller for the device flow.

:class:`AuthorizationPoller` drives :func:`~storycli.auth.device_flow.exchange`
from a :class:`~storycli.auth.timer.RepeatingTimer`. Each tick is one
exchange attempt with three outcomes:

* token returned -- store ``accessToken``, flush, cancel the timer, finish.
* still pending -- log and wait for the next tick.
* :class:`~storycli.exceptions.TokenExchangeError` -- log and wait for the
  next tick. Exchange errors never stop polling.

Polling only ends on success; there is no attempt limit or overall timeout.
The operator interrupts the process to give up.

Ticks never overlap: the timer runs them on one thread, and :meth:`tick`
additionally holds a non-blocking in-flight lock, so a tick that arrives
while another attempt is running is skipped without sending a request.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

import httpx

from storycli.auth.device_flow import exchange
from storycli.auth.timer import RepeatingTimer
from storycli.config import CredentialStore, resolve_client_id
from storycli.exceptions import AuthPendingError, TokenExchangeError
from storycli.models import DEFAULT_POLL_INTERVAL
from storycli.output import debug, info, success, warning

POLL_INTERVAL_SCALE = 10
"""Multiplier applied to the provider's advertised poll interval."""

TimerFactory = Callable[[float, Callable[[], object]], RepeatingTimer]


class AuthorizationPoller:
    """Poll the token endpoint until the user authorizes the device code.

    Args:
        store: Credential store holding ``clientId`` and ``deviceCode``;
            receives ``accessToken`` on success.
        client: HTTP client for the run.
        interval: Poll interval advertised by the provider, in seconds.
            The timer period is ``interval * POLL_INTERVAL_SCALE``. A
            non-positive value falls back to ``DEFAULT_POLL_INTERVAL``.
        timer_factory: Builds the underlying timer. Tests pass a fake.

    Example::

        poller = AuthorizationPoller(store, client, authorization.interval)
        poller.start()
        access_token = poller.wait()
    """

    def __init__(
        self,
        store: CredentialStore,
        client: httpx.Client,
        interval: float,
        timer_factory: TimerFactory = RepeatingTimer,
    ) -> None:
        self._store = store
        self._client = client
        if interval <= 0:
            interval = DEFAULT_POLL_INTERVAL
        self._period = interval * POLL_INTERVAL_SCALE
        self._in_flight = threading.Lock()
        self._done = threading.Event()
        self._error: Optional[BaseException] = None
        self._timer = timer_factory(self._period, self.tick)
        self.ticks = 0
        self.access_token: Optional[str] = None

    @property
    def period(self) -> float:
        """Seconds between exchange attempts."""
        return self._period

    @property
    def done(self) -> bool:
        """Whether polling has finished (successfully or with an unexpected error)."""
        return self._done.is_set()

    def start(self) -> None:
        """Start the repeating timer."""
        debug(f"Polling for authorization every {self._period:g}s")
        self._timer.start()

    def cancel(self) -> None:
        """Stop polling without a token (e.g. on Ctrl-C)."""
        self._timer.cancel()

    def tick(self) -> bool:
        """Run one exchange attempt.

        Returns:
            ``True`` once an access token has been stored, ``False`` while
            authorization is still pending, after a transient error, or
            when the tick was skipped because another attempt is in flight.
        """
        if not self._in_flight.acquire(blocking=False):
            debug("Previous token exchange still in flight; skipping tick")
            return False
        try:
            if self._done.is_set():
                return self.access_token is not None
            return self._attempt()
        except Exception as exc:
            # Anything but an exchange failure (e.g. the flush failed) ends
            # polling; wait() re-raises it in the caller's thread.
            self._error = exc
            self._timer.cancel()
            self._done.set()
            return False
        finally:
            self._in_flight.release()

    def wait(self, timeout: Optional[float] = None) -> str:
        """Block until polling finishes and return the access token.

        Args:
            timeout: Maximum seconds to wait, or ``None`` to wait forever.

        Raises:
            AuthPendingError: If *timeout* elapsed before authorization.
            Exception: Whatever unexpected error stopped a tick.
        """
        if not self._done.wait(timeout):
            raise AuthPendingError("Device authorization is still pending")
        if self._error is not None:
            raise self._error
        assert self.access_token is not None
        return self.access_token

    def _attempt(self) -> bool:
        credentials = self._store.credentials
        client_id = resolve_client_id(credentials)
        device_code = credentials.device_code
        if not device_code:
            raise AuthPendingError("No device code stored; start the device flow first")

        self.ticks += 1
        info("Attempting to fetch access token...")
        try:
            token = exchange(self._client, client_id, device_code)
        except TokenExchangeError as exc:
            warning(f"{exc}. Retrying...")
            return False

        if not token:
            info("Waiting to retry...")
            return False

        self._store.update(access_token=token)
        self.access_token = token
        self._timer.cancel()
        self._done.set()
        success("Access token retrieved successfully.")
        return True


def poll_until_authorized(
    store: CredentialStore,
    client: httpx.Client,
    interval: float,
    timer_factory: TimerFactory = RepeatingTimer,
) -> str:
    """Start an :class:`AuthorizationPoller` and block until it finishes.

    The timer is cancelled if the wait is interrupted (Ctrl-C), so no
    background attempt outlives the call.

    Returns:
        The access token, already persisted in *store*.
    """
    poller = AuthorizationPoller(store, client, interval, timer_factory=timer_factory)
    poller.start()
    try:
        return poller.wait()
    finally:
        poller.cancel()
