"""Tests for the repeating timer and the authorization poller."""

from __future__ import annotations

import threading
from typing import Callable

import httpx
import pytest

from helpers import Recorder, json_response, make_client, read_document
from storycli.auth import poller as poller_mod
from storycli.auth.device_flow import ACCESS_TOKEN_URL
from storycli.auth.poller import (
    POLL_INTERVAL_SCALE,
    AuthorizationPoller,
    poll_until_authorized,
)
from storycli.auth.timer import RepeatingTimer
from storycli.config import CredentialStore
from storycli.exceptions import AuthPendingError


PENDING = {"error": "authorization_pending"}


class FakeTimer:
    """Timer stand-in that ticks only when the test drives it."""

    def __init__(self, interval: float, function: Callable[[], object]) -> None:
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.cancel_calls = 0

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True
        self.cancel_calls += 1

    def run(self, limit: int = 50) -> int:
        """Tick until cancelled; return how many ticks fired."""
        fired = 0
        while not self.cancelled and fired < limit:
            self.function()
            fired += 1
        return fired


@pytest.fixture(autouse=True)
def _quiet(quiet_output) -> None:
    pass


@pytest.fixture
def pending_store(write_document) -> CredentialStore:
    return CredentialStore(
        write_document(clientId="Iv1.test-client", deviceCode="dev-code", userCode="UC")
    )


def _make_poller(
    store: CredentialStore, client: httpx.Client, interval: float = 5
) -> tuple[AuthorizationPoller, FakeTimer]:
    timers: list[FakeTimer] = []

    def factory(period: float, fn: Callable[[], object]) -> FakeTimer:
        timers.append(FakeTimer(period, fn))
        return timers[-1]

    poller = AuthorizationPoller(store, client, interval, timer_factory=factory)  # type: ignore[arg-type]
    return poller, timers[0]


# -------------------------------------------------------------------------
# RepeatingTimer
# -------------------------------------------------------------------------


class TestRepeatingTimer:
    def test_runs_until_cancelled(self) -> None:
        calls: list[int] = []
        finished = threading.Event()

        def tick() -> None:
            calls.append(1)
            if len(calls) == 3:
                timer.cancel()
                finished.set()

        timer = RepeatingTimer(0.01, tick)
        timer.start()
        assert finished.wait(5)
        timer.join(5)

        assert len(calls) == 3
        assert timer.cancelled
        assert not timer.is_running

    def test_first_tick_waits_one_interval(self) -> None:
        calls: list[int] = []
        timer = RepeatingTimer(60, lambda: calls.append(1))
        timer.start()
        timer.cancel()
        timer.join(5)
        assert calls == []

    def test_callback_error_stops_timer(self) -> None:
        def boom() -> None:
            raise RuntimeError("boom")

        timer = RepeatingTimer(0.01, boom)
        timer.start()
        timer.join(5)
        assert timer.cancelled
        assert not timer.is_running

    def test_start_twice_rejected(self) -> None:
        timer = RepeatingTimer(60, lambda: None)
        timer.start()
        try:
            with pytest.raises(RuntimeError, match="already started"):
                timer.start()
        finally:
            timer.cancel()

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            RepeatingTimer(0, lambda: None)


# -------------------------------------------------------------------------
# AuthorizationPoller
# -------------------------------------------------------------------------


class TestAuthorizationPoller:
    def test_period_is_scaled(self, pending_store: CredentialStore) -> None:
        with make_client(Recorder({})) as client:
            poller, timer = _make_poller(pending_store, client, interval=5)
        assert POLL_INTERVAL_SCALE == 10
        assert poller.period == 50
        assert timer.interval == 50

    @pytest.mark.parametrize("interval", [0, -1.5])
    def test_non_positive_interval_uses_default(
        self, pending_store: CredentialStore, interval: float
    ) -> None:
        with make_client(Recorder({})) as client:
            poller, timer = _make_poller(pending_store, client, interval=interval)
        assert poller.period == 50
        assert timer.interval == 50

    def test_real_timer_accepts_zero_interval(self, pending_store: CredentialStore) -> None:
        with make_client(Recorder({})) as client:
            poller = AuthorizationPoller(pending_store, client, 0)
        assert poller.period == 50

    def test_nth_attempt_succeeds_after_pending_and_errors(
        self, pending_store: CredentialStore
    ) -> None:
        recorder = Recorder(
            {
                ACCESS_TOKEN_URL: [
                    json_response(PENDING),
                    json_response({}, status_code=500),
                    httpx.ConnectError("reset"),
                    json_response(PENDING),
                    json_response({"access_token": "gho_new"}),
                ]
            }
        )
        with make_client(recorder) as client:
            poller, timer = _make_poller(pending_store, client)
            poller.start()
            fired = timer.run()

        assert fired == 5
        assert poller.ticks == 5
        assert len(recorder.requests) == 5
        assert timer.cancel_calls == 1
        assert poller.wait(0) == "gho_new"

    def test_success_persists_access_token(self, pending_store: CredentialStore) -> None:
        recorder = Recorder({ACCESS_TOKEN_URL: [json_response({"access_token": "gho_new"})]})
        with make_client(recorder) as client:
            poller, timer = _make_poller(pending_store, client)
            assert poller.tick() is True

        assert timer.cancelled
        assert poller.done
        assert read_document(pending_store.path)["accessToken"] == "gho_new"

    def test_errors_never_cancel(self, pending_store: CredentialStore) -> None:
        recorder = Recorder({ACCESS_TOKEN_URL: [json_response({}, status_code=503)]})
        with make_client(recorder) as client:
            poller, timer = _make_poller(pending_store, client)
            results = [poller.tick() for _ in range(4)]

        assert results == [False] * 4
        assert not timer.cancelled
        assert not poller.done
        assert pending_store.credentials.access_token is None

    def test_wait_times_out_while_pending(self, pending_store: CredentialStore) -> None:
        recorder = Recorder({ACCESS_TOKEN_URL: [json_response(PENDING)]})
        with make_client(recorder) as client:
            poller, _ = _make_poller(pending_store, client)
            poller.tick()
            with pytest.raises(AuthPendingError):
                poller.wait(0)

    def test_tick_skipped_while_attempt_in_flight(
        self, pending_store: CredentialStore
    ) -> None:
        nested: list[bool] = []
        poller_ref: list[AuthorizationPoller] = []

        def handler(request: httpx.Request) -> httpx.Response:
            # A tick arriving mid-request must not start a second exchange.
            nested.append(poller_ref[0].tick())
            return json_response(PENDING)

        with make_client(handler) as client:
            poller, _ = _make_poller(pending_store, client)
            poller_ref.append(poller)
            poller.tick()

        assert nested == [False]
        assert poller.ticks == 1

    def test_no_ticks_after_success(self, pending_store: CredentialStore) -> None:
        recorder = Recorder({ACCESS_TOKEN_URL: [json_response({"access_token": "gho_new"})]})
        with make_client(recorder) as client:
            poller, _ = _make_poller(pending_store, client)
            poller.tick()
            assert poller.tick() is True

        assert len(recorder.requests) == 1

    def test_missing_device_code_stops_polling(self, store: CredentialStore) -> None:
        recorder = Recorder({})
        with make_client(recorder) as client:
            poller, timer = _make_poller(store, client)
            assert poller.tick() is False

        assert timer.cancelled
        assert recorder.requests == []
        with pytest.raises(AuthPendingError, match="device code"):
            poller.wait(0)

    def test_flush_failure_is_reraised_from_wait(
        self, pending_store: CredentialStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def failing_flush() -> None:
            raise OSError("disk full")

        monkeypatch.setattr(pending_store, "flush", failing_flush)
        recorder = Recorder({ACCESS_TOKEN_URL: [json_response({"access_token": "gho_new"})]})
        with make_client(recorder) as client:
            poller, timer = _make_poller(pending_store, client)
            poller.tick()

        assert timer.cancelled
        with pytest.raises(OSError, match="disk full"):
            poller.wait(0)


class TestPollUntilAuthorized:
    def test_real_timer_end_to_end(
        self, pending_store: CredentialStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(poller_mod, "POLL_INTERVAL_SCALE", 0.001)
        recorder = Recorder(
            {
                ACCESS_TOKEN_URL: [
                    json_response(PENDING),
                    json_response(PENDING),
                    json_response({"access_token": "gho_timer"}),
                ]
            }
        )
        with make_client(recorder) as client:
            token = poll_until_authorized(pending_store, client, interval=5)

        assert token == "gho_timer"
        assert len(recorder.requests) == 3
        assert read_document(pending_store.path)["accessToken"] == "gho_timer"
