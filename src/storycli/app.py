"""Typer application and CLI entry point for storycli.

Running ``storycli`` with no sub-command picks the next step from the stored
credentials:

* no ``accessToken`` -- run the GitHub device flow: print the verification
  URL and user code, poll until the user authorizes, store the token, and
  ask the operator to run the command again.
* ``accessToken`` present -- prompt for a story title, request a completion
  and print the generated story to stdout.

The ``login``, ``story`` and ``status`` sub-commands expose each step
explicitly. The :func:`main` function is the console-script entry point
declared in ``pyproject.toml``; it installs signal handlers and turns
unexpected exceptions into a crash log under the data directory.

See Also:
    :mod:`storycli.config`: Credential document and precedence resolution.
    :mod:`storycli.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

import httpx
import typer

from storycli import __version__
from storycli.auth.device_flow import initiate
from storycli.auth.poller import poll_until_authorized
from storycli.completion.client import CompletionClient
from storycli.config import (
    CredentialStore,
    resolve_config_path,
    resolve_proxy_url,
)
from storycli.exceptions import (
    AuthPendingError,
    AuthRequiredError,
    CompletionError,
    InvalidUsageError,
    StorycliError,
)
from storycli.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED
from storycli.models import DEFAULT_POLL_INTERVAL
from storycli.output import (
    OutputManager,
    error,
    info,
    print_data,
    print_table,
    set_output,
    success,
    suggest,
)
from storycli.prompt import TITLE_QUESTION, build_story_prompt, prompt_line
from storycli.transport import build_client


app = typer.Typer(
    name="storycli",
    help="Draft user stories with GitHub Copilot.",
    add_completion=False,
    rich_markup_mode="rich",
)


# ------------------------------------------------------------------ #
# Flows
# ------------------------------------------------------------------ #


def run_device_flow(
    store: CredentialStore, client: httpx.Client, wait: bool = True
) -> str:
    """Start the device flow and, unless *wait* is off, poll until authorized.

    Returns:
        The new access token.

    Raises:
        AuthInitError: If the device code request fails.
        AuthPendingError: If *wait* is off; the codes are stored and
            ``storycli login --resume`` continues polling later.
    """
    authorization = initiate(store, client)
    info(
        f"Please open {authorization.verification_uri} and enter the code "
        f"{authorization.user_code}"
    )
    if not wait:
        suggest("After authorizing, run: storycli login --resume")
        raise AuthPendingError("Device authorization pending")
    return _poll(store, client, authorization.interval)


def resume_device_flow(store: CredentialStore, client: httpx.Client) -> str:
    """Continue polling with the device code stored by an earlier run.

    Raises:
        AuthRequiredError: If no device code is stored.
    """
    credentials = store.credentials
    if not credentials.device_code:
        raise AuthRequiredError("No device code stored. Run: storycli login")
    info(
        f"Waiting for authorization of code {credentials.user_code} "
        f"at {credentials.verification_uri}"
    )
    return _poll(store, client, DEFAULT_POLL_INTERVAL)


def _poll(store: CredentialStore, client: httpx.Client, interval: float) -> str:
    token = poll_until_authorized(store, client, interval)
    info("Please run the command again.")
    return token


def run_story(
    store: CredentialStore,
    client: httpx.Client,
    title: Optional[str] = None,
    no_input: bool = False,
) -> str:
    """Ask for a title (unless given), generate the story, and print it to stdout.

    Raises:
        AuthRequiredError: If no access token is stored. No request is sent.
        InvalidUsageError: If a title is needed but prompting is disabled.
        BearerRefreshError, CompletionError, DecodeError: From the
            completion client.
    """
    if not store.credentials.access_token:
        raise AuthRequiredError("Access token not found. Run: storycli login")
    if title is None:
        if no_input:
            raise InvalidUsageError("A story title is required; pass --title")
        title = prompt_line(TITLE_QUESTION)
    if not title.strip():
        raise InvalidUsageError("Story title must not be empty")

    result = CompletionClient(store, client).complete(build_story_prompt(title))
    if not result:
        raise CompletionError("Failed to generate user story.")
    print_data(result)
    return result


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _open_store(ctx: typer.Context) -> CredentialStore:
    return CredentialStore(resolve_config_path(ctx.obj.get("config")))


@contextmanager
def _http_client(store: CredentialStore) -> Iterator[httpx.Client]:
    with build_client(resolve_proxy_url(store.credentials)) as client:
        yield client


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Report :class:`StorycliError` on stderr and exit with its code."""
    try:
        yield
    except StorycliError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _format_expiry(expires_at: Optional[float]) -> str:
    if expires_at is None:
        return "missing"
    moment = datetime.fromtimestamp(expires_at, tz=timezone.utc)
    now = datetime.now(timezone.utc)
    state = "valid until" if now < moment else "expired at"
    return f"{state} {moment.isoformat(timespec='seconds')}"


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"storycli {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Credential document path (default ./.env.yaml)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output for status."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    no_input: bool = typer.Option(
        False, "--no-input", help="Disable interactive prompts."
    ),
    title: Optional[str] = typer.Option(
        None, "--title", "-t", help="Story title; skips the prompt."
    ),
) -> None:
    """Sign in on first run, then draft user stories.

    Initialises the global :class:`~storycli.output.OutputManager` from CLI
    flags and stores shared options in ``ctx.obj``. Without a sub-command,
    runs the device flow when no access token is stored and the story
    prompt otherwise.
    """
    set_output(
        OutputManager(
            no_color=no_color, quiet=quiet, verbose=verbose, json_output=json_output
        )
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["no_input"] = no_input

    if ctx.invoked_subcommand is not None:
        return

    with _handle_errors():
        store = _open_store(ctx)
        with _http_client(store) as client:
            if store.credentials.access_token:
                run_story(store, client, title=title, no_input=no_input)
            elif no_input:
                raise AuthRequiredError("Access token not found. Run: storycli login")
            else:
                info("Access token not found. Initiating device code flow...")
                run_device_flow(store, client)


@app.command("login")
def login_command(
    ctx: typer.Context,
    no_wait: bool = typer.Option(
        False, "--no-wait", help="Print the code and exit without polling."
    ),
    resume: bool = typer.Option(
        False, "--resume", help="Keep polling with the stored device code."
    ),
) -> None:
    """Sign in with the GitHub device flow, even if a token is already stored."""
    if no_wait and resume:
        error("--no-wait and --resume cannot be combined.")
        raise typer.Exit(code=InvalidUsageError.exit_code)

    with _handle_errors():
        store = _open_store(ctx)
        with _http_client(store) as client:
            if resume:
                resume_device_flow(store, client)
            else:
                run_device_flow(store, client, wait=not no_wait)


@app.command("story")
def story_command(
    ctx: typer.Context,
    title: Optional[str] = typer.Argument(
        None, help="Story title. Prompted for when omitted."
    ),
) -> None:
    """Generate a user story for a title."""
    with _handle_errors():
        store = _open_store(ctx)
        with _http_client(store) as client:
            run_story(store, client, title=title, no_input=ctx.obj["no_input"])


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show which credentials are stored. Secrets are never printed.

    Exits 0 when signed in, 4 while a device code awaits authorization,
    and 3 when the device flow has not been started.
    """
    with _handle_errors():
        store = _open_store(ctx)
        creds = store.credentials
        rows = [
            ["document", str(store.path)],
            ["clientId", creds.client_id or "missing"],
            ["proxyUrl", creds.proxy_url or "none"],
            ["deviceCode", "present" if creds.device_code else "missing"],
            ["userCode", creds.user_code or "missing"],
            ["verification_uri", creds.verification_uri or "missing"],
            ["accessToken", "present" if creds.access_token else "missing"],
            ["bearerToken", _format_expiry(creds.expires_at)],
        ]
        print_table(["key", "state"], rows, title="storycli credentials")

        if creds.access_token:
            success("Signed in.")
        elif creds.device_code:
            raise AuthPendingError("Device authorization pending. Run: storycli login --resume")
        else:
            raise AuthRequiredError("Not signed in. Run: storycli login")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from storycli.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``storycli`` console script.

    Unhandled :class:`~storycli.exceptions.StorycliError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        if isinstance(exc, StorycliError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
