"""Shared test fixtures for storycli.

Provides isolated credential documents, output-state resets, and a CLI
runner. HTTP helpers live in :mod:`helpers`. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from storycli.config import CredentialStore
from storycli.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless output manager for tests that ignore output."""
    output = OutputManager(no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_DATA_HOME into tmp_path, clears all STORYCLI_* environment
    variables, and changes the working directory to tmp_path so the
    default ``./.env.yaml`` lands there.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["STORYCLI_CONFIG", "STORYCLI_CLIENT_ID", "STORYCLI_PROXY_URL"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def write_document(isolated_config: Path) -> Callable[..., Path]:
    """Write a credential document into the isolated working directory."""

    def _write(**values: Any) -> Path:
        path = isolated_config / ".env.yaml"
        path.write_text(yaml.safe_dump(values), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def store(write_document: Callable[..., Path]) -> CredentialStore:
    """A credential store with a client ID and nothing else."""
    return CredentialStore(write_document(clientId="Iv1.test-client"))


@pytest.fixture
def signed_in_store(write_document: Callable[..., Path]) -> CredentialStore:
    """A credential store that already holds an access token."""
    return CredentialStore(
        write_document(clientId="Iv1.test-client", accessToken="gho_access")
    )


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
