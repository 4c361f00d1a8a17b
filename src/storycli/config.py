"""Credential document, path resolution, and atomic writes.

This module owns all persistent state for storycli:

* **Credential document** -- a flat YAML mapping (``.env.yaml`` in the
  working directory by default) holding ``clientId``, ``proxyUrl``, the
  device-flow codes, the GitHub access token, and the Copilot bearer token
  with its expiry. :class:`CredentialStore` loads it into a
  :class:`~storycli.models.Credentials` record and flushes it back after
  every mutation.
* **Precedence resolution** -- :func:`resolve_config_path`,
  :func:`resolve_client_id`, and :func:`resolve_proxy_url` merge CLI flags,
  environment variables, and document values.
* **Directory layout** -- :func:`get_data_dir` is XDG compliant on
  Linux/BSD and ``~/.storycli/`` elsewhere; crash logs live there.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so that a crash between two steps of the sign-in flow
never leaves a half-written document behind.
"""

from __future__ import annotations

import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from storycli.exceptions import ConfigError
from storycli.models import Credentials

_APP_NAME = "storycli"
_DEFAULT_DOCUMENT = ".env.yaml"

ENV_CONFIG = "STORYCLI_CONFIG"
ENV_CLIENT_ID = "STORYCLI_CLIENT_ID"
ENV_PROXY_URL = "STORYCLI_PROXY_URL"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG base directory layout (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/storycli/`` (default ``~/.local/share/storycli/``).
    On macOS/Windows: ``~/.storycli/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Precedence resolution ---


def resolve_config_path(cli_path: Optional[str] = None) -> Path:
    """Resolve the credential document path.

    Precedence (high to low):
        1. ``--config`` CLI flag
        2. ``STORYCLI_CONFIG`` environment variable
        3. ``./.env.yaml``
    """
    if cli_path:
        return Path(cli_path).expanduser()
    env_path = os.environ.get(ENV_CONFIG)
    if env_path:
        return Path(env_path).expanduser()
    return Path.cwd() / _DEFAULT_DOCUMENT


def resolve_client_id(credentials: Credentials) -> str:
    """Return the OAuth client ID: document value, then ``STORYCLI_CLIENT_ID``.

    Raises:
        ConfigError: If neither source provides a non-empty value.
    """
    client_id = credentials.client_id or os.environ.get(ENV_CLIENT_ID, "")
    if not client_id:
        raise ConfigError(
            f"No clientId configured. Add 'clientId' to the credential document "
            f"or set {ENV_CLIENT_ID}."
        )
    return client_id


def resolve_proxy_url(credentials: Credentials) -> Optional[str]:
    """Return the forward proxy URL: document value, then ``STORYCLI_PROXY_URL``."""
    return credentials.proxy_url or os.environ.get(ENV_PROXY_URL) or None


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* with
    ``0o600`` permissions, so tokens are never world-readable, even
    momentarily.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, 0o600)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Credential document ---


def load_document(path: Path) -> dict[str, Any]:
    """Read the YAML credential document.

    Returns:
        The parsed mapping, or an empty dict if the file does not exist or
        is empty.

    Raises:
        ConfigError: If the file cannot be read or is not a YAML mapping.
    """
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError) as exc:
        raise ConfigError(f"Invalid credential document at {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Invalid credential document at {path}: expected a mapping, "
            f"got {type(data).__name__}"
        )
    return data


class CredentialStore:
    """Durable key/value store backing the :class:`~storycli.models.Credentials` record.

    The record is loaded once in the constructor and mutated in place by
    the auth and completion components. :meth:`flush` writes the whole
    record atomically; :meth:`update` sets several fields and flushes in one
    step, which is how bearer token and expiry are always kept together.

    Args:
        path: Location of the YAML document.

    Example::

        store = CredentialStore(Path(".env.yaml"))
        store.set("accessToken", "gho_...")
        store.flush()
        assert store.get("accessToken") == "gho_..."
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        try:
            self._credentials = Credentials.model_validate(load_document(path))
        except ValidationError as exc:
            raise ConfigError(f"Invalid credential document at {path}: {exc}") from exc

    @property
    def path(self) -> Path:
        """The filesystem path of the credential document."""
        return self._path

    @property
    def credentials(self) -> Credentials:
        """The live credential record shared by every component."""
        return self._credentials

    def get(self, key: str) -> Any:
        """Return the value stored under document *key*, or ``None`` if absent.

        Both document keys (``accessToken``) and field names
        (``access_token``) are accepted.
        """
        return self._credentials.to_document().get(self._document_key(key))

    def set(self, key: str, value: Any) -> None:
        """Set document *key* in memory. Call :meth:`flush` to persist it.

        Raises:
            ConfigError: If *value* is invalid for a known field.
        """
        field = self._field_name(key)
        try:
            if field is not None:
                setattr(self._credentials, field, value)
            else:
                setattr(self._credentials, key, value)
        except ValidationError as exc:
            raise ConfigError(f"Invalid value for '{key}': {exc}") from exc

    def update(self, **fields: Any) -> None:
        """Set several fields (by field name or document key) and flush once."""
        for key, value in fields.items():
            self.set(key, value)
        self.flush()

    def flush(self) -> None:
        """Persist the record atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        text = yaml.safe_dump(
            self._credentials.to_document(), default_flow_style=False, sort_keys=False
        )
        _atomic_write(self._path, text)

    def _field_name(self, key: str) -> Optional[str]:
        fields = Credentials.model_fields
        if key in fields:
            return key
        for name, info in fields.items():
            if info.alias == key:
                return name
        return None

    def _document_key(self, key: str) -> str:
        info = Credentials.model_fields.get(key)
        if info is not None and info.alias:
            return info.alias
        return key
