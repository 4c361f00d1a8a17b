"""Exception hierarchy for storycli.

All exceptions inherit from :class:`StorycliError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`storycli.exit_codes`.
The top-level error handler in :func:`storycli.app.main` catches
``StorycliError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    StorycliError (exit 1)
    +-- InvalidUsageError       (exit 2)
    +-- ConfigError             (exit 1)
    +-- AuthRequiredError       (exit 3)
    +-- AuthPendingError        (exit 4)
    +-- AuthError               (exit 5)
    |   +-- AuthInitError
    |   +-- TokenExchangeError
    |   +-- BearerRefreshError
    +-- CompletionError         (exit 6)
    +-- DecodeError             (exit 7)
"""

from storycli.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_AUTH_PENDING,
    EXIT_AUTH_REQUIRED,
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SERVER_ERROR,
)


class StorycliError(Exception):
    """Base exception for all storycli errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`storycli.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(StorycliError):
    """Raised for invalid CLI arguments or when required input is unavailable."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(StorycliError):
    """Raised for configuration problems (unreadable document, invalid YAML, missing clientId)."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthRequiredError(StorycliError):
    """Raised when a command needs an access token and none is stored."""

    exit_code = EXIT_AUTH_REQUIRED


class AuthPendingError(StorycliError):
    """Raised when a device code was issued but polling was not completed."""

    exit_code = EXIT_AUTH_PENDING


class AuthError(StorycliError):
    """Base class for failures talking to the identity or token endpoints."""

    exit_code = EXIT_AUTH_FAILURE


class AuthInitError(AuthError):
    """Raised when the device-code request is rejected or malformed."""


class TokenExchangeError(AuthError):
    """Raised when a device-code exchange attempt fails.

    The authorization poller treats this as transient and keeps polling.
    """


class BearerRefreshError(AuthError):
    """Raised when a Copilot bearer token cannot be obtained."""


class CompletionError(StorycliError):
    """Raised when the completion endpoint returns an error status."""

    exit_code = EXIT_SERVER_ERROR


class DecodeError(StorycliError):
    """Raised when a line of the completion stream is not valid JSON."""

    exit_code = EXIT_DECODE_ERROR
