"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~storycli.exceptions.StorycliError` subclass.
Shell wrappers can tell "needs sign-in" apart from "sign-in pending" and
from a hard failure without parsing stderr.

Example::

    $ storycli --no-input
    $ echo $?
    3   # EXIT_AUTH_REQUIRED -- no access token stored yet
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing input."""

EXIT_AUTH_REQUIRED = 3
"""No access token is stored; the device flow has to run first."""

EXIT_AUTH_PENDING = 4
"""A device code was issued but the user has not authorised it yet."""

EXIT_AUTH_FAILURE = 5
"""A device-code, token-exchange, or bearer-token request failed."""

EXIT_SERVER_ERROR = 6
"""The completion endpoint rejected the request."""

EXIT_DECODE_ERROR = 7
"""The completion stream could not be decoded."""

EXIT_INTERRUPTED = 130
"""The operator pressed Ctrl-C."""
