"""Pydantic models shared across storycli.

**Stored state** -- :class:`Credentials`, the single record persisted in the
YAML credential document by :class:`~storycli.config.CredentialStore`.
Field aliases match the keys written to disk (``clientId``, ``accessToken``,
``verification_uri``...), so documents produced by earlier versions of the
tool load unchanged.

**Wire models** -- :class:`DeviceAuthorization` (device-code response) and
:class:`CompletionRequest` (completion request body).
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_POLL_INTERVAL = 5
"""Poll interval in seconds used when the provider sends none, or a non-positive one."""

# Epoch values above this are milliseconds: 10**11 seconds is year 5138.
_MILLISECONDS_THRESHOLD = 10**11


def to_epoch_seconds(value: Any) -> Optional[Union[int, float]]:
    """Coerce an expiry timestamp to epoch seconds.

    Accepts ints, floats, and numeric strings. Values that are clearly in
    milliseconds are divided down so that comparisons against
    :func:`time.time` always happen in the same unit.

    Args:
        value: Raw ``expires_at`` value from a token response or the
            credential document.

    Returns:
        The timestamp in seconds, or ``None`` for empty input.

    Raises:
        ValueError: If *value* is not numeric.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid expiry timestamp: {value!r}")
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text)
        except ValueError:
            value = float(text)
    if not isinstance(value, (int, float)):
        raise ValueError(f"Invalid expiry timestamp: {value!r}")
    if value > _MILLISECONDS_THRESHOLD:
        seconds = value / 1000
        return int(seconds) if float(seconds).is_integer() else seconds
    return value


# --- Stored state ---


class Credentials(BaseModel):
    """Process-wide credential record.

    Loaded once at startup, mutated in place by the auth and completion
    components, and flushed to disk after every mutation. Fields are only
    ever added or overwritten, never removed. Unknown keys found in the
    document are kept in ``model_extra`` and written back on flush.

    Attributes:
        client_id: OAuth application client ID. Required for any network call.
        proxy_url: Optional forward proxy used for every request in a run.
        device_code: Device code from the current authorization attempt.
        user_code: Code the operator types at the verification page.
        verification_uri: Page where the operator enters ``user_code``.
        access_token: Long-lived GitHub OAuth token.
        bearer_token: Short-lived Copilot token.
        expires_at: Expiry of ``bearer_token`` in epoch seconds.
    """

    # YAML reads bare digits as numbers; codes and tokens stay strings.
    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        validate_assignment=True,
        coerce_numbers_to_str=True,
    )

    client_id: Optional[str] = Field(default=None, alias="clientId")
    proxy_url: Optional[str] = Field(default=None, alias="proxyUrl")
    device_code: Optional[str] = Field(default=None, alias="deviceCode")
    user_code: Optional[str] = Field(default=None, alias="userCode")
    verification_uri: Optional[str] = Field(default=None, alias="verification_uri")
    access_token: Optional[str] = Field(default=None, alias="accessToken")
    bearer_token: Optional[str] = Field(default=None, alias="bearerToken")
    expires_at: Optional[Union[int, float]] = Field(default=None, alias="expiresAt")

    @field_validator("expires_at", mode="before")
    @classmethod
    def _normalise_expiry(cls, value: Any) -> Any:
        return to_epoch_seconds(value)

    def bearer_valid_at(self, now: float) -> bool:
        """Return ``True`` while the bearer token has not expired at *now*.

        Args:
            now: Current wall-clock time in epoch seconds.
        """
        return self.expires_at is not None and now < self.expires_at

    def to_document(self) -> dict[str, Any]:
        """Serialise to the flat key/value layout stored on disk.

        Unset fields are omitted so that absence keeps meaning "not yet
        obtained" after a reload.
        """
        return self.model_dump(by_alias=True, exclude_none=True)


# --- Wire models ---


class DeviceAuthorization(BaseModel):
    """Response of the device authorization endpoint (:rfc:`8628` section 3.2)."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    device_code: str
    user_code: str
    verification_uri: str = ""
    interval: float = Field(
        default=DEFAULT_POLL_INTERVAL, description="Provider poll interval in seconds"
    )
    expires_in: Optional[int] = None

    @field_validator("interval", mode="before")
    @classmethod
    def _positive_interval(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_POLL_INTERVAL
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return value
        return seconds if seconds > 0 else DEFAULT_POLL_INTERVAL


class CompletionRequest(BaseModel):
    """Body of a streamed completion request.

    Sampling parameters are fixed: deterministic (``temperature=0``), one
    sample, at most 1024 tokens, stopping at a ``---`` separator.
    """

    prompt: str
    max_tokens: int = 1024
    n: int = 1
    temperature: float = 0
    top_p: float = 1
    stop: list[str] = Field(default_factory=lambda: ["---"])
    stream: bool = True
