"""Exception types raised by glitchy."""
from __future__ import annotations


class GlitchyError(Exception):
    """Base class for all glitchy errors."""


class ConfigError(GlitchyError):
    """Startup configuration is missing or malformed.

    Fatal: the process must not start serving requests.
    """


class SigningError(GlitchyError):
    """The JWT signing primitive failed on an otherwise valid key."""


class AuthError(GlitchyError):
    """A GitHub authentication call failed.

    Raised when redeeming a JWT for an installation token or listing
    installations fails at the network or API level. Recoverable at the
    call site: the current unit of work is abandoned, the server keeps going.

    Attributes:
        installation_id: The installation the call was made for, if any.
        cause: The underlying exception.
    """

    def __init__(
        self,
        message: str,
        installation_id: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.installation_id = installation_id
        self.cause = cause

    def __str__(self) -> str:
        text = super().__str__()
        if self.installation_id is not None:
            text = f"{text} (installation {self.installation_id})"
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text


class ReviewError(GlitchyError):
    """The Claude API call failed or returned an unusable response."""
