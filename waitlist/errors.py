"""Exception hierarchy shared by the registry service and the dispatch job.

Every error carries a ``message`` that is safe to show to an end user.
Internal detail (paths, transport replies) belongs in the log and in the
chained ``__cause__``, never in ``message``.
"""

from __future__ import annotations

from typing import Iterable, Optional


class WaitlistError(Exception):
    """Base class for all waitlist errors."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(WaitlistError):
    default_message = "Please provide a valid email address"


class AlreadyExists(WaitlistError):
    default_message = "This email is already subscribed!"


class StoreUnavailable(WaitlistError):
    """The registry could not be read or written."""

    default_message = "Subscriber registry is unavailable"


class InternalError(WaitlistError):
    pass


class ConfigurationError(WaitlistError):
    """Required configuration is missing or malformed."""

    default_message = "Missing configuration"

    def __init__(
        self,
        message: Optional[str] = None,
        missing: Iterable[str] = (),
    ) -> None:
        self.missing = list(missing)
        if message is None and self.missing:
            message = "Missing configuration. Please set " + ", ".join(
                self.missing
            )
        super().__init__(message)


class DispatchFailed(WaitlistError):
    default_message = "Failed to send welcome emails"


__all__ = [
    "WaitlistError",
    "InvalidInput",
    "AlreadyExists",
    "StoreUnavailable",
    "InternalError",
    "ConfigurationError",
    "DispatchFailed",
]
