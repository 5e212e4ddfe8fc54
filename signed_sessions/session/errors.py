"""Session error taxonomy."""

from __future__ import annotations


class SessionError(Exception):
    """Base class for session middleware errors."""


class SessionConfigError(SessionError, ValueError):
    """Invalid middleware options, or no signing secret for a request."""


class SessionNotFoundError(SessionError, LookupError):
    """Raised by a store when a session record does not exist.

    The middleware treats this as "no session" rather than a failure.
    """

    code = "ENOENT"


class SessionHydrationError(SessionError, ValueError):
    """A persisted session record could not be turned back into a session."""


def is_not_found(exc: BaseException) -> bool:
    return isinstance(exc, SessionNotFoundError) or getattr(exc, "code", None) == "ENOENT"
