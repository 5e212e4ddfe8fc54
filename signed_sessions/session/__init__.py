from .backend import InMemoryStore, SessionStore
from .context import SessionContext
from .cookie import CookieOptions, SessionCookie
from .dynamodb import DynamoDBSessionStore
from .errors import (
    SessionConfigError,
    SessionError,
    SessionHydrationError,
    SessionNotFoundError,
)
from .middleware import SessionMiddleware
from .session import Session

__all__ = [
    "SessionStore",
    "InMemoryStore",
    "DynamoDBSessionStore",
    "SessionMiddleware",
    "SessionContext",
    "Session",
    "SessionCookie",
    "CookieOptions",
    "SessionError",
    "SessionConfigError",
    "SessionNotFoundError",
    "SessionHydrationError",
]
