"""Session cookie attributes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Any, Literal, Mapping
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import SessionHydrationError

# Characters encodeURIComponent leaves alone besides alphanumerics and "-_.~".
_COOKIE_SAFE = "!*'()"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_expires(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            return _as_utc(datetime.fromisoformat(text))
        except ValueError as e:
            raise SessionHydrationError(f"invalid cookie expiry {value!r}") from e
    raise SessionHydrationError(f"invalid cookie expiry {value!r}")


class CookieOptions(BaseModel):
    """Cookie policy applied to every freshly generated session."""

    model_config = ConfigDict(extra="forbid")

    path: str = "/"
    http_only: bool = True
    secure: bool | Literal["auto"] = False
    domain: str | None = None
    same_site: bool | Literal["strict", "lax", "none"] | None = None
    max_age: float | None = None  # seconds
    expires: datetime | None = None

    @field_validator("same_site", "secure", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class SessionCookie:
    """Set-Cookie attributes of one session.

    ``expires`` is the absolute expiry (``None`` means a browser-session
    cookie). ``original_max_age`` is the relative lifetime the cookie was
    configured with; it survives round trips through the store so
    :meth:`reset_max_age` can slide the expiry forward.
    """

    def __init__(
        self,
        *,
        path: str = "/",
        http_only: bool = True,
        secure: bool = False,
        domain: str | None = None,
        same_site: bool | str | None = None,
        max_age: float | None = None,
        expires: datetime | None = None,
        original_max_age: float | None = None,
    ) -> None:
        self.path = path
        self.http_only = http_only
        self.secure = secure
        self.domain = domain
        self.same_site = same_site
        self.original_max_age = original_max_age
        self._expires: datetime | None = None
        if expires is not None:
            self.expires = expires
        if max_age is not None:
            self.max_age = max_age

    @classmethod
    def from_options(cls, options: CookieOptions) -> SessionCookie:
        return cls(
            path=options.path,
            http_only=options.http_only,
            secure=options.secure is True,
            domain=options.domain,
            same_site=options.same_site,
            max_age=options.max_age,
            expires=options.expires,
        )

    @classmethod
    def from_dict(cls, data: Any) -> SessionCookie:
        """Rebuild cookie attributes from their persisted form."""
        if not isinstance(data, Mapping):
            raise SessionHydrationError("session record has no cookie")
        cookie = cls(
            path=data.get("path", "/"),
            http_only=data.get("http_only", True),
            secure=data.get("secure", False),
            domain=data.get("domain"),
            same_site=data.get("same_site"),
        )
        cookie.expires = parse_expires(data.get("expires"))
        cookie.original_max_age = data.get("original_max_age")
        return cookie

    @property
    def expires(self) -> datetime | None:
        return self._expires

    @expires.setter
    def expires(self, value: datetime | None) -> None:
        self._expires = None if value is None else _as_utc(value)

    @property
    def max_age(self) -> float | None:
        """Seconds left until expiry, or ``None`` for a browser-session cookie."""
        if self._expires is None:
            return None
        return (self._expires - _now()).total_seconds()

    @max_age.setter
    def max_age(self, seconds: float | None) -> None:
        if seconds is None:
            self._expires = None
            self.original_max_age = None
            return
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            raise TypeError("max_age must be a number of seconds")
        self._expires = _now() + timedelta(seconds=seconds)
        self.original_max_age = seconds

    def reset_max_age(self) -> None:
        if self.original_max_age is not None:
            self.max_age = self.original_max_age

    def fingerprint(self) -> tuple[Any, ...]:
        # Sliding expiry drifts every request, so only absolute expiry counts.
        expires = self._expires if self.original_max_age is None else None
        return (
            self.path,
            self.http_only,
            self.secure,
            self.domain,
            self.same_site,
            self.original_max_age,
            expires,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_max_age": self.original_max_age,
            "expires": self._expires.isoformat() if self._expires else None,
            "secure": self.secure,
            "http_only": self.http_only,
            "domain": self.domain,
            "path": self.path,
            "same_site": self.same_site,
        }

    def serialize(self, name: str, value: str) -> str:
        """Build a Set-Cookie header value."""
        parts = [f"{name}={quote(value, safe=_COOKIE_SAFE)}"]
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self._expires is not None:
            expires = self._expires.astimezone(timezone.utc)
            parts.append(f"Expires={format_datetime(expires, usegmt=True)}")
        if self.http_only:
            parts.append("HttpOnly")
        if self.secure:
            parts.append("Secure")
        if self.same_site:
            same_site = "Strict" if self.same_site is True else str(self.same_site).capitalize()
            parts.append(f"SameSite={same_site}")
        return "; ".join(parts)

    def __repr__(self) -> str:
        return f"SessionCookie({self.to_dict()!r})"
