"""Request-scoped commit state.

One :class:`SessionContext` exists per request. The middleware and the
request's :class:`~.session.Session` share it, so ``session.save()`` and
``session.touch()`` record what they did where the end-of-response logic
can see it, even after the session object is replaced by ``reload()`` or
``regenerate()``.
"""

from __future__ import annotations

import logging
import secrets as _secrets
from dataclasses import dataclass
from typing import Any, Callable, MutableMapping, Sequence

from starlette.datastructures import Headers

from .backend import SessionStore
from .cookie import CookieOptions, SessionCookie
from .hashing import content_hash
from .session import Session

logger = logging.getLogger(__name__)

COOKIE_NAME = "connect.sid"


def generate_session_id(context: SessionContext) -> str:
    return _secrets.token_urlsafe(24)


@dataclass(frozen=True)
class SessionPolicy:
    """Validated middleware options shared by every request."""

    store: SessionStore
    name: str
    secrets: tuple[str, ...]
    genid: Callable[[SessionContext], str]
    resave: bool
    save_uninitialized: bool
    rolling: bool
    unset_destroy: bool
    proxy: bool | None
    cookie: CookieOptions
    propagate_touch: bool


class SessionContext:
    """Commit state of one request/response cycle."""

    def __init__(
        self,
        scope: MutableMapping[str, Any],
        policy: SessionPolicy,
        secrets: Sequence[str],
    ) -> None:
        self.scope = scope
        self.policy = policy
        self.secrets = list(secrets)
        self.cookie_id: str | None = None
        self._session_id: str | None = None
        self.original_id: str | None = None
        self.original_hash: str | None = None
        self.original_cookie: tuple[Any, ...] | None = None
        self.saved_hash: str | None = None
        self.touched = False
        self.touched_store = False

    @classmethod
    def detached(cls, store: SessionStore, session_id: str) -> SessionContext:
        """A context outside of any request, for working with stored sessions."""
        policy = SessionPolicy(
            store=store,
            name=COOKIE_NAME,
            secrets=(),
            genid=generate_session_id,
            resave=True,
            save_uninitialized=True,
            rolling=False,
            unset_destroy=False,
            proxy=None,
            cookie=CookieOptions(),
            propagate_touch=False,
        )
        scope = {"type": "http", "path": "/", "headers": [], "scheme": "http"}
        context = cls(scope, policy, ())
        context.cookie_id = context.session_id = session_id
        return context

    @property
    def state(self) -> dict[str, Any]:
        return self.scope.setdefault("state", {})

    @property
    def store(self) -> SessionStore:
        return self.policy.store

    @property
    def session(self) -> Session | None:
        return self.state.get("session")

    @session.setter
    def session(self, value: Session | None) -> None:
        self.state["session"] = value

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @session_id.setter
    def session_id(self, value: str | None) -> None:
        self._session_id = value
        self.state["session_id"] = value

    def generate(self) -> Session:
        """Mint an identifier and attach a fresh, empty session."""
        self.session_id = self.policy.genid(self)
        cookie = SessionCookie.from_options(self.policy.cookie)
        if self.policy.cookie.secure == "auto":
            cookie.secure = self.is_secure()
        session = Session(self, self.session_id, cookie)
        self.session = session
        return session

    def begin(self, *, hydrated: bool) -> None:
        """Snapshot the session as it was when the request started."""
        session = self.session
        self.original_id = self.session_id
        self.original_hash = content_hash(session.content())
        self.original_cookie = session.cookie.fingerprint()
        # Without resave, a record that came from the store counts as saved.
        if hydrated and not self.policy.resave:
            self.saved_hash = self.original_hash

    def mark_saved(self, session: Session) -> None:
        self.saved_hash = content_hash(session.content())

    def is_modified(self, session: Session) -> bool:
        return self.original_id != session.id or self.original_hash != content_hash(
            session.content()
        )

    def is_saved(self, session: Session) -> bool:
        return self.original_id == session.id and self.saved_hash == content_hash(
            session.content()
        )

    def is_secure(self) -> bool:
        if self.scope.get("scheme") in ("https", "wss"):
            return True
        if self.policy.proxy is not True:
            return False
        header = Headers(scope=self.scope).get("x-forwarded-proto", "")
        return header.split(",", 1)[0].strip().lower() == "https"

    def auto_touch(self) -> None:
        # The implicit touch never reaches the store; see should_touch().
        if self.touched or self.session is None:
            return
        self.session.reset_max_age()
        self.touched = True

    def should_propagate_touch(self, session: Session) -> bool:
        # Never touch a record that was not, and will not be, written.
        return (
            self.policy.propagate_touch
            and self.store.supports_touch
            and (
                self.policy.save_uninitialized
                or self.is_modified(session)
                or self.is_saved(session)
            )
        )

    def _has_valid_id(self) -> bool:
        if isinstance(self.session_id, str):
            return True
        logger.debug("session ignored because of bogus session id %r", self.session_id)
        return False

    def should_destroy(self) -> bool:
        return bool(self.session_id) and self.policy.unset_destroy and self.session is None

    def should_save(self) -> bool:
        if not self._has_valid_id():
            return False
        session = self.session
        if (
            not self.policy.save_uninitialized
            and self.saved_hash is None
            and self.cookie_id != self.session_id
        ):
            return self.is_modified(session)
        return not self.is_saved(session)

    def should_touch(self) -> bool:
        if not self._has_valid_id():
            return False
        return (
            not self.touched_store
            and self.cookie_id == self.session_id
            and not self.should_save()
        )

    def should_set_cookie(self) -> bool:
        if not self._has_valid_id():
            return False
        session = self.session
        if self.cookie_id != self.session_id:
            return self.policy.save_uninitialized or self.is_modified(session)
        return (
            self.policy.rolling
            or (session.cookie.expires is not None and self.is_modified(session))
            or session.cookie.fingerprint() != self.original_cookie
        )
