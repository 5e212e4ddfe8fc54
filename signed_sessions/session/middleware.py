"""ASGI server-side session middleware.

Stores a signed session ID in a cookie and keeps the session data in a
:class:`~.backend.SessionStore`. The session is attached to
``request.state.session`` and committed to the store exactly once, when the
response's final body message passes through, before the client receives
the last byte.
"""

from __future__ import annotations

import inspect
import logging
import warnings
from functools import partial
from typing import Any, Awaitable, Callable, Mapping, Sequence

from pydantic import ValidationError
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .backend import InMemoryStore, SessionStore
from .context import COOKIE_NAME, SessionContext, SessionPolicy, generate_session_id
from .cookie import CookieOptions
from .errors import SessionConfigError, is_not_found
from .signing import get_session_id, sign

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[Scope, Exception], Any]


class SessionMiddleware:
    """ASGI middleware for server-side sessions.

    Options:
        secret: signing secret, or a list of them (first signs, all verify).
            When omitted, ``scope["state"]["secret"]`` set by an upstream
            middleware is used.
        store: session store (default: :class:`InMemoryStore`).
        name: cookie name.
        genid: ``(SessionContext) -> str`` identifier generator.
        resave: write unmodified sessions back at the end of every request.
        save_uninitialized: persist (and send a cookie for) new sessions
            that were never modified.
            Both default to True, with a DeprecationWarning when omitted.
        rolling: send the cookie on every response to refresh its expiry.
        unset: ``"destroy"`` deletes the stored session when a handler sets
            ``request.state.session = None``; ``"keep"`` ignores it.
        proxy: trust ``X-Forwarded-Proto`` when deciding if a request is
            secure.
        cookie: :class:`CookieOptions` or a dict of them.
        propagate_touch: let ``session.touch()`` call ``store.touch()``;
            leaving it off is deprecated.
        on_error: ``(scope, exc)`` called (and awaited if needed) with store
            errors raised while committing; defaults to logging them.
    """

    def __init__(
        self,
        app: ASGIApp,
        secret: str | Sequence[str] | None = None,
        store: SessionStore | None = None,
        name: str = COOKIE_NAME,
        genid: Callable[[SessionContext], str] | None = None,
        resave: bool | None = None,
        save_uninitialized: bool | None = None,
        rolling: bool = False,
        unset: str = "keep",
        proxy: bool | None = None,
        cookie: CookieOptions | Mapping[str, Any] | None = None,
        propagate_touch: bool | None = None,
        on_error: ErrorHandler | None = None,
    ) -> None:
        self.app = app

        genid = genid or generate_session_id
        if not callable(genid):
            raise SessionConfigError("genid option must be a callable")

        if unset not in ("keep", "destroy"):
            raise SessionConfigError('unset option must be "destroy" or "keep"')

        if resave is None:
            warnings.warn(
                "undefined resave option; provide resave option",
                DeprecationWarning,
                stacklevel=2,
            )
            resave = True

        if save_uninitialized is None:
            warnings.warn(
                "undefined save_uninitialized option; provide save_uninitialized option",
                DeprecationWarning,
                stacklevel=2,
            )
            save_uninitialized = True

        if not propagate_touch:
            warnings.warn(
                "falsy propagate_touch option; set to True",
                DeprecationWarning,
                stacklevel=2,
            )

        if secret is None:
            secrets: tuple[str, ...] = ()
            warnings.warn(
                "no secret option; relying on scope['state']['secret']",
                DeprecationWarning,
                stacklevel=2,
            )
        elif isinstance(secret, str):
            secrets = (secret,)
        else:
            secrets = tuple(secret)
            if not secrets:
                raise SessionConfigError("secret option list must contain one or more strings")

        try:
            cookie_options = (
                cookie
                if isinstance(cookie, CookieOptions)
                else CookieOptions.model_validate(cookie or {})
            )
        except ValidationError as e:
            raise SessionConfigError(f"invalid cookie option: {e}") from e

        self.store = store or InMemoryStore()
        self.policy = SessionPolicy(
            store=self.store,
            name=name,
            secrets=secrets,
            genid=genid,
            resave=resave,
            save_uninitialized=save_uninitialized,
            rolling=bool(rolling),
            unset_destroy=unset == "destroy",
            proxy=proxy,
            cookie=cookie_options,
            propagate_touch=bool(propagate_touch),
        )
        self.on_error = on_error

        self.store_ready = True
        self.store.on("disconnect", partial(self._set_store_ready, False))
        self.store.on("connect", partial(self._set_store_ready, True))

    def _set_store_ready(self, ready: bool) -> None:
        self.store_ready = ready

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})

        # Already handled by an outer instance.
        if state.get("session") is not None:
            await self.app(scope, receive, send)
            return

        if not self.store_ready:
            logger.debug("store is disconnected")
            await self.app(scope, receive, send)
            return

        path = scope.get("path") or "/"
        if not path.startswith(self.policy.cookie.path or "/"):
            await self.app(scope, receive, send)
            return

        secrets = self.policy.secrets or ((state["secret"],) if state.get("secret") else ())
        if not secrets:
            raise SessionConfigError("secret option required for sessions")

        context = SessionContext(scope, self.policy, secrets)
        state["session_store"] = self.store
        await self._load_session(context)

        committer = ResponseCommitter(context, send, self._report)
        await self.app(scope, receive, committer.send)

    async def _load_session(self, context: SessionContext) -> None:
        context.cookie_id = context.session_id = get_session_id(
            context.scope, self.policy.name, context.secrets
        )

        if not context.session_id:
            logger.debug("no SID sent, generating session")
            context.generate()
            context.begin(hydrated=False)
            return

        logger.debug("fetching %s", context.session_id)
        try:
            record = await self.store.get(context.session_id)
        except Exception as e:
            if not is_not_found(e):
                logger.debug("error fetching session: %r", e)
                raise
            record = None

        if not record:
            logger.debug("no session found")
            context.generate()
            context.begin(hydrated=False)
        else:
            logger.debug("session found")
            self.store.create_session(context, record)
            context.begin(hydrated=True)

    async def _report(self, scope: Scope, exc: Exception) -> None:
        if self.on_error is None:
            logger.error("Session commit failed: %s", exc, exc_info=exc)
            return
        try:
            result = self.on_error(scope, exc)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Session error handler failed")


class ResponseCommitter:
    """Wraps ``send`` to commit the session once, before the final bytes.

    ``http.response.start`` gets the Set-Cookie header when warranted. The
    first body message without ``more_body`` runs :meth:`end`; anything sent
    after it is dropped.
    """

    def __init__(
        self,
        context: SessionContext,
        send: Send,
        report: Callable[[Scope, Exception], Awaitable[None]],
    ) -> None:
        self.context = context
        self._send = send
        self._report = report
        self._content_length: int | None = None
        self.ended = False

    async def send(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self._content_length = _content_length(message)
            self._set_cookie(message)
            await self._send(message)
        elif message["type"] == "http.response.body":
            if self.ended:
                logger.debug("response already ended, dropping body")
                return
            if message.get("more_body", False):
                await self._send(message)
                return
            await self.end(message.get("body") or b"")
        else:
            await self._send(message)

    def _set_cookie(self, message: Message) -> None:
        context = self.context
        session = context.session
        if session is None:
            logger.debug("no session")
            return

        if not context.should_set_cookie():
            return

        if session.cookie.secure and not context.is_secure():
            logger.debug("not secured")
            return

        context.auto_touch()

        value = sign(context.session_id, context.secrets[0])
        header = session.cookie.serialize(context.policy.name, value)
        logger.debug("set-cookie %s", header)
        message.setdefault("headers", [])
        MutableHeaders(scope=message).append("set-cookie", header)

    def _decide(self) -> Callable[[], Awaitable[Any]] | None:
        """Pick at most one of destroy, save or touch."""
        context = self.context

        if context.should_destroy():
            logger.debug("destroying %s", context.session_id)
            return partial(context.store.destroy, context.session_id)

        session = context.session
        if session is None:
            logger.debug("no session")
            return None

        context.auto_touch()

        if context.should_save():
            return session.save

        if context.store.supports_touch and context.should_touch():
            logger.debug("touching %s", context.session_id)
            return partial(context.store.touch, context.session_id, session.to_record())

        return None

    async def end(self, body: bytes = b"") -> bool:
        """Commit the session, then finish the response.

        Returns False, and does nothing, if the response already ended.
        """
        if self.ended:
            return False
        self.ended = True

        commit = self._decide()
        if commit is None:
            await self._send_body(body, more_body=False)
            return True

        try:
            tail = await self._write_top(body)
        finally:
            await self._commit(commit)
        await self._send_body(tail, more_body=False)
        return True

    async def _write_top(self, body: bytes) -> bytes:
        """Send what can go out before the commit; return what must wait."""
        if not body:
            return b""
        if self._content_length:
            # Hold back one byte so a length-delimited response stays open.
            logger.debug("split response")
            await self._send_body(body[:-1], more_body=True)
            return body[-1:]
        await self._send_body(body, more_body=True)
        return b""

    async def _commit(self, commit: Callable[[], Awaitable[Any]]) -> None:
        try:
            await commit()
        except Exception as e:
            await self._report(self.context.scope, e)

    async def _send_body(self, body: bytes, *, more_body: bool) -> None:
        await self._send({"type": "http.response.body", "body": body, "more_body": more_body})


def _content_length(message: Message) -> int | None:
    value = Headers(raw=message.get("headers") or []).get("content-length")
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None
