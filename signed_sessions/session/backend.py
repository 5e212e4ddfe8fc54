"""Session storage backends."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Mapping

from .cookie import SessionCookie, parse_expires
from .errors import SessionHydrationError
from .session import Session

if TYPE_CHECKING:
    from .context import SessionContext

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Base class for server-side session storage.

    Subclasses implement ``get``/``set``/``destroy`` and may add
    ``touch(session_id, record)`` to refresh expiry without rewriting
    content; the middleware detects it at setup. ``get`` returns ``None``
    (or raises :class:`~.errors.SessionNotFoundError`) for unknown ids.

    Stores that lose their connection call :meth:`mark_disconnected` and
    :meth:`mark_connected`; while disconnected, requests run without a
    session.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Callable[[], Any]]] = {}

    @abstractmethod
    async def get(self, session_id: str) -> dict[str, Any] | None:
        """Load a session record by ID. Returns None if not found or expired."""
        ...

    @abstractmethod
    async def set(self, session_id: str, record: dict[str, Any]) -> None:
        """Insert or replace a session record."""
        ...

    @abstractmethod
    async def destroy(self, session_id: str) -> None:
        """Delete a session record. Deleting a missing record is not an error."""
        ...

    @property
    def supports_touch(self) -> bool:
        return callable(getattr(self, "touch", None))

    def on(self, event: str, listener: Callable[[], Any]) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def emit(self, event: str) -> None:
        for listener in list(self._listeners.get(event, ())):
            listener()

    def mark_connected(self) -> None:
        self.emit("connect")

    def mark_disconnected(self) -> None:
        self.emit("disconnect")

    async def load(self, session_id: str) -> Session | None:
        """Fetch and hydrate a session outside of a request.

        Returns None for unknown ids. The session is bound to a detached
        context, so ``save()``, ``touch()`` and friends still reach this store.
        """
        from .context import SessionContext

        record = await self.get(session_id)
        if not record:
            return None
        context = SessionContext.detached(self, session_id)
        session = self.create_session(context, record)
        context.begin(hydrated=True)
        return session

    def create_session(self, context: SessionContext, record: Mapping[str, Any]) -> Session:
        """Hydrate a stored record into the request's session."""
        if not isinstance(record, Mapping):
            raise SessionHydrationError("session record must be a mapping")
        cookie = SessionCookie.from_dict(record.get("cookie"))
        session = Session(context, context.session_id, cookie, record)
        context.session = session
        return session

    async def regenerate(self, context: SessionContext) -> Session:
        """Destroy the request's session and replace it with a fresh one."""
        try:
            await self.destroy(context.session_id)
        finally:
            context.generate()
        return context.session


class InMemoryStore(SessionStore):
    """In-memory session store for development/testing.

    Not suitable for production — sessions are lost on restart and not
    shared across processes.
    """

    def __init__(self) -> None:
        super().__init__()
        self._sessions: dict[str, str] = {}

    def _load(self, session_id: str) -> dict[str, Any] | None:
        raw = self._sessions.get(session_id)
        if raw is None:
            return None
        record = json.loads(raw)
        cookie = record.get("cookie")
        if isinstance(cookie, dict):
            expires = parse_expires(cookie.get("expires"))
            if expires is not None and expires <= datetime.now(timezone.utc):
                logger.debug("session %s expired", session_id)
                del self._sessions[session_id]
                return None
        return record

    async def get(self, session_id: str) -> dict[str, Any] | None:
        return self._load(session_id)

    async def set(self, session_id: str, record: dict[str, Any]) -> None:
        self._sessions[session_id] = json.dumps(record, default=str)

    async def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def touch(self, session_id: str, record: dict[str, Any]) -> None:
        current = self._load(session_id)
        if current is not None:
            current["cookie"] = record["cookie"]
            self._sessions[session_id] = json.dumps(current, default=str)

    async def all(self) -> dict[str, dict[str, Any]]:
        records = {}
        for session_id in list(self._sessions):
            record = self._load(session_id)
            if record is not None:
                records[session_id] = record
        return records

    async def length(self) -> int:
        return len(await self.all())

    async def clear(self) -> None:
        self._sessions.clear()
