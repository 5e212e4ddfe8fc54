"""The per-request session object."""

from __future__ import annotations

import logging
from collections.abc import Iterator, MutableMapping
from typing import TYPE_CHECKING, Any, Mapping

from .cookie import SessionCookie
from .errors import SessionError

if TYPE_CHECKING:
    from .context import SessionContext

logger = logging.getLogger(__name__)

# Names that belong to the session object itself and can never be content.
RESERVED_KEYS = frozenset(
    {
        "id",
        "cookie",
        "request",
        "save",
        "touch",
        "reload",
        "destroy",
        "regenerate",
        "reset_max_age",
    }
)


class Session(MutableMapping[str, Any]):
    """Mutable session content plus its cookie attributes.

    Behaves like a dict of application data. The identifier, the cookie and
    the owning :class:`SessionContext` are attributes, so iterating a session
    only ever yields what the application stored in it.
    """

    def __init__(
        self,
        context: SessionContext,
        session_id: str,
        cookie: SessionCookie,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        self._context = context
        self._id = session_id
        self.cookie = cookie
        self._data: dict[str, Any] = {}
        if data:
            for key, value in data.items():
                if key not in RESERVED_KEYS:
                    self._data[key] = value

    @property
    def id(self) -> str:
        return self._id

    @property
    def context(self) -> SessionContext:
        return self._context

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key in RESERVED_KEYS:
            raise KeyError(f"{key!r} is a reserved session key")
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Session(id={self._id!r}, data={self._data!r})"

    def content(self) -> dict[str, Any]:
        """Application data only (what change detection looks at)."""
        return dict(self._data)

    def to_record(self) -> dict[str, Any]:
        """The form handed to the store."""
        return {"cookie": self.cookie.to_dict(), **self._data}

    def reset_max_age(self) -> Session:
        self.cookie.reset_max_age()
        return self

    async def save(self) -> Session:
        """Write the session to the store now."""
        logger.debug("saving %s", self._id)
        # Recorded before the write so end-of-request logic sees the intent.
        self._context.mark_saved(self)
        await self._context.store.set(self._id, self.to_record())
        return self

    async def touch(self) -> Session:
        """Slide the cookie expiry forward, and the store's if enabled."""
        logger.debug("touching %s", self._id)
        context = self._context
        touch_store = context.should_propagate_touch(self)
        self.reset_max_age()
        context.touched = True
        if touch_store:
            context.touched_store = True
            await context.store.touch(self._id, self.to_record())
        return self

    async def reload(self) -> Session:
        """Re-read the session from the store.

        Returns the replacement session, which also becomes
        ``request.state.session``.
        """
        logger.debug("reloading %s", self._id)
        context = self._context
        record = await context.store.get(self._id)
        if not record:
            raise SessionError("failed to load session")
        return context.store.create_session(context, record)

    async def destroy(self) -> Session:
        """Detach the session from the request and delete it from the store."""
        self._context.session = None
        await self._context.store.destroy(self._id)
        return self

    async def regenerate(self) -> Session:
        """Replace the session with a fresh one under a new identifier."""
        return await self._context.store.regenerate(self._context)
