"""Record store and identity provider interfaces."""
from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any, Optional, Protocol, runtime_checkable

from rcc.core.models import ChangeEvent, EventKind, UserIdentity


class StoreError(Exception):
    """A record store call failed (transport, auth, or a rejected write)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotAuthenticatedError(RuntimeError):
    """The operation needs a signed-in user and there is none."""


@runtime_checkable
class Subscription(Protocol):
    """A stream of change events for one collection.

    Iteration ends once the subscription is closed and raises
    :class:`StoreError` if the channel drops.
    """

    collection: str
    kinds: frozenset[EventKind]

    @property
    def closed(self) -> bool:
        ...

    def close(self) -> None:
        ...

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        ...


@runtime_checkable
class RecordStore(Protocol):
    """Interface every backend must satisfy."""

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
    ) -> list[dict]:
        """Rows matching all ``filters`` (equality), sorted by ``order``.

        ``order`` is a field name, prefixed with ``-`` for descending.
        """
        ...

    async def insert(self, collection: str, record: Mapping[str, Any]) -> dict:
        """Insert one row and return it as stored."""
        ...

    async def update(
        self, collection: str, filters: Mapping[str, Any], changes: Mapping[str, Any]
    ) -> list[dict]:
        ...

    async def delete(self, collection: str, filters: Mapping[str, Any]) -> int:
        ...

    async def upsert(
        self,
        collection: str,
        record: Mapping[str, Any],
        on_conflict: Iterable[str] = ("id",),
    ) -> dict:
        ...

    def subscribe(
        self, collection: str, kinds: Iterable[EventKind] = (EventKind.INSERT,)
    ) -> Subscription:
        ...

    def unsubscribe(self, subscription: Subscription) -> None:
        """Stop delivery. Safe to call more than once."""
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    def current_user(self) -> Optional[UserIdentity]:
        ...


class StaticIdentity:
    """Identity provider that always reports the same user (or nobody)."""

    def __init__(self, user: Optional[UserIdentity] = None):
        self._user = user

    def current_user(self) -> Optional[UserIdentity]:
        return self._user


def parse_order(order: Optional[str]) -> tuple[Optional[str], bool]:
    """Split ``"-created_at"`` into ``("created_at", True)`` (field, descending)."""
    if not order:
        return None, False
    if order.startswith("-"):
        return order[1:], True
    return order, False


def create_store(backend: str, **kwargs: Any) -> RecordStore:
    """Instantiate a :class:`RecordStore` by name.

    Parameters
    ----------
    backend:
        ``"memory"`` or ``"rest"``.
    **kwargs:
        Forwarded to the store constructor (``base_url``, ``api_key``, ... for
        ``"rest"``).

    Raises
    ------
    ValueError
        If *backend* is not a recognised name.
    """
    name = backend.lower().strip()

    if name == "memory":
        from rcc.store.memory import InMemoryStore

        return InMemoryStore(**kwargs)

    if name == "rest":
        from rcc.store.rest import RestStore

        return RestStore(**kwargs)

    msg = f"Unknown store backend: {backend!r}. Supported: 'memory', 'rest'."
    raise ValueError(msg)
