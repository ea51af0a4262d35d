"""In-process record store with live subscriptions, for tests and demos."""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from rcc.core.models import ChangeEvent, EventKind
from rcc.store.base import StoreError, parse_order

logger = logging.getLogger(__name__)

_CLOSED = object()


class QueueSubscription:
    """Subscription fed through an :class:`asyncio.Queue`."""

    def __init__(self, collection: str, kinds: Iterable[EventKind]):
        self.collection = collection
        self.kinds = frozenset(EventKind(k) for k in kinds)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: ChangeEvent) -> None:
        if not self._closed and event.kind in self.kinds:
            self._queue.put_nowait(event)

    def fail(self, error: StoreError) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(error)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            if isinstance(item, StoreError):
                raise item
            yield item


class InMemoryStore:
    """Dict-of-lists :class:`~rcc.store.base.RecordStore`.

    Inserted rows get an ``id`` (uuid4) and a ``created_at`` if they lack
    one; generated timestamps strictly increase so creation order is total.
    ``fail_next`` and ``disconnect`` inject failures.
    """

    def __init__(self, data: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None):
        self._tables: dict[str, list[dict]] = {}
        self._subscriptions: list[QueueSubscription] = []
        self._failures: list[tuple[str, Optional[str], StoreError]] = []
        self._last_ts: Optional[datetime] = None
        for collection, rows in (data or {}).items():
            self._tables[collection] = [dict(row) for row in rows]

    # -- failure injection ---------------------------------------------------

    def fail_next(
        self,
        operation: str,
        collection: Optional[str] = None,
        error: Optional[StoreError] = None,
    ) -> None:
        """Make the next ``operation`` (e.g. ``"query"``) on ``collection`` fail."""
        err = error or StoreError(f"injected {operation} failure")
        self._failures.append((operation, collection, err))

    def disconnect(self, error: Optional[StoreError] = None) -> None:
        """Drop every open subscription as if the realtime channel went away."""
        err = error or StoreError("realtime channel disconnected")
        for sub in self._subscriptions:
            sub.fail(err)
        self._subscriptions.clear()

    def _check(self, operation: str, collection: str) -> None:
        for i, (op, coll, err) in enumerate(self._failures):
            if op == operation and coll in (None, collection):
                del self._failures[i]
                raise err

    # -- RecordStore -----------------------------------------------------------

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
    ) -> list[dict]:
        self._check("query", collection)
        rows = [dict(r) for r in self._rows(collection, filters)]
        field, descending = parse_order(order)
        if field:
            rows.sort(key=lambda r: _sort_key(r.get(field)), reverse=descending)
        return rows

    async def insert(self, collection: str, record: Mapping[str, Any]) -> dict:
        self._check("insert", collection)
        return self._append(collection, record)

    async def update(
        self, collection: str, filters: Mapping[str, Any], changes: Mapping[str, Any]
    ) -> list[dict]:
        self._check("update", collection)
        updated = []
        for row in self._rows(collection, filters):
            old = dict(row)
            row.update(changes)
            updated.append(dict(row))
            self._publish(ChangeEvent(EventKind.UPDATE, collection, dict(row), old))
        return updated

    async def delete(self, collection: str, filters: Mapping[str, Any]) -> int:
        self._check("delete", collection)
        doomed = self._rows(collection, filters)
        table = self._tables.get(collection, [])
        self._tables[collection] = [r for r in table if not any(r is d for d in doomed)]
        for row in doomed:
            self._publish(ChangeEvent(EventKind.DELETE, collection, {}, dict(row)))
        return len(doomed)

    async def upsert(
        self,
        collection: str,
        record: Mapping[str, Any],
        on_conflict: Iterable[str] = ("id",),
    ) -> dict:
        self._check("upsert", collection)
        keys = tuple(on_conflict)
        if all(k in record for k in keys):
            existing = self._rows(collection, {k: record[k] for k in keys})
            if existing:
                row = existing[0]
                old = dict(row)
                row.update(record)
                self._publish(ChangeEvent(EventKind.UPDATE, collection, dict(row), old))
                return dict(row)
        return self._append(collection, record)

    def subscribe(
        self, collection: str, kinds: Iterable[EventKind] = (EventKind.INSERT,)
    ) -> QueueSubscription:
        sub = QueueSubscription(collection, kinds)
        self._subscriptions.append(sub)
        logger.debug("Subscribed to %s %s", collection, sorted(k.value for k in sub.kinds))
        return sub

    def unsubscribe(self, subscription: QueueSubscription) -> None:
        subscription.close()
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    # -- helpers -----------------------------------------------------------------

    def rows(self, collection: str) -> list[dict]:
        """Snapshot of a collection, in insertion order."""
        return [dict(r) for r in self._tables.get(collection, [])]

    def _append(self, collection: str, record: Mapping[str, Any]) -> dict:
        row = dict(record)
        row.setdefault("id", str(uuid.uuid4()))
        if not row.get("created_at"):
            row["created_at"] = self._now().isoformat(timespec="microseconds")
        self._tables.setdefault(collection, []).append(row)
        self._publish(ChangeEvent(EventKind.INSERT, collection, dict(row)))
        return dict(row)

    def _rows(self, collection: str, filters: Optional[Mapping[str, Any]]) -> list[dict]:
        table = self._tables.get(collection, [])
        if not filters:
            return list(table)
        return [r for r in table if all(r.get(k) == v for k, v in filters.items())]

    def _publish(self, event: ChangeEvent) -> None:
        for sub in list(self._subscriptions):
            if sub.collection == event.collection:
                sub.publish(event)

    def _now(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now


def _sort_key(value: Any) -> tuple:
    # None sorts first; mixed types compare by their string form.
    if value is None:
        return (0, "")
    if isinstance(value, (int, float)):
        return (1, value)
    return (2, str(value))
