"""PostgREST record store -- HTTP client to a hosted Postgres REST endpoint."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from rcc.core.models import ChangeEvent, EventKind
from rcc.store.base import StoreError, parse_order

logger = logging.getLogger(__name__)


class RestStore:
    """Record store backed by a PostgREST API (e.g. ``https://<project>/rest/v1``).

    Requests are blocking and run in a worker thread. Subscriptions poll for
    new rows instead of holding a realtime socket, so only INSERT events are
    delivered.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: float = 10.0,
        poll_interval: float = 2.0,
    ):
        import requests

        if not base_url:
            raise ValueError("RestStore needs a base_url")
        self._requests = requests
        self._session = requests.Session()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.poll_interval = poll_interval

        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
        token = access_token or api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._session.headers.update(headers)

    # -- HTTP --------------------------------------------------------------------

    def _request(
        self,
        method: str,
        collection: str,
        params: Optional[list[tuple[str, str]]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self._session.request(
                method,
                f"{self._base_url}/{collection}",
                params=params,
                json=json,
                headers=headers,
                timeout=self._timeout,
            )
        except self._requests.RequestException as exc:
            raise StoreError(f"{method} {collection} failed: {exc}") from exc

        if response.status_code >= 400:
            raise StoreError(
                f"{method} {collection} returned {response.status_code}: {_error_message(response)}",
                status=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"{method} {collection} returned invalid JSON") from exc

    async def _call(self, *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(self._request, *args, **kwargs)

    # -- RecordStore -------------------------------------------------------------

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
        select: str = "*",
    ) -> list[dict]:
        params = [("select", select)] + _eq_params(filters)
        field, descending = parse_order(order)
        if field:
            params.append(("order", f"{field}.{'desc' if descending else 'asc'}"))
        return list(await self._call("GET", collection, params=params) or [])

    async def insert(self, collection: str, record: Mapping[str, Any]) -> dict:
        rows = await self._call(
            "POST", collection, json=dict(record), prefer="return=representation"
        )
        return _first(rows, collection)

    async def update(
        self, collection: str, filters: Mapping[str, Any], changes: Mapping[str, Any]
    ) -> list[dict]:
        if not filters:
            raise ValueError("update needs at least one filter")
        rows = await self._call(
            "PATCH",
            collection,
            params=_eq_params(filters),
            json=dict(changes),
            prefer="return=representation",
        )
        return list(rows or [])

    async def delete(self, collection: str, filters: Mapping[str, Any]) -> int:
        if not filters:
            raise ValueError("delete needs at least one filter")
        rows = await self._call(
            "DELETE", collection, params=_eq_params(filters), prefer="return=representation"
        )
        return len(rows or [])

    async def upsert(
        self,
        collection: str,
        record: Mapping[str, Any],
        on_conflict: Iterable[str] = ("id",),
    ) -> dict:
        rows = await self._call(
            "POST",
            collection,
            params=[("on_conflict", ",".join(on_conflict))],
            json=dict(record),
            prefer="resolution=merge-duplicates,return=representation",
        )
        return _first(rows, collection)

    def subscribe(
        self, collection: str, kinds: Iterable[EventKind] = (EventKind.INSERT,)
    ) -> PollingSubscription:
        kinds = frozenset(EventKind(k) for k in kinds)
        unsupported = kinds - {EventKind.INSERT}
        if unsupported:
            logger.warning(
                "Polling subscription on %s ignores %s events",
                collection, ", ".join(sorted(k.value for k in unsupported)),
            )
        return PollingSubscription(self, collection, kinds)

    def unsubscribe(self, subscription: PollingSubscription) -> None:
        subscription.close()


class PollingSubscription:
    """Emits INSERT events for rows whose ``created_at`` is newer than the last seen."""

    def __init__(self, store: RestStore, collection: str, kinds: frozenset[EventKind]):
        self.collection = collection
        self.kinds = kinds
        self._store = store
        self._closed = False
        self._since = datetime.now(timezone.utc).isoformat()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    async def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        while not self._closed:
            rows = await self._store._call(
                "GET",
                self.collection,
                params=[
                    ("select", "*"),
                    ("created_at", f"gt.{self._since}"),
                    ("order", "created_at.asc"),
                ],
            )
            for row in rows or []:
                if self._closed:
                    return
                if row.get("created_at"):
                    self._since = row["created_at"]
                if EventKind.INSERT in self.kinds:
                    yield ChangeEvent(EventKind.INSERT, self.collection, row)
            await asyncio.sleep(self._store.poll_interval)


def _eq_params(filters: Optional[Mapping[str, Any]]) -> list[tuple[str, str]]:
    params = []
    for key, value in (filters or {}).items():
        if value is None:
            params.append((key, "is.null"))
        else:
            params.append((key, f"eq.{value}"))
    return params


def _first(rows: Any, collection: str) -> dict:
    if isinstance(rows, list):
        if not rows:
            raise StoreError(f"{collection}: write returned no rows")
        return rows[0]
    if isinstance(rows, dict):
        return rows
    raise StoreError(f"{collection}: unexpected response {rows!r}")


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
