"""Keep a change subscription alive across channel drops."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Optional

from rcc.core.models import ChangeEvent, EventKind
from rcc.store.base import RecordStore, StoreError

logger = logging.getLogger(__name__)

EventHandler = Callable[[ChangeEvent], Awaitable[None]]
Callback = Callable[[], Awaitable[object]]


async def follow(
    store: RecordStore,
    collection: str,
    on_event: EventHandler,
    *,
    kinds: Iterable[EventKind] = (EventKind.INSERT,),
    on_subscribed: Optional[Callback] = None,
    retry_delay: float = 1.0,
    max_attempts: Optional[int] = 5,
) -> None:
    """Deliver events from ``collection`` to ``on_event`` until unsubscribed.

    ``on_subscribed`` runs after every (re)subscription; pass a full reload
    there so events missed while the channel was down are not lost. When the
    stream raises :class:`StoreError` it is re-opened after ``retry_delay``
    seconds; after ``max_attempts`` consecutive failures the error propagates.
    Cancelling the task unsubscribes.
    """
    kinds = tuple(kinds)
    failures = 0
    while True:
        subscription = store.subscribe(collection, kinds)
        try:
            if on_subscribed is not None:
                await on_subscribed()
            async for event in subscription:
                failures = 0
                await on_event(event)
            logger.debug("Subscription to %s closed", collection)
            return
        except StoreError as exc:
            failures += 1
            if max_attempts is not None and failures >= max_attempts:
                logger.error(
                    "Giving up on %s after %d failed subscriptions: %s",
                    collection, failures, exc,
                )
                raise
            logger.warning(
                "Subscription to %s dropped (%s), retrying in %.1fs", collection, exc, retry_delay
            )
        finally:
            store.unsubscribe(subscription)
        await asyncio.sleep(retry_delay)
