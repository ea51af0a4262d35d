"""Optimistic up/down vote bookkeeping with rollback on failed writes."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Optional

from rcc.store.base import IdentityProvider, NotAuthenticatedError, RecordStore, StoreError

logger = logging.getLogger(__name__)

UPVOTE = 1
DOWNVOTE = -1


@dataclass(frozen=True)
class VoteTally:
    """Displayed counters for one post or comment plus the viewer's own vote."""

    upvotes: int = 0
    downvotes: int = 0
    current: Optional[int] = None

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes


def apply_vote(tally: VoteTally, vote: int) -> VoteTally:
    """Return the tally after the viewer casts ``vote`` (+1 or -1).

    Casting the vote already held retracts it; casting the opposite vote
    moves it from one counter to the other.
    """
    if vote not in (UPVOTE, DOWNVOTE):
        raise ValueError(f"vote must be {UPVOTE} or {DOWNVOTE}, got {vote!r}")

    up, down = tally.upvotes, tally.downvotes
    if tally.current == vote:
        if vote == UPVOTE:
            up -= 1
        else:
            down -= 1
        return replace(tally, upvotes=up, downvotes=down, current=None)

    if tally.current == UPVOTE:
        up -= 1
    elif tally.current == DOWNVOTE:
        down -= 1
    if vote == UPVOTE:
        up += 1
    else:
        down += 1
    return replace(tally, upvotes=up, downvotes=down, current=vote)


class VoteTracker:
    """Applies votes locally first, then writes them to the vote collection.

    ``collection`` holds one row per (target, user) with a ``vote_type``
    column, e.g. ``post_votes`` keyed by ``post_id`` and ``user_id``. If the
    write fails the counters go back to what they were before the cast.
    """

    def __init__(
        self,
        store: RecordStore,
        identity: IdentityProvider,
        target_id: str,
        tally: VoteTally,
        collection: str = "post_votes",
        target_field: str = "post_id",
    ):
        self._store = store
        self._identity = identity
        self._target_id = target_id
        self._collection = collection
        self._target_field = target_field
        self._lock = asyncio.Lock()
        self.tally = tally

    async def cast(self, vote: int) -> VoteTally:
        user = self._identity.current_user()
        if user is None:
            raise NotAuthenticatedError("Please log in to vote")

        async with self._lock:
            before = self.tally
            self.tally = apply_vote(before, vote)
            key = {self._target_field: self._target_id, "user_id": user.id}
            try:
                if self.tally.current is None:
                    await self._store.delete(self._collection, key)
                else:
                    await self._store.upsert(
                        self._collection,
                        {**key, "vote_type": self.tally.current},
                        on_conflict=(self._target_field, "user_id"),
                    )
            except StoreError:
                logger.warning(
                    "Vote on %s %s failed, restoring %s",
                    self._target_field, self._target_id, before,
                )
                self.tally = before
                raise
            return self.tally
