"""Tests for optimistic vote bookkeeping."""
from __future__ import annotations

import unittest

from rcc.core.models import UserIdentity
from rcc.core.votes import DOWNVOTE, UPVOTE, VoteTally, VoteTracker, apply_vote
from rcc.store.base import NotAuthenticatedError, StaticIdentity, StoreError
from rcc.store.memory import InMemoryStore

ALICE = UserIdentity(id="u1", username="alice")


class TestApplyVote(unittest.TestCase):
    def test_documented_sequence(self) -> None:
        start = VoteTally(upvotes=5, downvotes=2)
        up = apply_vote(start, UPVOTE)
        self.assertEqual(up, VoteTally(6, 2, UPVOTE))
        self.assertEqual(apply_vote(up, UPVOTE), VoteTally(5, 2, None))
        self.assertEqual(apply_vote(up, DOWNVOTE), VoteTally(5, 3, DOWNVOTE))

    def test_downvote_then_retract(self) -> None:
        down = apply_vote(VoteTally(0, 0), DOWNVOTE)
        self.assertEqual(down, VoteTally(0, 1, DOWNVOTE))
        self.assertEqual(apply_vote(down, DOWNVOTE), VoteTally(0, 0, None))

    def test_switch_down_to_up(self) -> None:
        self.assertEqual(apply_vote(VoteTally(1, 4, DOWNVOTE), UPVOTE), VoteTally(2, 3, UPVOTE))

    def test_score(self) -> None:
        self.assertEqual(VoteTally(6, 2, UPVOTE).score, 4)

    def test_invalid_vote(self) -> None:
        with self.assertRaises(ValueError):
            apply_vote(VoteTally(), 0)


class TestVoteTracker(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore()
        self.tracker = VoteTracker(self.store, StaticIdentity(ALICE), "p1", VoteTally(5, 2))

    async def test_cast_upserts_vote_row(self) -> None:
        tally = await self.tracker.cast(UPVOTE)
        self.assertEqual(tally, VoteTally(6, 2, UPVOTE))
        rows = self.store.rows("post_votes")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["post_id"], "p1")
        self.assertEqual(rows[0]["user_id"], "u1")
        self.assertEqual(rows[0]["vote_type"], UPVOTE)

    async def test_switch_updates_same_row(self) -> None:
        await self.tracker.cast(UPVOTE)
        tally = await self.tracker.cast(DOWNVOTE)
        self.assertEqual(tally, VoteTally(5, 3, DOWNVOTE))
        rows = self.store.rows("post_votes")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["vote_type"], DOWNVOTE)

    async def test_retract_deletes_row(self) -> None:
        await self.tracker.cast(UPVOTE)
        tally = await self.tracker.cast(UPVOTE)
        self.assertEqual(tally, VoteTally(5, 2, None))
        self.assertEqual(self.store.rows("post_votes"), [])

    async def test_failed_write_rolls_back(self) -> None:
        await self.tracker.cast(UPVOTE)
        self.store.fail_next("upsert", "post_votes")
        with self.assertRaises(StoreError):
            await self.tracker.cast(DOWNVOTE)
        self.assertEqual(self.tracker.tally, VoteTally(6, 2, UPVOTE))
        self.assertEqual(self.store.rows("post_votes")[0]["vote_type"], UPVOTE)

    async def test_failed_retract_rolls_back(self) -> None:
        await self.tracker.cast(DOWNVOTE)
        self.store.fail_next("delete")
        with self.assertRaises(StoreError):
            await self.tracker.cast(DOWNVOTE)
        self.assertEqual(self.tracker.tally, VoteTally(5, 3, DOWNVOTE))

    async def test_requires_user(self) -> None:
        tracker = VoteTracker(self.store, StaticIdentity(None), "p1", VoteTally(5, 2))
        with self.assertRaises(NotAuthenticatedError):
            await tracker.cast(UPVOTE)
        self.assertEqual(tracker.tally, VoteTally(5, 2))

    async def test_comment_votes_collection(self) -> None:
        tracker = VoteTracker(
            self.store,
            StaticIdentity(ALICE),
            "c1",
            VoteTally(0, 0),
            collection="comment_votes",
            target_field="comment_id",
        )
        await tracker.cast(UPVOTE)
        self.assertEqual(self.store.rows("comment_votes")[0]["comment_id"], "c1")


if __name__ == "__main__":
    unittest.main()
