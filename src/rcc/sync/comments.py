"""Live comment thread for one post, rebuilt from a full read on every insert."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Optional

from rcc.core.models import ChangeEvent, Comment, CommentNode
from rcc.core.parser import parse_comment
from rcc.core.tree import build_tree
from rcc.store.base import IdentityProvider, NotAuthenticatedError, RecordStore, StoreError
from rcc.sync.subscription import follow

logger = logging.getLogger(__name__)


class CommentThread:
    """Threaded comments of the post currently on screen.

    Every refresh re-reads all comments of the post and swaps in a freshly
    built forest, so notifications can arrive in any order. A response is
    dropped if the view has since moved to another post or a newer response
    has already been shown.
    """

    def __init__(
        self,
        store: RecordStore,
        identity: IdentityProvider,
        post_id: str,
        collection: str = "comments",
        on_change: Optional[Callable[[CommentThread], None]] = None,
        retry_delay: float = 1.0,
        max_attempts: Optional[int] = 5,
    ):
        self._store = store
        self._identity = identity
        self._collection = collection
        self._on_change = on_change
        self._retry_delay = retry_delay
        self._max_attempts = max_attempts
        self._forest: list[CommentNode] = []
        self._issued = 0
        self._applied = 0
        self._task: Optional[asyncio.Task] = None
        self.post_id = post_id

    @property
    def forest(self) -> list[CommentNode]:
        return list(self._forest)

    async def open(self, post_id: str) -> None:
        """Switch to another post and load it; in-flight loads for the old post are ignored."""
        self.post_id = post_id
        self._forest = []
        await self.refresh()

    async def refresh(self) -> bool:
        """Re-read the post's comments and rebuild the forest.

        Returns False when the response was stale and discarded. On
        :class:`StoreError` the current forest is kept and the error re-raised.
        Rows that cannot be parsed are skipped with a warning.
        """
        self._issued += 1
        generation = self._issued
        post_id = self.post_id

        rows = await self._store.query(
            self._collection, filters={"post_id": post_id}, order="created_at"
        )
        forest = build_tree(self._parse_rows(rows))

        if post_id != self.post_id or generation < self._applied:
            logger.debug("Discarding stale comments for post %s (generation %d)", post_id, generation)
            return False
        self._applied = generation
        self._forest = forest
        if self._on_change is not None:
            self._on_change(self)
        return True

    async def post_comment(self, content: str, parent_id: Optional[str] = None) -> Optional[dict]:
        """Add a top-level comment, or a reply when ``parent_id`` is given.

        Blank content is ignored. The thread is refreshed after the write.
        """
        user = self._identity.current_user()
        if user is None:
            raise NotAuthenticatedError("Please log in to comment")
        if not content.strip():
            return None

        row = await self._store.insert(
            self._collection,
            {
                "content": content,
                "author_id": user.id,
                "post_id": self.post_id,
                "parent_id": parent_id,
            },
        )
        await self.refresh()
        return row

    async def handle_event(self, event: ChangeEvent) -> None:
        post_id = event.record.get("post_id")
        if post_id is not None and str(post_id) != self.post_id:
            return
        try:
            await self.refresh()
        except StoreError as exc:
            logger.warning("Could not refresh comments for post %s: %s", self.post_id, exc)

    async def run(self) -> None:
        """Follow comment inserts until cancelled, reloading after every (re)subscribe."""
        await follow(
            self._store,
            self._collection,
            self.handle_event,
            on_subscribed=self._reload,
            retry_delay=self._retry_delay,
            max_attempts=self._max_attempts,
        )

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _reload(self) -> None:
        try:
            await self.refresh()
        except StoreError as exc:
            logger.warning("Could not load comments for post %s: %s", self.post_id, exc)

    def _parse_rows(self, rows: list[dict]) -> list[Comment]:
        comments = []
        for row in rows:
            try:
                comments.append(parse_comment(row))
            except ValueError as exc:
                logger.warning("Skipping malformed comment on post %s: %s", self.post_id, exc)
        return comments
