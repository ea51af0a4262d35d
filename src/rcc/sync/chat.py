"""Live chat room: bulk load once, then append each new message exactly once."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Optional

from rcc.core.models import ChangeEvent, ChatMessage, EventKind
from rcc.core.parser import parse_message
from rcc.store.base import RecordStore, StoreError
from rcc.sync.subscription import follow

logger = logging.getLogger(__name__)


class ChatRoom:
    """Messages of the chat room in arrival order, deduplicated by id."""

    def __init__(
        self,
        store: RecordStore,
        collection: str = "messages",
        on_message: Optional[Callable[[ChatMessage], None]] = None,
        retry_delay: float = 1.0,
        max_attempts: Optional[int] = 5,
    ):
        self._store = store
        self._collection = collection
        self._on_message = on_message
        self._retry_delay = retry_delay
        self._max_attempts = max_attempts
        self._messages: list[ChatMessage] = []
        self._seen: set[str] = set()
        self._loaded = False
        self._task: Optional[asyncio.Task] = None

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    async def load(self) -> None:
        """Replace the list with a full read ordered by ``created_at``.

        Messages appended from notifications that the read does not include
        yet are kept at the end. After the first load, messages the read
        turns up that were not shown before are passed to ``on_message``.
        Rows that cannot be parsed are skipped with a warning.
        On :class:`StoreError` nothing changes.
        """
        rows = await self._store.query(self._collection, order="created_at")
        loaded = []
        for row in rows:
            try:
                loaded.append(parse_message(row))
            except ValueError as exc:
                logger.warning("Skipping malformed chat message: %s", exc)
        loaded_ids = {m.id for m in loaded}
        pending = [m for m in self._messages if m.id not in loaded_ids]

        messages = []
        seen = set()
        for message in loaded + pending:
            if message.id not in seen:
                seen.add(message.id)
                messages.append(message)
        recovered = [m for m in messages if m.id not in self._seen] if self._loaded else []
        self._messages = messages
        self._seen = seen
        self._loaded = True
        if self._on_message is not None:
            for message in recovered:
                self._on_message(message)

    def append(self, message: ChatMessage) -> bool:
        """Append ``message`` unless one with the same id is already shown."""
        if message.id in self._seen:
            return False
        self._seen.add(message.id)
        self._messages.append(message)
        if self._on_message is not None:
            self._on_message(message)
        return True

    async def send(self, username: str, content: str) -> Optional[dict]:
        """Post a message. It shows up once the insert notification arrives."""
        if not content.strip():
            return None
        return await self._store.insert(
            self._collection, {"username": username, "content": content}
        )

    async def handle_event(self, event: ChangeEvent) -> None:
        if event.kind is not EventKind.INSERT:
            return
        try:
            message = parse_message(event.record)
        except ValueError as exc:
            logger.warning("Ignoring malformed chat message: %s", exc)
            return
        self.append(message)

    async def run(self) -> None:
        """Follow new messages until cancelled, reloading after every (re)subscribe."""
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
            await self.load()
        except StoreError as exc:
            logger.warning("Could not load chat messages: %s", exc)
