"""Plain-text rendering helpers for comment threads and chat."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from rcc.core.models import ChatMessage, CommentNode
from rcc.core.tree import walk


def time_ago(when: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Short relative age: ``42s ago``, ``5m ago``, ``3h ago``, ``2d ago``."""
    if when is None:
        return "?"
    now = now or datetime.now(timezone.utc)
    seconds = max(0, int((now - when).total_seconds()))
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def format_thread(
    forest: Iterable[CommentNode],
    now: Optional[datetime] = None,
    indent: str = "  ",
) -> list[str]:
    """Render a comment forest as indented lines, replies under their parent."""
    lines = []
    for depth, node in walk(forest):
        c = node.comment
        author = c.author_username or c.author_id or "?"
        pad = indent * depth
        lines.append(f"{pad}[{c.score}] {author} · {time_ago(c.created_at, now)}")
        for text_line in c.content.splitlines() or [""]:
            lines.append(f"{pad}  {text_line}")
    return lines


def format_message(message: ChatMessage) -> str:
    stamp = message.created_at.strftime("%H:%M") if message.created_at else "--:--"
    return f"[{stamp}] {message.username}: {message.content}"
