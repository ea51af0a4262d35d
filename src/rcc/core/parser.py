"""Parse raw store records (and exported record files) into data models."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from rcc.core.models import ChatMessage, Comment, Post

Record = Mapping[str, Any]


def parse_comment(record: Record) -> Comment:
    """Build a Comment from a ``comments`` row.

    Rows fetched with the author profile joined carry a nested
    ``profiles: {username, avatar_url}`` mapping; it is flattened onto the
    comment. Unknown keys are ignored.
    """
    profile = record.get("profiles") or {}
    return Comment(
        id=_require_id(record),
        post_id=str(record.get("post_id", "")),
        author_id=str(record.get("author_id", "")),
        content=str(record.get("content") or ""),
        parent_id=_optional_str(record.get("parent_id")),
        upvotes=_int(record.get("upvotes")),
        downvotes=_int(record.get("downvotes")),
        created_at=parse_timestamp(record.get("created_at")),
        author_username=profile.get("username"),
        author_avatar_url=profile.get("avatar_url"),
    )


def parse_message(record: Record) -> ChatMessage:
    """Build a ChatMessage from a ``messages`` row."""
    return ChatMessage(
        id=_require_id(record),
        username=str(record.get("username") or ""),
        content=str(record.get("content") or ""),
        created_at=parse_timestamp(record.get("created_at")),
    )


def parse_post(record: Record) -> Post:
    """Build a Post from a ``posts`` row."""
    return Post(
        id=_require_id(record),
        title=str(record.get("title") or ""),
        author_id=str(record.get("author_id", "")),
        community_id=_optional_str(record.get("community_id")),
        content=str(record.get("content") or ""),
        post_type=str(record.get("post_type") or "text"),
        image_url=record.get("image_url"),
        link_url=record.get("link_url"),
        upvotes=_int(record.get("upvotes")),
        downvotes=_int(record.get("downvotes")),
        comment_count=_int(record.get("comment_count")),
        created_at=parse_timestamp(record.get("created_at")),
    )


def load_records(path: Path) -> list[dict]:
    """Read a JSON or YAML export of store rows.

    The file may hold a plain list of rows or a mapping with the rows under
    ``records`` (or ``comments``).
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return []
    if isinstance(data, Mapping):
        for key in ("records", "comments"):
            if key in data:
                data = data[key]
                break
        else:
            raise ValueError(f"No 'records' or 'comments' list found in {path}")
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of records in {path}")
    return [dict(row) for row in data]


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (as PostgREST emits them) into an aware datetime.

    Naive values are taken as UTC. Unparseable values give None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _require_id(record: Record) -> str:
    value = record.get("id")
    if value is None or value == "":
        raise ValueError(f"Record has no id: {dict(record)!r}")
    return str(value)


def _optional_str(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0
