"""Core data models for posts, comments, chat messages and change events."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Comment:
    """A comment on a post. ``parent_id`` is None for top-level comments."""

    id: str
    post_id: str
    author_id: str
    content: str
    parent_id: Optional[str] = None
    upvotes: int = 0
    downvotes: int = 0
    created_at: Optional[datetime] = None
    author_username: Optional[str] = None
    author_avatar_url: Optional[str] = None

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes

    @property
    def is_root(self) -> bool:
        return not self.parent_id


@dataclass
class CommentNode:
    """A comment plus its replies, in posting order."""

    comment: Comment
    children: list[CommentNode] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.comment.id


@dataclass(frozen=True)
class ChatMessage:
    """A message in the live chat room."""

    id: str
    username: str
    content: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Post:
    """A submitted post (text, image or link)."""

    id: str
    title: str
    author_id: str
    community_id: Optional[str] = None
    content: str = ""
    post_type: str = "text"
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    upvotes: int = 0
    downvotes: int = 0
    comment_count: int = 0
    created_at: Optional[datetime] = None

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes


@dataclass(frozen=True)
class UserIdentity:
    """The signed-in user as reported by the identity provider."""

    id: str
    username: str
    avatar_url: Optional[str] = None


class EventKind(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """A notification that a row in a watched collection changed."""

    kind: EventKind
    collection: str
    record: Mapping[str, Any]
    old_record: Optional[Mapping[str, Any]] = None
