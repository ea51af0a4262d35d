"""Live views kept in step with store change notifications."""
from rcc.sync.chat import ChatRoom
from rcc.sync.comments import CommentThread
from rcc.sync.subscription import follow

__all__ = [
    "ChatRoom",
    "CommentThread",
    "follow",
]
