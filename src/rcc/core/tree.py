"""Rebuild threaded comment forests from flat, creation-ordered comment lists."""
from __future__ import annotations

from typing import Iterable, Iterator, Sequence

from rcc.core.models import Comment, CommentNode


def build_tree(comments: Sequence[Comment]) -> list[CommentNode]:
    """Return the forest of root nodes for one post's comments.

    ``comments`` must be ordered by ``created_at`` ascending; that order is
    kept for the roots and for every sibling list, no sorting is done here.

    A comment whose ``parent_id`` is not among ``comments`` (parent deleted or
    not loaded yet) is left out of the forest. If an id occurs more than once,
    the last occurrence owns the node for that id and is the only one placed.
    """
    nodes: dict[str, CommentNode] = {}
    for comment in comments:
        nodes[comment.id] = CommentNode(comment=comment)

    roots: list[CommentNode] = []
    placed: set[str] = set()
    for comment in comments:
        node = nodes[comment.id]
        if node.comment is not comment or comment.id in placed:
            continue
        placed.add(comment.id)
        if comment.is_root:
            roots.append(node)
            continue
        parent = nodes.get(comment.parent_id)
        if parent is not None:
            parent.children.append(node)

    return roots


def walk(forest: Iterable[CommentNode]) -> Iterator[tuple[int, CommentNode]]:
    """Yield ``(depth, node)`` depth-first, in display order.

    A node reachable twice is yielded once.
    """
    stack = [(0, node) for node in reversed(list(forest))]
    visited: set[int] = set()
    while stack:
        depth, node = stack.pop()
        if id(node) in visited:
            continue
        visited.add(id(node))
        yield depth, node
        stack.extend((depth + 1, child) for child in reversed(node.children))


def count_nodes(forest: Iterable[CommentNode]) -> int:
    return sum(1 for _ in walk(forest))


def find_orphans(comments: Sequence[Comment]) -> list[Comment]:
    """Comments that :func:`build_tree` drops because their parent is missing.

    Replies to a dropped comment are reported too, since they become
    unreachable from any root.
    """
    reachable = {node.id for _, node in walk(build_tree(comments))}
    return [c for c in comments if c.id not in reachable]
