from __future__ import annotations

from typing import Iterable

from .models import CommentNode

MAX_COMMENT_DEPTH = 3


def next_depth(parent_depth: int | None) -> int:
    """Depth for a reply to a comment at ``parent_depth``, capped at 3."""
    return min((parent_depth or 0) + 1, MAX_COMMENT_DEPTH)


def _creates_cycle(
    node_id: str,
    parent_id: str,
    attached_to: dict[str, str],
) -> bool:
    current: str | None = parent_id
    seen: set[str] = set()
    while current is not None and current not in seen:
        if current == node_id:
            return True
        seen.add(current)
        current = attached_to.get(current)
    return False


def build_comment_tree(flat_comments: Iterable[CommentNode]) -> list[CommentNode]:
    """
    Thread a flat comment list into top-level comments with nested replies.

    Nodes are copied, so the input list is left as it was. Replies keep the
    order the flat list supplied them in. A reply whose parent is missing
    from the list, or whose parent chain would loop back onto itself, is
    returned as a top-level comment instead of being dropped.
    """
    nodes = [comment.model_copy(update={"replies": []}) for comment in flat_comments]
    by_id = {node.id: node for node in nodes}

    top_level: list[CommentNode] = []
    attached_to: dict[str, str] = {}
    for node in nodes:
        parent = by_id.get(node.parent_id) if node.parent_id else None
        if parent is None or parent is node or _creates_cycle(node.id, parent.id, attached_to):
            top_level.append(node)
            continue
        parent.replies.append(node)
        attached_to[node.id] = parent.id

    return top_level


def count_nodes(comments: Iterable[CommentNode]) -> int:
    return sum(1 + count_nodes(comment.replies) for comment in comments)
