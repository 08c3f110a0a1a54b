from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from foodfeed.auth.models import AuthUser
from foodfeed.backend.memory import InMemoryBackend
from foodfeed.comments.models import CommentNode
from foodfeed.comments.service import CommentThread, validate_comment_text
from foodfeed.comments.tree import MAX_COMMENT_DEPTH, build_comment_tree, count_nodes, next_depth
from foodfeed.errors import NotFound, TransientNetworkFailure, ValidationFailure

ALICE = AuthUser(id="u-alice", name="Alice Diner")
START = datetime(2024, 5, 6, tzinfo=timezone.utc)


def _comment(comment_id, parent_id=None, minutes=0):
    return CommentNode(
        id=comment_id,
        parent_id=parent_id,
        text=f"comment {comment_id}",
        created_at=START - timedelta(minutes=minutes),
    )


def _ids(nodes):
    return [n.id for n in nodes]


# ── tree ─────────────────────────────────────────────────────────────────


def test_replies_nest_under_parents():
    flat = [_comment("r2", "r1"), _comment("r1", "top"), _comment("top")]
    tree = build_comment_tree(flat)

    assert _ids(tree) == ["top"]
    assert _ids(tree[0].replies) == ["r1"]
    assert _ids(tree[0].replies[0].replies) == ["r2"]


def test_order_of_flat_list_is_kept():
    flat = [_comment("c"), _comment("b2", "a"), _comment("b"), _comment("b1", "a"), _comment("a")]
    tree = build_comment_tree(flat)

    assert _ids(tree) == ["c", "b", "a"]
    assert _ids(tree[2].replies) == ["b2", "b1"]


def test_orphan_reply_becomes_top_level():
    tree = build_comment_tree([_comment("orphan", "deleted"), _comment("top")])
    assert _ids(tree) == ["orphan", "top"]


def test_self_parent_and_cycles_do_not_lose_comments():
    flat = [_comment("self", "self"), _comment("a", "b"), _comment("b", "a")]
    tree = build_comment_tree(flat)

    assert count_nodes(tree) == 3
    assert "self" in _ids(tree)


@pytest.mark.parametrize(
    "flat",
    [
        [],
        [_comment("a")],
        [_comment("a", "b"), _comment("b", "c"), _comment("c", "a")],
        [_comment("x", "missing"), _comment("y", "x"), _comment("z", "y"), _comment("w", "x")],
        [_comment(str(n), str(n // 2) if n else None) for n in range(30)],
    ],
)
def test_every_comment_appears_exactly_once(flat):
    tree = build_comment_tree(flat)
    seen = []

    def walk(nodes):
        for node in nodes:
            seen.append(node.id)
            walk(node.replies)

    walk(tree)
    assert sorted(seen) == sorted(c.id for c in flat)
    assert count_nodes(tree) == len(flat)


def test_input_nodes_are_not_mutated():
    flat = [_comment("r", "top"), _comment("top")]
    build_comment_tree(flat)
    assert all(c.replies == [] for c in flat)


def test_next_depth_is_capped():
    assert next_depth(None) == 1
    assert next_depth(0) == 1
    assert next_depth(2) == 3
    assert next_depth(MAX_COMMENT_DEPTH) == MAX_COMMENT_DEPTH


def test_seeded_thread_shape():
    backend = InMemoryBackend.seeded()
    tree = build_comment_tree(asyncio.run(backend.fetch_comments_flat("v-3")))

    assert _ids(tree) == ["c-5", "c-4", "c-1"]
    assert _ids(tree[2].replies) == ["c-2"]
    assert _ids(tree[2].replies[0].replies) == ["c-3"]
    assert tree[0].author.name == "Bob Owner"


# ── posting ──────────────────────────────────────────────────────────────


@pytest.fixture
def thread():
    backend = InMemoryBackend.seeded().as_user(ALICE)
    thread = CommentThread(backend, "v-3")
    asyncio.run(thread.refresh())
    return thread


def test_validate_comment_text():
    assert validate_comment_text("  hi  ") == "hi"
    with pytest.raises(ValidationFailure):
        validate_comment_text("   ")
    with pytest.raises(ValidationFailure):
        validate_comment_text("x" * 2001)


def test_post_top_level_comment(thread):
    created = asyncio.run(thread.post("Need to try this"))

    assert created.depth == 0
    assert not created.pending
    assert thread.flat[0].id == created.id
    assert len(thread.flat) == 6
    assert not any(c.pending for c in thread.flat)


def test_reply_depth_is_capped(thread):
    reply = asyncio.run(thread.post("deep", parent_id="c-3"))
    deeper = asyncio.run(thread.post("deeper", parent_id=reply.id))
    assert reply.depth == 3
    assert deeper.depth == 3


def test_reply_to_missing_parent_is_rejected(thread):
    before = list(thread.flat)
    with pytest.raises(NotFound):
        asyncio.run(thread.post("hello?", parent_id="c-missing"))
    assert thread.flat == before


def test_pending_comment_shown_while_posting(thread):
    seen = {}
    original = thread.backend.post_comment

    async def post_and_peek(video_id, text, parent_id=None):
        seen["first"] = thread.flat[0]
        return await original(video_id, text, parent_id)

    with patch.object(thread.backend, "post_comment", side_effect=post_and_peek):
        asyncio.run(thread.post("Yum", parent_id="c-1"))

    assert seen["first"].pending
    assert seen["first"].depth == 1
    assert seen["first"].author.id == "u-alice"


def test_failed_post_rolls_back(thread):
    before = list(thread.flat)
    with patch.object(thread.backend, "post_comment", side_effect=TransientNetworkFailure("offline")):
        with pytest.raises(TransientNetworkFailure):
            asyncio.run(thread.post("Will this send?"))
    assert thread.flat == before


def test_empty_comment_is_never_sent(thread):
    with patch.object(thread.backend, "post_comment") as mock_post:
        with pytest.raises(ValidationFailure):
            asyncio.run(thread.post("  "))
    mock_post.assert_not_called()
