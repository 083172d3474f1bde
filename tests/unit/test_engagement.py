from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from nivora.fanout.events import MutationKind
from nivora.schema.sql import Comment, Post, PostLike
from nivora.services.engagement import PersistenceFailure, PostNotFound, PostOwnershipError, add_comment, count_likes, create_post, delete_post, toggle_like, update_post


@pytest.mark.anyio
async def test_create_post_commits_before_returning_event(session, session_factory, make_user):
  alice = await make_user("alice")

  event = await create_post(session, actor=alice, media_url="https://cdn.example.com/a.jpg", caption="sunset")

  assert event.kind == MutationKind.POST_CREATED
  assert event.actor_id == alice.id
  assert event.author_id == alice.id
  async with session_factory() as other:
    stored = (await other.execute(select(Post).where(Post.id == event.post_id))).scalar_one()
  assert stored.caption == "sunset"


@pytest.mark.anyio
async def test_toggle_like_flips_state_and_targets_owner(session, make_user):
  alice = await make_user("alice")
  bob = await make_user("bob")
  created = await create_post(session, actor=alice, media_url="https://cdn.example.com/a.jpg")

  liked, like_event = await toggle_like(session, actor=bob, post_id=created.post_id)
  assert liked is True
  assert like_event.kind == MutationKind.LIKED
  assert like_event.recipient_id == alice.id
  assert like_event.actor_id == bob.id
  assert like_event.actor_username == "bob"
  assert await count_likes(session, created.post_id) == 1

  liked, unlike_event = await toggle_like(session, actor=bob, post_id=created.post_id)
  assert liked is False
  assert unlike_event.kind == MutationKind.UNLIKED
  assert await count_likes(session, created.post_id) == 0


@pytest.mark.anyio
async def test_self_like_is_marked_as_self_action(session, make_user):
  alice = await make_user("alice")
  created = await create_post(session, actor=alice, media_url="https://cdn.example.com/a.jpg")

  _, event = await toggle_like(session, actor=alice, post_id=created.post_id)

  assert event.is_self_action


@pytest.mark.anyio
async def test_add_comment_carries_excerpt_and_comment_id(session, make_user):
  alice = await make_user("alice")
  bob = await make_user("bob")
  created = await create_post(session, actor=alice, media_url="https://cdn.example.com/a.jpg")

  comment_id, event = await add_comment(session, actor=bob, post_id=created.post_id, text="love this")

  assert event.kind == MutationKind.COMMENT_ADDED
  assert event.comment_id == comment_id
  assert event.recipient_id == alice.id
  assert event.excerpt == "love this"
  stored = (await session.execute(select(Comment).where(Comment.id == comment_id))).scalar_one()
  assert stored.text == "love this"


@pytest.mark.anyio
async def test_only_owner_can_update_or_delete(session, make_user):
  alice = await make_user("alice")
  bob = await make_user("bob")
  created = await create_post(session, actor=alice, media_url="https://cdn.example.com/a.jpg")

  with pytest.raises(PostOwnershipError):
    await update_post(session, actor=bob, post_id=created.post_id, caption="mine now")

  with pytest.raises(PostOwnershipError):
    await delete_post(session, actor=bob, post_id=created.post_id)

  updated = await update_post(session, actor=alice, post_id=created.post_id, caption="edited")
  assert updated.kind == MutationKind.POST_UPDATED
  deleted = await delete_post(session, actor=alice, post_id=created.post_id)
  assert deleted.kind == MutationKind.POST_DELETED
  assert (await session.execute(select(Post).where(Post.id == created.post_id))).scalar_one_or_none() is None


@pytest.mark.anyio
async def test_missing_post_raises_not_found(session, make_user):
  bob = await make_user("bob")

  with pytest.raises(PostNotFound):
    await toggle_like(session, actor=bob, post_id=uuid.uuid4())

  with pytest.raises(PostNotFound):
    await add_comment(session, actor=bob, post_id=uuid.uuid4(), text="hello")


@pytest.mark.anyio
async def test_failed_commit_raises_persistence_failure_and_produces_no_event():
  actor = MagicMock(id=uuid.uuid4(), username="alice")
  session = MagicMock()
  session.commit = AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("database is down")))
  session.rollback = AsyncMock()

  with pytest.raises(PersistenceFailure):
    await create_post(session, actor=actor, media_url="https://cdn.example.com/a.jpg")

  session.rollback.assert_awaited_once()


@pytest.mark.anyio
async def test_like_rows_are_unique_per_user_and_post(session, make_user):
  alice = await make_user("alice")
  bob = await make_user("bob")
  created = await create_post(session, actor=alice, media_url="https://cdn.example.com/a.jpg")
  await toggle_like(session, actor=bob, post_id=created.post_id)

  rows = (await session.execute(select(PostLike).where(PostLike.post_id == created.post_id))).scalars().all()

  assert len(rows) == 1


@pytest.mark.anyio
async def test_failed_unlike_rolls_back_and_raises_persistence_failure():
  actor = MagicMock(id=uuid.uuid4(), username="bob")
  post = MagicMock(id=uuid.uuid4(), user_id=uuid.uuid4())
  post_lookup = MagicMock()
  post_lookup.scalar_one_or_none.return_value = post
  like_lookup = MagicMock()
  like_lookup.scalar_one_or_none.return_value = uuid.uuid4()
  session = MagicMock()
  session.execute = AsyncMock(side_effect=[post_lookup, like_lookup, OperationalError("DELETE", {}, Exception("db down"))])
  session.commit = AsyncMock()
  session.rollback = AsyncMock()

  with pytest.raises(PersistenceFailure):
    await toggle_like(session, actor=actor, post_id=post.id)

  session.rollback.assert_awaited_once()
  session.commit.assert_not_awaited()
