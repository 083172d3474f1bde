"""Read-views over posts, served through the cache layer.

Cached values are JSON snapshots that are the same for every viewer. The
viewer's own like state is overlaid after the cache read so one entry can be
shared across users.
"""

from __future__ import annotations

import datetime
import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import Select, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from nivora.cache.keys import EXPLORE_TTL_SECONDS, FEED_TTL_SECONDS, POST_TTL_SECONDS, USER_FEED_TTL_SECONDS, explore_key, feed_key, post_key, user_feed_key
from nivora.cache.layer import CacheLayer
from nivora.schema.sql import Comment, Post, PostLike, User

PostSnapshot = dict[str, Any]


def _likes_count():  # type: ignore[no-untyped-def]
  return select(func.count(PostLike.id)).where(PostLike.post_id == Post.id).correlate(Post).scalar_subquery()


def _comments_count():  # type: ignore[no-untyped-def]
  return select(func.count(Comment.id)).where(Comment.post_id == Post.id).correlate(Post).scalar_subquery()


def _post_view_query(likes_count: Any | None = None) -> Select:
  likes = likes_count if likes_count is not None else _likes_count()
  return select(Post, User.username, User.profile_pic_url, likes.label("likes_count"), _comments_count().label("comments_count")).join(User, User.id == Post.user_id)


def _iso(value: datetime.datetime | None) -> str | None:
  return value.isoformat() if value is not None else None


def _snapshot(post: Post, username: str, profile_pic_url: str | None, likes_count: int, comments_count: int) -> PostSnapshot:
  return {
    "id": str(post.id),
    "caption": post.caption,
    "media_url": post.media_url,
    "media_type": post.media_type,
    "created_at": _iso(post.created_at),
    "updated_at": _iso(post.updated_at),
    "likes_count": int(likes_count or 0),
    "comments_count": int(comments_count or 0),
    "author": {"id": str(post.user_id), "username": username, "profile_pic_url": profile_pic_url},
  }


async def _load_page(session: AsyncSession, query: Select, *, page: int, limit: int) -> list[PostSnapshot]:
  result = await session.execute(query.limit(limit).offset((page - 1) * limit))
  return [_snapshot(*row) for row in result.all()]


async def load_feed_page(session: AsyncSession, *, page: int, limit: int) -> list[PostSnapshot]:
  """Newest posts across all authors."""
  query = _post_view_query().order_by(desc(Post.created_at), desc(Post.id))
  return await _load_page(session, query, page=page, limit=limit)


async def load_user_feed_page(session: AsyncSession, *, author_id: uuid.UUID, page: int, limit: int) -> list[PostSnapshot]:
  """Newest posts by one author."""
  query = _post_view_query().where(Post.user_id == author_id).order_by(desc(Post.created_at), desc(Post.id))
  return await _load_page(session, query, page=page, limit=limit)


async def load_explore_page(session: AsyncSession, *, page: int, limit: int) -> list[PostSnapshot]:
  """Most-liked posts first, ties broken by recency."""
  likes_count = _likes_count()
  query = _post_view_query(likes_count).order_by(desc(likes_count), desc(Post.created_at), desc(Post.id))
  return await _load_page(session, query, page=page, limit=limit)


async def load_post(session: AsyncSession, post_id: uuid.UUID) -> PostSnapshot | None:
  result = await session.execute(_post_view_query().where(Post.id == post_id))
  row = result.first()
  if row is None:
    return None
  return _snapshot(*row)


async def liked_post_ids(session: AsyncSession, *, viewer_id: uuid.UUID, post_ids: Iterable[str]) -> set[str]:
  """Return the subset of post ids the viewer has liked."""
  ids = [uuid.UUID(post_id) for post_id in post_ids]
  if not ids:
    return set()

  result = await session.execute(select(PostLike.post_id).where(PostLike.user_id == viewer_id, PostLike.post_id.in_(ids)))
  return {str(post_id) for post_id in result.scalars().all()}


def with_viewer_state(posts: Sequence[PostSnapshot], liked_ids: set[str]) -> list[PostSnapshot]:
  """Copy snapshots with `is_liked` set for the current viewer."""
  return [{**post, "is_liked": post["id"] in liked_ids} for post in posts]


class FeedService:
  """Read-through access to the cached post views."""

  def __init__(self, cache: CacheLayer) -> None:
    self._cache = cache

  async def feed(self, session: AsyncSession, *, page: int, limit: int) -> list[PostSnapshot]:
    return await self._cache.get_or_load(feed_key(page, limit), FEED_TTL_SECONDS, lambda: load_feed_page(session, page=page, limit=limit))

  async def explore(self, session: AsyncSession, *, page: int, limit: int) -> list[PostSnapshot]:
    return await self._cache.get_or_load(explore_key(page, limit), EXPLORE_TTL_SECONDS, lambda: load_explore_page(session, page=page, limit=limit))

  async def user_feed(self, session: AsyncSession, *, author_id: uuid.UUID, page: int, limit: int) -> list[PostSnapshot]:
    return await self._cache.get_or_load(user_feed_key(author_id, page, limit), USER_FEED_TTL_SECONDS, lambda: load_user_feed_page(session, author_id=author_id, page=page, limit=limit))

  async def post(self, session: AsyncSession, post_id: uuid.UUID) -> PostSnapshot | None:
    # Missing posts are not cached, so a later create is visible immediately.
    return await self._cache.get_or_load(post_key(post_id), POST_TTL_SECONDS, lambda: load_post(session, post_id))
