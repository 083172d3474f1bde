"""Post, like and comment mutations against the source of truth.

Each operation commits before returning the `MutationEvent` that describes it,
so callers can only start fan-out for changes that are durable. A failed
commit raises `PersistenceFailure` and no event is produced.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nivora.fanout.events import MutationEvent, MutationKind
from nivora.schema.sql import Comment, Post, PostLike, User

logger = logging.getLogger(__name__)


class PersistenceFailure(Exception):
  """The triggering mutation could not be committed; nothing downstream runs."""


class PostNotFound(Exception):
  """The referenced post does not exist."""


class PostOwnershipError(Exception):
  """The actor does not own the post they tried to change."""


async def _commit(session: AsyncSession, *, action: str) -> None:
  try:
    await session.commit()
  except SQLAlchemyError as exc:
    await session.rollback()
    logger.error("Mutation commit failed action=%s error=%s", action, exc, exc_info=True)
    raise PersistenceFailure(f"Failed to commit {action}") from exc


async def _load_post(session: AsyncSession, post_id: uuid.UUID) -> Post:
  try:
    result = await session.execute(select(Post).where(Post.id == post_id))
  except SQLAlchemyError as exc:
    logger.error("Post lookup failed post_id=%s error=%s", post_id, exc, exc_info=True)
    raise PersistenceFailure("Failed to load post") from exc

  post = result.scalar_one_or_none()
  if post is None:
    raise PostNotFound(str(post_id))
  return post


async def create_post(session: AsyncSession, *, actor: User, media_url: str, caption: str | None = None, media_type: str = "image") -> MutationEvent:
  """Create a post owned by the actor."""
  post_id = uuid.uuid4()
  session.add(Post(id=post_id, user_id=actor.id, caption=caption, media_url=media_url, media_type=media_type))
  await _commit(session, action="post create")
  return MutationEvent(kind=MutationKind.POST_CREATED, actor_id=actor.id, recipient_id=actor.id, post_id=post_id, actor_username=actor.username)


async def update_post(session: AsyncSession, *, actor: User, post_id: uuid.UUID, caption: str | None) -> MutationEvent:
  """Edit a post caption; only the owner may do so."""
  post = await _load_post(session, post_id)
  if post.user_id != actor.id:
    raise PostOwnershipError(str(post_id))

  post.caption = caption
  await _commit(session, action="post update")
  return MutationEvent(kind=MutationKind.POST_UPDATED, actor_id=actor.id, recipient_id=actor.id, post_id=post_id, actor_username=actor.username)


async def delete_post(session: AsyncSession, *, actor: User, post_id: uuid.UUID) -> MutationEvent:
  """Delete a post; only the owner may do so."""
  post = await _load_post(session, post_id)
  if post.user_id != actor.id:
    raise PostOwnershipError(str(post_id))

  await session.delete(post)
  await _commit(session, action="post delete")
  return MutationEvent(kind=MutationKind.POST_DELETED, actor_id=actor.id, recipient_id=actor.id, post_id=post_id, actor_username=actor.username)


async def toggle_like(session: AsyncSession, *, actor: User, post_id: uuid.UUID) -> tuple[bool, MutationEvent | None]:
  """Flip the actor's like on a post and return the new state.

  The event is None when a concurrent request already made the same
  transition, so fan-out runs once per real state change.
  """
  post = await _load_post(session, post_id)
  owner_id = post.user_id

  try:
    existing = await session.execute(select(PostLike.id).where(PostLike.user_id == actor.id, PostLike.post_id == post_id))
  except SQLAlchemyError as exc:
    raise PersistenceFailure("Failed to load like state") from exc

  like_id = existing.scalar_one_or_none()
  if like_id is not None:
    try:
      await session.execute(delete(PostLike).where(PostLike.id == like_id))
    except SQLAlchemyError as exc:
      await session.rollback()
      logger.error("Unlike failed user_id=%s post_id=%s error=%s", actor.id, post_id, exc, exc_info=True)
      raise PersistenceFailure("Failed to remove like") from exc
    await _commit(session, action="unlike")
    return False, MutationEvent(kind=MutationKind.UNLIKED, actor_id=actor.id, recipient_id=owner_id, post_id=post_id, actor_username=actor.username)

  session.add(PostLike(user_id=actor.id, post_id=post_id))
  try:
    await session.commit()
  except IntegrityError:
    # The unique (user, post) index lost a race to a concurrent like from the same user.
    await session.rollback()
    logger.info("Concurrent like already recorded user_id=%s post_id=%s", actor.id, post_id)
    return True, None
  except SQLAlchemyError as exc:
    await session.rollback()
    raise PersistenceFailure("Failed to commit like") from exc

  return True, MutationEvent(kind=MutationKind.LIKED, actor_id=actor.id, recipient_id=owner_id, post_id=post_id, actor_username=actor.username)


async def add_comment(session: AsyncSession, *, actor: User, post_id: uuid.UUID, text: str) -> tuple[uuid.UUID, MutationEvent]:
  """Add a comment to a post and return its id."""
  post = await _load_post(session, post_id)
  comment_id = uuid.uuid4()
  session.add(Comment(id=comment_id, user_id=actor.id, post_id=post_id, text=text))
  await _commit(session, action="comment create")
  return comment_id, MutationEvent(kind=MutationKind.COMMENT_ADDED, actor_id=actor.id, recipient_id=post.user_id, post_id=post_id, comment_id=comment_id, actor_username=actor.username, excerpt=text)


async def count_likes(session: AsyncSession, post_id: uuid.UUID) -> int:
  result = await session.execute(select(func.count(PostLike.id)).where(PostLike.post_id == post_id))
  return int(result.scalar_one())
