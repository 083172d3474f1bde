"""Repository helpers for in-app notifications."""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nivora.core.database import get_session_factory
from nivora.notifications.contracts import NotificationType
from nivora.schema.notifications import Notification
from nivora.schema.sql import Comment, Post, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEntry:
  """Capture a notification record to persist."""

  recipient_id: uuid.UUID
  actor_id: uuid.UUID
  type: NotificationType
  post_id: uuid.UUID | None = None
  comment_id: uuid.UUID | None = None


@dataclass(frozen=True)
class NotificationView:
  """A stored notification plus the actor, post and comment details the UI renders."""

  id: uuid.UUID
  type: str
  actor_id: uuid.UUID
  actor_username: str | None
  actor_profile_pic_url: str | None
  post_id: uuid.UUID | None
  comment_id: uuid.UUID | None
  is_read: bool
  created_at: datetime.datetime
  post_media_url: str | None = None
  post_media_type: str | None = None
  comment_text: str | None = None


class InAppNotificationRepository:
  """Persist and read notification records."""

  def __init__(self, *, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _factory(self) -> async_sessionmaker[AsyncSession] | None:
    return self._session_factory or get_session_factory()

  async def create(self, entry: NotificationEntry) -> uuid.UUID | None:
    """Insert a new unread notification row."""
    session_factory = self._factory()
    if session_factory is None:
      return None
    async with session_factory() as session:
      return await self._create_with_session(session=session, entry=entry)

  async def _create_with_session(self, *, session: AsyncSession, entry: NotificationEntry) -> uuid.UUID:
    notification_id = uuid.uuid4()
    session.add(Notification(id=notification_id, recipient_id=entry.recipient_id, actor_id=entry.actor_id, type=str(entry.type), post_id=entry.post_id, comment_id=entry.comment_id, is_read=False))
    await session.commit()
    return notification_id

  async def list_for_recipient(self, session: AsyncSession, *, recipient_id: uuid.UUID, limit: int = 20, offset: int = 0, created_after: datetime.datetime | None = None) -> list[NotificationView]:
    """Return a page of notifications for a recipient, newest first."""
    # Posts and comments may be gone by the time the list is read, so both joins are outer.
    query = (
      select(Notification, User.username, User.profile_pic_url, Post.media_url, Post.media_type, Comment.text)
      .outerjoin(User, User.id == Notification.actor_id)
      .outerjoin(Post, Post.id == Notification.post_id)
      .outerjoin(Comment, Comment.id == Notification.comment_id)
      .where(Notification.recipient_id == recipient_id)
    )
    if created_after is not None:
      query = query.where(Notification.created_at > created_after)

    query = query.order_by(desc(Notification.created_at), desc(Notification.id)).limit(limit).offset(offset)
    result = await session.execute(query)
    return [
      NotificationView(
        id=row.id,
        type=row.type,
        actor_id=row.actor_id,
        actor_username=username,
        actor_profile_pic_url=profile_pic_url,
        post_id=row.post_id,
        comment_id=row.comment_id,
        is_read=bool(row.is_read),
        created_at=row.created_at,
        post_media_url=media_url,
        post_media_type=media_type,
        comment_text=comment_text,
      )
      for row, username, profile_pic_url, media_url, media_type, comment_text in result.all()
    ]

  async def mark_read(self, session: AsyncSession, *, recipient_id: uuid.UUID, notification_ids: Sequence[uuid.UUID] | None = None) -> int:
    """Flip `is_read` for all unread notifications, or only the given ids, owned by a recipient."""
    stmt = update(Notification).where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
    if notification_ids is not None:
      if not notification_ids:
        return 0
      stmt = stmt.where(Notification.id.in_(list(notification_ids)))

    result = await session.execute(stmt.values(is_read=True).execution_options(synchronize_session=False))
    await session.commit()
    return int(result.rowcount or 0)

  async def unread_count(self, session: AsyncSession, *, recipient_id: uuid.UUID) -> int:
    stmt = select(func.count(Notification.id)).where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
    result = await session.execute(stmt)
    return int(result.scalar_one())


class NullInAppNotificationRepository(InAppNotificationRepository):
  """No-op repository when persistence is unavailable."""

  async def create(self, entry: NotificationEntry) -> uuid.UUID | None:
    logger.debug("In-app notification persistence disabled; dropping type=%s", entry.type)
    return None
