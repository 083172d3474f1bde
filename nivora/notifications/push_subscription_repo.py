"""Repository helpers for Web Push subscription persistence."""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nivora.core.database import get_session_factory
from nivora.schema.push_subscriptions import WebPushSubscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushSubscriptionEntry:
  """Capture a single stored web push subscription."""

  id: uuid.UUID
  user_id: uuid.UUID
  endpoint: str
  p256dh: str
  auth: str
  user_agent: str | None
  created_at: datetime.datetime | None = None


class PushSubscriptionRepository:
  """Persist device subscriptions keyed by their globally unique endpoint."""

  def __init__(self, *, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _factory(self) -> async_sessionmaker[AsyncSession] | None:
    return self._session_factory or get_session_factory()

  async def upsert(self, *, user_id: uuid.UUID, endpoint: str, p256dh: str, auth: str, user_agent: str | None = None) -> uuid.UUID:
    """Create or take over the subscription row for an endpoint and return its id."""
    session_factory = self._factory()
    if session_factory is None:
      raise RuntimeError("Database connection is not configured (NIVORA_PG_DSN is missing).")

    async with session_factory() as session:
      return await self._upsert_with_session(session=session, user_id=user_id, endpoint=endpoint, p256dh=p256dh, auth=auth, user_agent=user_agent)

  async def _upsert_with_session(self, *, session: AsyncSession, user_id: uuid.UUID, endpoint: str, p256dh: str, auth: str, user_agent: str | None) -> uuid.UUID:
    # The unique index on endpoint serializes concurrent registrations, so ownership moves atomically.
    insert = _dialect_insert(session)
    stmt = insert(WebPushSubscription).values(id=uuid.uuid4(), user_id=user_id, endpoint=endpoint, p256dh=p256dh, auth=auth, user_agent=user_agent)
    stmt = stmt.on_conflict_do_update(index_elements=["endpoint"], set_={"user_id": user_id, "p256dh": p256dh, "auth": auth, "user_agent": user_agent}).returning(WebPushSubscription.id)
    result = await session.execute(stmt)
    subscription_id = result.scalar_one()
    await session.commit()
    return subscription_id

  async def list_for(self, *, user_id: uuid.UUID) -> list[PushSubscriptionEntry]:
    """List all push subscriptions currently owned by a user."""
    session_factory = self._factory()
    if session_factory is None:
      return []

    async with session_factory() as session:
      return await self._list_for_with_session(session=session, user_id=user_id)

  async def _list_for_with_session(self, *, session: AsyncSession, user_id: uuid.UUID) -> list[PushSubscriptionEntry]:
    stmt = select(WebPushSubscription).where(WebPushSubscription.user_id == user_id).order_by(WebPushSubscription.created_at)
    result = await session.execute(stmt)
    rows = result.scalars().all()
    return [PushSubscriptionEntry(id=row.id, user_id=row.user_id, endpoint=row.endpoint, p256dh=row.p256dh, auth=row.auth, user_agent=row.user_agent, created_at=row.created_at) for row in rows]

  async def remove(self, *, subscription_id: uuid.UUID) -> None:
    """Delete a subscription by id; removing a missing row is a no-op."""
    session_factory = self._factory()
    if session_factory is None:
      return

    async with session_factory() as session:
      await session.execute(delete(WebPushSubscription).where(WebPushSubscription.id == subscription_id))
      await session.commit()

  async def remove_for_user_endpoint(self, *, user_id: uuid.UUID, endpoint: str) -> None:
    """Delete a subscription for a specific user and endpoint."""
    session_factory = self._factory()
    if session_factory is None:
      return

    async with session_factory() as session:
      # Constrain delete by user ownership so users cannot remove other devices.
      stmt = delete(WebPushSubscription).where(WebPushSubscription.user_id == user_id, WebPushSubscription.endpoint == endpoint)
      await session.execute(stmt)
      await session.commit()


def _dialect_insert(session: AsyncSession):  # type: ignore[no-untyped-def]
  """Pick the dialect insert construct that supports ON CONFLICT for the bound database."""
  dialect_name = session.bind.dialect.name if session.bind is not None else "postgresql"
  if dialect_name == "sqlite":
    return sqlite.insert
  return postgresql.insert
