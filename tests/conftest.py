"""Shared fixtures: a throwaway SQLite database and fake delivery collaborators."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from unittest.mock import MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import nivora.schema  # noqa: F401
from nivora.core.database import Base
from nivora.notifications.push_subscription_repo import PushSubscriptionEntry
from nivora.schema.sql import User

P256DH = "BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I"
AUTH = "gq8Yh5xA9l2mQ6pR"


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def database_url(tmp_path) -> str:
  # A file database lets fan-out tasks open their own connections alongside the request session.
  return f"sqlite+aiosqlite:///{tmp_path / 'nivora-test.db'}"


@pytest.fixture
async def engine(database_url):
  engine = create_async_engine(database_url)
  async with engine.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)
  yield engine
  await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
  return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
  async with session_factory() as session:
    yield session


@pytest.fixture
def make_user(session_factory) -> Callable[..., Awaitable[User]]:
  async def _make_user(username: str) -> User:
    user = User(id=uuid.uuid4(), firebase_uid=f"uid-{username}", username=username, email=f"{username}@example.com")
    async with session_factory() as session:
      session.add(user)
      await session.commit()
    return user

  return _make_user


@pytest.fixture
def push_sender() -> MagicMock:
  """Synchronous sender double; dispatch runs it in the threadpool like pywebpush."""
  return MagicMock()


@pytest.fixture
def make_subscription() -> Callable[[uuid.UUID, str], PushSubscriptionEntry]:
  def _make_subscription(user_id: uuid.UUID, endpoint: str) -> PushSubscriptionEntry:
    return PushSubscriptionEntry(id=uuid.uuid4(), user_id=user_id, endpoint=endpoint, p256dh=P256DH, auth=AUTH, user_agent="ua")

  return _make_subscription
