"""Shared FastAPI dependencies for sessions and the fan-out engine."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from nivora.core.database import get_db
from nivora.fanout.context import FanoutContext
from nivora.services.feeds import FeedService


async def get_db_session(session: AsyncSession = Depends(get_db)) -> AsyncSession:  # noqa: B008
  """Dependency to get the database session."""
  return session


def get_fanout_context(request: Request) -> FanoutContext:
  """Return the process-wide fan-out context built during startup."""
  context = getattr(request.app.state, "fanout", None)
  if context is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting up")
  return context


def get_feed_service(context: FanoutContext = Depends(get_fanout_context)) -> FeedService:  # noqa: B008
  return FeedService(context.cache)
