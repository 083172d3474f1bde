from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from nivora.api.deps import get_db_session, get_fanout_context
from nivora.core.security import get_current_active_user
from nivora.fanout.context import FanoutContext
from nivora.schema.sql import User

router = APIRouter()


class MarkReadRequest(BaseModel):
  """Omit `notification_ids` to mark everything read."""

  notification_ids: list[uuid.UUID] | None = Field(default=None, alias="notificationIds", max_length=200)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


@router.get("/")
async def list_notifications(
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
  limit: int = Query(20, ge=1, le=100),  # noqa: B008
  offset: int = Query(0, ge=0),  # noqa: B008
  created_after: datetime | None = Query(None),  # noqa: B008
) -> list[dict[str, Any]]:
  """
  Poll for recent notifications for the current user.

  - **limit**: Max number of notifications to return.
  - **offset**: Number of notifications to skip (for pagination).
  - **created_after**: Only return notifications created after this timestamp (useful for polling).
  """
  views = await context.notification_repo.list_for_recipient(session, recipient_id=current_user.id, limit=limit, offset=offset, created_after=created_after)
  return [
    {
      "id": str(view.id),
      "type": view.type,
      "actor": {"id": str(view.actor_id), "username": view.actor_username, "profile_pic_url": view.actor_profile_pic_url},
      "post_id": str(view.post_id) if view.post_id else None,
      "comment_id": str(view.comment_id) if view.comment_id else None,
      "post_media_url": view.post_media_url,
      "post_media_type": view.post_media_type,
      "comment_text": view.comment_text,
      "is_read": view.is_read,
      "created_at": view.created_at.isoformat(),
    }
    for view in views
  ]


@router.post("/read")
async def mark_notifications_read(
  payload: MarkReadRequest | None = None,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
) -> dict[str, int]:
  notification_ids = payload.notification_ids if payload is not None else None
  updated = await context.notification_repo.mark_read(session, recipient_id=current_user.id, notification_ids=notification_ids)
  return {"updated": updated}


@router.get("/unread-count")
async def unread_count(
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
) -> dict[str, int]:
  return {"count": await context.notification_repo.unread_count(session, recipient_id=current_user.id)}
