"""SQLAlchemy model for in-app notifications."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Uuid, false, func
from sqlalchemy.orm import Mapped, mapped_column

from nivora.core.database import Base


class Notification(Base):
  """Persist in-app notifications independently of push delivery."""

  __tablename__ = "notifications"
  __table_args__ = (Index("ix_notifications_recipient_unread", "recipient_id", "is_read"),)

  id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
  recipient_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
  actor_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
  type: Mapped[str] = mapped_column(String(32), nullable=False)
  post_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
  comment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
  is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
