"""SQLAlchemy models for users and the content they engage with."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid, func, true
from sqlalchemy.orm import Mapped, mapped_column

from nivora.core.database import Base


class User(Base):
  """Account row resolved from a verified Firebase identity."""

  __tablename__ = "users"

  id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
  firebase_uid: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
  email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
  profile_pic_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Post(Base):
  """A media post; the rendered state of posts is what the cache layer snapshots."""

  __tablename__ = "posts"

  id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
  caption: Mapped[str | None] = mapped_column(Text, nullable=True)
  media_url: Mapped[str] = mapped_column(Text, nullable=False)
  media_type: Mapped[str] = mapped_column(String(16), nullable=False, default="image", server_default="image")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
  updated_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=func.now())


class PostLike(Base):
  """A user's like on a post; at most one per (user, post)."""

  __tablename__ = "post_likes"
  __table_args__ = (Index("ux_post_likes_user_post", "user_id", "post_id", unique=True),)

  id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
  post_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("posts.id", ondelete="CASCADE"), index=True, nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Comment(Base):
  """A comment left on a post."""

  __tablename__ = "comments"

  id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
  post_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("posts.id", ondelete="CASCADE"), index=True, nullable=False)
  text: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
