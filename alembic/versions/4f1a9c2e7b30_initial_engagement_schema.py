"""Initial engagement schema.

Revision ID: 4f1a9c2e7b30
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "4f1a9c2e7b30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "users",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("firebase_uid", sa.String(), nullable=False),
    sa.Column("username", sa.String(length=64), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("profile_pic_url", sa.Text(), nullable=True),
    sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("email"),
    sa.UniqueConstraint("username"),
  )
  op.create_index(op.f("ix_users_firebase_uid"), "users", ["firebase_uid"], unique=True)

  op.create_table(
    "posts",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("user_id", sa.Uuid(), nullable=False),
    sa.Column("caption", sa.Text(), nullable=True),
    sa.Column("media_url", sa.Text(), nullable=False),
    sa.Column("media_type", sa.String(length=16), server_default="image", nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_posts_user_id"), "posts", ["user_id"], unique=False)
  op.create_index(op.f("ix_posts_created_at"), "posts", ["created_at"], unique=False)

  op.create_table(
    "post_likes",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("user_id", sa.Uuid(), nullable=False),
    sa.Column("post_id", sa.Uuid(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["post_id"], ["posts.id"], ondelete="CASCADE"),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_post_likes_post_id"), "post_likes", ["post_id"], unique=False)
  op.create_index("ux_post_likes_user_post", "post_likes", ["user_id", "post_id"], unique=True)

  op.create_table(
    "comments",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("user_id", sa.Uuid(), nullable=False),
    sa.Column("post_id", sa.Uuid(), nullable=False),
    sa.Column("text", sa.Text(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["post_id"], ["posts.id"], ondelete="CASCADE"),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_comments_post_id"), "comments", ["post_id"], unique=False)

  op.create_table(
    "notifications",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("recipient_id", sa.Uuid(), nullable=False),
    sa.Column("actor_id", sa.Uuid(), nullable=False),
    sa.Column("type", sa.String(length=32), nullable=False),
    sa.Column("post_id", sa.Uuid(), nullable=True),
    sa.Column("comment_id", sa.Uuid(), nullable=True),
    sa.Column("is_read", sa.Boolean(), server_default=sa.false(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["actor_id"], ["users.id"], ondelete="CASCADE"),
    sa.ForeignKeyConstraint(["recipient_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_notifications_recipient_id"), "notifications", ["recipient_id"], unique=False)
  op.create_index(op.f("ix_notifications_created_at"), "notifications", ["created_at"], unique=False)
  op.create_index("ix_notifications_recipient_unread", "notifications", ["recipient_id", "is_read"], unique=False)

  op.create_table(
    "web_push_subscriptions",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("user_id", sa.Uuid(), nullable=False),
    sa.Column("endpoint", sa.Text(), nullable=False),
    sa.Column("p256dh", sa.Text(), nullable=False),
    sa.Column("auth", sa.Text(), nullable=False),
    sa.Column("user_agent", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_web_push_subscriptions_user_id"), "web_push_subscriptions", ["user_id"], unique=False)
  op.create_index("ux_web_push_subscriptions_endpoint", "web_push_subscriptions", ["endpoint"], unique=True)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_table("web_push_subscriptions")
  op.drop_table("notifications")
  op.drop_table("comments")
  op.drop_table("post_likes")
  op.drop_table("posts")
  op.drop_table("users")
