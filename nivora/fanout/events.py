"""Descriptions of committed content mutations."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import StrEnum


class MutationKind(StrEnum):
  POST_CREATED = "PostCreated"
  POST_UPDATED = "PostUpdated"
  POST_DELETED = "PostDeleted"
  LIKED = "Liked"
  UNLIKED = "Unliked"
  COMMENT_ADDED = "CommentAdded"


@dataclass(frozen=True)
class MutationEvent:
  """What a committed mutation changed.

  `recipient_id` is the owner of the affected post. `actor_username` and
  `excerpt` are only used to render push copy and may be absent.
  """

  kind: MutationKind
  actor_id: uuid.UUID
  post_id: uuid.UUID
  recipient_id: uuid.UUID | None = None
  comment_id: uuid.UUID | None = None
  actor_username: str | None = None
  excerpt: str | None = None

  @property
  def author_id(self) -> uuid.UUID:
    """Owner of the post whose rendered state changed."""
    return self.recipient_id if self.recipient_id is not None else self.actor_id

  @property
  def is_self_action(self) -> bool:
    return self.recipient_id is None or self.recipient_id == self.actor_id
