"""Templates for push notification payloads."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from nivora.notifications.contracts import NotificationPayload, NotificationType

EXCERPT_MAX_CHARS = 80


@dataclass(frozen=True)
class PushTemplate:
  """Define the copy for one notification type."""

  title_template: str
  body_template: str


TEMPLATES: dict[NotificationType, PushTemplate] = {
  NotificationType.LIKE: PushTemplate(title_template="New like", body_template="{{actor}} liked your post."),
  NotificationType.COMMENT: PushTemplate(title_template="New comment", body_template="{{actor}} commented: {{excerpt}}"),
}


def _excerpt(text: str | None) -> str:
  normalized = " ".join((text or "").split())
  if len(normalized) <= EXCERPT_MAX_CHARS:
    return normalized
  return normalized[: EXCERPT_MAX_CHARS - 1].rstrip() + "…"


def render_payload(*, notification_type: NotificationType, post_id: uuid.UUID, actor_username: str | None, excerpt: str | None, icon: str, badge: str) -> NotificationPayload:
  """Render the push payload for an engagement event."""
  template = TEMPLATES.get(notification_type)
  if template is None:
    raise ValueError(f"Unknown push template: {notification_type}")

  values = {"actor": actor_username or "Someone", "excerpt": _excerpt(excerpt)}
  title = template.title_template
  body = template.body_template
  for key, value in values.items():
    title = title.replace(f"{{{{{key}}}}}", value)
    body = body.replace(f"{{{{{key}}}}}", value)

  return NotificationPayload(title=title, body=body, url=f"/post/{post_id}", icon=icon, badge=badge)
