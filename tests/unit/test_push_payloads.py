from __future__ import annotations

import uuid

import pytest

from nivora.notifications.contracts import NotificationType
from nivora.notifications.payloads import EXCERPT_MAX_CHARS, render_payload


def test_like_payload_links_to_post():
  post_id = uuid.uuid4()

  payload = render_payload(notification_type=NotificationType.LIKE, post_id=post_id, actor_username="bob", excerpt=None, icon="/icon.png", badge="/badge.png")

  assert payload.title == "New like"
  assert payload.body == "bob liked your post."
  assert payload.url == f"/post/{post_id}"
  assert payload.icon == "/icon.png"
  assert payload.badge == "/badge.png"


def test_comment_payload_includes_collapsed_excerpt():
  payload = render_payload(notification_type=NotificationType.COMMENT, post_id=uuid.uuid4(), actor_username="bob", excerpt="  great\n shot  ", icon="/i", badge="/b")

  assert payload.title == "New comment"
  assert payload.body == "bob commented: great shot"


def test_long_comment_excerpt_is_truncated():
  payload = render_payload(notification_type=NotificationType.COMMENT, post_id=uuid.uuid4(), actor_username="bob", excerpt="x" * 500, icon="/i", badge="/b")

  excerpt = payload.body.removeprefix("bob commented: ")
  assert len(excerpt) == EXCERPT_MAX_CHARS == 80
  assert excerpt.endswith("…")


def test_missing_actor_name_falls_back():
  payload = render_payload(notification_type=NotificationType.LIKE, post_id=uuid.uuid4(), actor_username=None, excerpt=None, icon="/i", badge="/b")

  assert payload.body == "Someone liked your post."


def test_unknown_type_is_rejected():
  with pytest.raises(ValueError):
    render_payload(notification_type="follow", post_id=uuid.uuid4(), actor_username="bob", excerpt=None, icon="/i", badge="/b")  # type: ignore[arg-type]
