"""Entry point for side effects of committed mutations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from nivora.cache.invalidator import CacheInvalidator
from nivora.fanout.events import MutationEvent, MutationKind
from nivora.notifications.contracts import NotificationType
from nivora.notifications.dispatcher import PushDispatcher
from nivora.notifications.in_app_repo import InAppNotificationRepository, NotificationEntry
from nivora.notifications.payloads import render_payload

logger = logging.getLogger(__name__)

# Follow and post lifecycle events intentionally create no notification.
NOTIFYING_KINDS: dict[MutationKind, NotificationType] = {MutationKind.LIKED: NotificationType.LIKE, MutationKind.COMMENT_ADDED: NotificationType.COMMENT}


class FanoutCoordinator:
  """Launch notification, push and cache side effects of a mutation as detached tasks.

  `publish` returns immediately. Record creation, push dispatch and cache
  invalidation run as three independent tasks; a failure in one is logged and
  never reaches the others or the request that triggered them.
  """

  def __init__(self, *, notification_repo: InAppNotificationRepository, dispatcher: PushDispatcher, invalidator: CacheInvalidator, push_enabled: bool, icon_url: str, badge_url: str, store_timeout_seconds: float = 5.0) -> None:
    self._notification_repo = notification_repo
    self._dispatcher = dispatcher
    self._invalidator = invalidator
    self._push_enabled = push_enabled
    self._icon_url = icon_url
    self._badge_url = badge_url
    self._store_timeout_seconds = store_timeout_seconds
    self._tasks: set[asyncio.Task[None]] = set()

  @property
  def pending_tasks(self) -> int:
    return len(self._tasks)

  def publish(self, event: MutationEvent) -> None:
    """Schedule fan-out for a mutation that has already been committed."""
    notification_type = NOTIFYING_KINDS.get(event.kind)
    # No self-notifications: the owner acting on their own post only affects caches.
    if notification_type is not None and not event.is_self_action:
      self._spawn(self._create_record(event, notification_type), label="record", event=event)
      if self._push_enabled:
        self._spawn(self._dispatch_push(event, notification_type), label="push", event=event)

    self._spawn(self._invalidate(event), label="invalidate", event=event)

  async def drain(self, timeout: float | None = None) -> None:
    """Wait for launched fan-out work, used at shutdown and in tests."""
    pending = set(self._tasks)
    if not pending:
      return

    _, still_running = await asyncio.wait(pending, timeout=timeout)
    if still_running:
      logger.warning("Fan-out drain timed out with %d task(s) still running", len(still_running))

  def _spawn(self, coro: Coroutine[Any, Any, None], *, label: str, event: MutationEvent) -> None:
    task = asyncio.create_task(coro, name=f"fanout:{label}:{event.kind}:{event.post_id}")
    # Keep a strong reference so the loop cannot garbage-collect a running task.
    self._tasks.add(task)
    task.add_done_callback(self._on_task_done)

  def _on_task_done(self, task: asyncio.Task[None]) -> None:
    """Log background task exceptions to avoid silent fan-out failures."""
    self._tasks.discard(task)
    if task.cancelled():
      logger.warning("Background fan-out task cancelled task=%s", task.get_name())
      return

    exc = task.exception()
    if exc is not None:
      logger.error("Background fan-out task failed task=%s error=%s", task.get_name(), exc, exc_info=exc)

  async def _create_record(self, event: MutationEvent, notification_type: NotificationType) -> None:
    entry = NotificationEntry(recipient_id=event.author_id, actor_id=event.actor_id, type=notification_type, post_id=event.post_id, comment_id=event.comment_id)
    try:
      await asyncio.wait_for(self._notification_repo.create(entry), timeout=self._store_timeout_seconds)
    except Exception as exc:  # noqa: BLE001
      logger.error("Notification record insert failed recipient_id=%s type=%s error=%s", entry.recipient_id, notification_type, exc, exc_info=True)

  async def _dispatch_push(self, event: MutationEvent, notification_type: NotificationType) -> None:
    try:
      payload = render_payload(notification_type=notification_type, post_id=event.post_id, actor_username=event.actor_username, excerpt=event.excerpt, icon=self._icon_url, badge=self._badge_url)
    except Exception as exc:  # noqa: BLE001
      logger.error("Push content render failed type=%s error=%s", notification_type, exc, exc_info=True)
      return

    await self._dispatcher.dispatch(event.author_id, payload)

  async def _invalidate(self, event: MutationEvent) -> None:
    try:
      await self._invalidator.invalidate_for_mutation(event)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Cache invalidation failed kind=%s post_id=%s error=%s", event.kind, event.post_id, exc)
