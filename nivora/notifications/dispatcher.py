"""Fan a push payload out to every device a recipient has registered."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import Counter
from enum import StrEnum

from starlette.concurrency import run_in_threadpool

from nivora.notifications.contracts import NotificationPayload, PushSender, PushTarget, SubscriptionDeliveryFailed, SubscriptionGone
from nivora.notifications.push_subscription_repo import PushSubscriptionEntry, PushSubscriptionRepository

logger = logging.getLogger(__name__)


class DeliveryOutcome(StrEnum):
  DELIVERED = "delivered"
  PRUNED = "pruned"
  FAILED = "failed"


class PushDispatcher:
  """Deliver one payload to each subscription of a recipient, concurrently and independently.

  Every subscription gets exactly one attempt. Endpoints reported gone are
  removed from the registry; every other failure is logged and dropped.
  `dispatch` itself never raises.
  """

  def __init__(self, *, push_sender: PushSender, subscription_repo: PushSubscriptionRepository, store_timeout_seconds: float = 5.0, send_timeout_seconds: float = 10.0) -> None:
    self._push_sender = push_sender
    self._subscription_repo = subscription_repo
    self._store_timeout_seconds = store_timeout_seconds
    self._send_timeout_seconds = send_timeout_seconds

  async def dispatch(self, recipient_id: uuid.UUID, payload: NotificationPayload) -> None:
    """Deliver a payload to every device registered by a recipient."""
    # Read all endpoints first so partial failures do not block remaining devices.
    try:
      subscriptions = await asyncio.wait_for(self._subscription_repo.list_for(user_id=recipient_id), timeout=self._store_timeout_seconds)
    except Exception as exc:  # noqa: BLE001
      logger.error("Push subscription lookup failed user_id=%s error=%s", recipient_id, exc, exc_info=True)
      return

    if not subscriptions:
      logger.debug("No push subscriptions for user_id=%s", recipient_id)
      return

    results = await asyncio.gather(*(self._deliver(subscription, payload) for subscription in subscriptions), return_exceptions=True)
    outcomes: Counter[str] = Counter()
    for result in results:
      if isinstance(result, BaseException):
        logger.error("Push delivery task crashed user_id=%s error=%s", recipient_id, result)
        outcomes[DeliveryOutcome.FAILED] += 1
      else:
        outcomes[result] += 1

    logger.info("Push dispatch finished user_id=%s delivered=%d pruned=%d failed=%d", recipient_id, outcomes[DeliveryOutcome.DELIVERED], outcomes[DeliveryOutcome.PRUNED], outcomes[DeliveryOutcome.FAILED])

  async def _deliver(self, subscription: PushSubscriptionEntry, payload: NotificationPayload) -> DeliveryOutcome:
    target = PushTarget(endpoint=subscription.endpoint, p256dh=subscription.p256dh, auth=subscription.auth)
    try:
      await asyncio.wait_for(run_in_threadpool(self._push_sender.send, target, payload), timeout=self._send_timeout_seconds)
    except SubscriptionGone as exc:
      logger.info("Push subscription gone; removing subscription_id=%s reason=%s", subscription.id, exc)
      await self._prune(subscription)
      return DeliveryOutcome.PRUNED
    except SubscriptionDeliveryFailed as exc:
      logger.warning("Push notification delivery failed subscription_id=%s error=%s", subscription.id, exc)
      return DeliveryOutcome.FAILED
    except TimeoutError:
      logger.warning("Push notification delivery timed out subscription_id=%s timeout=%.1fs", subscription.id, self._send_timeout_seconds)
      return DeliveryOutcome.FAILED
    except Exception as exc:  # noqa: BLE001
      logger.error("Push notification delivery failed subscription_id=%s error=%s", subscription.id, exc, exc_info=True)
      return DeliveryOutcome.FAILED

    return DeliveryOutcome.DELIVERED

  async def _prune(self, subscription: PushSubscriptionEntry) -> None:
    # Remove invalid subscriptions immediately to prevent repeated failed sends.
    try:
      await asyncio.wait_for(self._subscription_repo.remove(subscription_id=subscription.id), timeout=self._store_timeout_seconds)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed deleting gone push subscription subscription_id=%s error=%s", subscription.id, exc, exc_info=True)
