"""Process-scoped wiring of the fan-out engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nivora.cache.factory import build_cache_layer
from nivora.cache.invalidator import CacheInvalidator
from nivora.cache.layer import CacheLayer
from nivora.config import Settings
from nivora.fanout.coordinator import FanoutCoordinator
from nivora.notifications.contracts import PushSender
from nivora.notifications.factory import build_notification_repo, build_push_dispatcher, build_push_sender
from nivora.notifications.in_app_repo import InAppNotificationRepository
from nivora.notifications.push_subscription_repo import PushSubscriptionRepository

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_SECONDS = 10.0


@dataclass(frozen=True)
class FanoutContext:
  """Collaborators built once at startup and passed explicitly to request handlers."""

  cache: CacheLayer
  subscription_repo: PushSubscriptionRepository
  notification_repo: InAppNotificationRepository
  push_sender: PushSender
  coordinator: FanoutCoordinator
  vapid_public_key: str | None

  async def aclose(self) -> None:
    """Let in-flight fan-out finish, then release the cache connection."""
    await self.coordinator.drain(timeout=SHUTDOWN_DRAIN_SECONDS)
    await self.cache.close()


def build_fanout_context(settings: Settings, *, session_factory: async_sessionmaker[AsyncSession] | None = None, cache: CacheLayer | None = None, push_sender: PushSender | None = None) -> FanoutContext:
  """Construct the fan-out engine; overrides exist for tests and scripts."""
  cache_layer = cache if cache is not None else build_cache_layer(settings)
  sender = push_sender if push_sender is not None else build_push_sender(settings)
  subscription_repo = PushSubscriptionRepository(session_factory=session_factory)
  notification_repo = build_notification_repo(settings, session_factory=session_factory)
  dispatcher = build_push_dispatcher(settings, push_sender=sender, subscription_repo=subscription_repo)
  coordinator = FanoutCoordinator(
    notification_repo=notification_repo,
    dispatcher=dispatcher,
    invalidator=CacheInvalidator(cache_layer),
    push_enabled=settings.push_notifications_enabled or push_sender is not None,
    icon_url=settings.push_icon_url,
    badge_url=settings.push_badge_url,
    store_timeout_seconds=settings.subscription_store_timeout_seconds,
  )
  logger.info("Fan-out context ready cache_backend=%s push_enabled=%s", settings.cache_backend, settings.push_notifications_enabled)
  return FanoutContext(cache=cache_layer, subscription_repo=subscription_repo, notification_repo=notification_repo, push_sender=sender, coordinator=coordinator, vapid_public_key=settings.push_vapid_public_key)
