"""Factory helpers for notification collaborators."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nivora.config import Settings
from nivora.notifications.contracts import PushSender
from nivora.notifications.dispatcher import PushDispatcher
from nivora.notifications.in_app_repo import InAppNotificationRepository, NullInAppNotificationRepository
from nivora.notifications.push_sender import NullPushSender, VapidConfig, WebPushSender
from nivora.notifications.push_subscription_repo import PushSubscriptionRepository

logger = logging.getLogger(__name__)


def build_push_sender(settings: Settings) -> PushSender:
  """Construct the push transport from the process-wide VAPID identity."""
  if settings.push_notifications_enabled and settings.push_vapid_public_key and settings.push_vapid_private_key and settings.push_vapid_sub:
    return WebPushSender(vapid_config=VapidConfig(public_key=settings.push_vapid_public_key, private_key=settings.push_vapid_private_key, sub=settings.push_vapid_sub), timeout_seconds=settings.push_timeout_seconds)

  logger.info("Push notifications disabled; using the null push sender.")
  return NullPushSender()


def build_notification_repo(settings: Settings, *, session_factory: async_sessionmaker[AsyncSession] | None = None) -> InAppNotificationRepository:
  """Persist in-app notifications only when a database is configured."""
  if session_factory is not None or settings.pg_dsn:
    return InAppNotificationRepository(session_factory=session_factory)
  return NullInAppNotificationRepository()


def build_push_dispatcher(settings: Settings, *, push_sender: PushSender, subscription_repo: PushSubscriptionRepository) -> PushDispatcher:
  # Allow slack over the transport timeout so pywebpush reports its own timeout first.
  return PushDispatcher(push_sender=push_sender, subscription_repo=subscription_repo, store_timeout_seconds=settings.subscription_store_timeout_seconds, send_timeout_seconds=settings.push_timeout_seconds + 1.0)
