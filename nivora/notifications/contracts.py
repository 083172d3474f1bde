"""Contracts for engagement notifications and push delivery."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Protocol


class NotificationType(StrEnum):
  LIKE = "like"
  COMMENT = "comment"


@dataclass(frozen=True)
class NotificationPayload:
  """Content rendered by the service worker; built per event and never persisted as-is."""

  title: str
  body: str
  url: str
  icon: str
  badge: str

  def to_dict(self) -> dict[str, str]:
    return asdict(self)


@dataclass(frozen=True)
class PushTarget:
  """A single device endpoint plus the key material needed to encrypt for it."""

  endpoint: str
  p256dh: str
  auth: str


class NotificationError(Exception):
  """Base class for all notification delivery failures."""


class SubscriptionGone(NotificationError):
  """The push service reports the subscription no longer exists; it will never succeed again."""


class SubscriptionDeliveryFailed(NotificationError):
  """Any other delivery failure; logged and discarded without retry."""


class PushSender(Protocol):
  """Delivery contract for a single push attempt."""

  def send(self, target: PushTarget, payload: NotificationPayload) -> None:
    """Send one encrypted push message synchronously."""
