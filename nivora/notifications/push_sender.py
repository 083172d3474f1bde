"""Push notification delivery implementations."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from http import HTTPStatus

from pywebpush import WebPushException, webpush

from nivora.notifications.contracts import NotificationPayload, PushSender, PushTarget, SubscriptionDeliveryFailed, SubscriptionGone

logger = logging.getLogger(__name__)

_GONE_STATUSES = {HTTPStatus.GONE, HTTPStatus.NOT_FOUND}


@dataclass(frozen=True)
class VapidConfig:
  """Process-wide application identity used to sign Web Push requests."""

  public_key: str
  private_key: str
  sub: str


class WebPushSender(PushSender):
  """`pywebpush` backed sender making exactly one attempt per call."""

  def __init__(self, *, vapid_config: VapidConfig, timeout_seconds: float = 10.0) -> None:
    self._vapid_config = vapid_config
    self._timeout_seconds = timeout_seconds

  def send(self, target: PushTarget, payload: NotificationPayload) -> None:
    """Encrypt and send a payload, classifying failures as gone or failed."""
    subscription_info = {"endpoint": target.endpoint, "keys": {"p256dh": target.p256dh, "auth": target.auth}}

    try:
      webpush(subscription_info=subscription_info, data=json.dumps(payload.to_dict()), vapid_private_key=self._vapid_config.private_key, vapid_claims={"sub": self._vapid_config.sub}, timeout=self._timeout_seconds)
    except WebPushException as exc:
      status_code = _extract_status_code(exc)
      if status_code in _GONE_STATUSES:
        raise SubscriptionGone(f"Push subscription is gone (status={status_code})") from exc

      raise SubscriptionDeliveryFailed(f"Push delivery failed (status={status_code if status_code else 'unknown'})") from exc
    except Exception as exc:  # noqa: BLE001
      # Transport errors (timeouts, DNS, TLS) are transient from our point of view.
      raise SubscriptionDeliveryFailed(f"Push transport error: {type(exc).__name__}: {exc}") from exc


class NullPushSender(PushSender):
  """No-op push sender used when push notifications are disabled or unconfigured."""

  def send(self, target: PushTarget, payload: NotificationPayload) -> None:
    """Drop the notification while recording a debug log."""
    logger.debug("Push notifications disabled; dropping push endpoint_present=%s", bool(target.endpoint))


def _extract_status_code(exc: WebPushException) -> int | None:
  """Extract an HTTP status code from a pywebpush exception when available."""
  response = getattr(exc, "response", None)
  if response is None:
    return None

  status = getattr(response, "status_code", None)
  if isinstance(status, int):
    return status

  return None
