"""Routes for Web Push subscription lifecycle management."""

from __future__ import annotations

import logging
import re
import urllib.parse

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from nivora.api.deps import get_fanout_context
from nivora.core.security import get_current_active_user
from nivora.fanout.context import FanoutContext
from nivora.schema.sql import User

logger = logging.getLogger(__name__)

_ALLOWED_PUSH_HOSTS = {"fcm.googleapis.com", "updates.push.services.mozilla.com", "push.services.mozilla.com", "web.push.apple.com"}
_BASE64_RE = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")
_USER_AGENT_MAX_LENGTH = 512

router = APIRouter()


def _validate_endpoint(value: str) -> str:
  """Restrict endpoints to known provider hosts over HTTPS."""
  normalized = value.strip()
  parsed = urllib.parse.urlparse(normalized)

  if parsed.scheme.lower() != "https":
    raise PydanticCustomError("push_endpoint_https", "endpoint must use https.")

  host = (parsed.hostname or "").lower()
  if host not in _ALLOWED_PUSH_HOSTS:
    raise PydanticCustomError("push_endpoint_host", "endpoint host is not allowed.")

  return normalized


def _validate_key(value: str, *, name: str, min_length: int) -> str:
  normalized = value.strip()
  if len(normalized) < min_length:
    raise PydanticCustomError(f"push_{name}_short", f"{name} key is too short.")

  if not _BASE64_RE.fullmatch(normalized):
    raise PydanticCustomError(f"push_{name}_format", f"{name} must be base64url encoded.")

  return normalized


class PushSubscriptionKeys(BaseModel):
  """Browser-provided key material for Web Push encryption."""

  p256dh: str = Field(min_length=40, max_length=512)
  auth: str = Field(min_length=16, max_length=256)
  model_config = ConfigDict(extra="forbid")

  @field_validator("p256dh")
  @classmethod
  def validate_p256dh(cls, value: str) -> str:
    return _validate_key(value, name="p256dh", min_length=40)

  @field_validator("auth")
  @classmethod
  def validate_auth(cls, value: str) -> str:
    return _validate_key(value, name="auth", min_length=16)


class PushSubscribeRequest(BaseModel):
  """Standard browser push subscription object payload."""

  endpoint: str = Field(min_length=1, max_length=2048)
  expiration_time: int | None = Field(default=None, alias="expirationTime")
  keys: PushSubscriptionKeys
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    return _validate_endpoint(value)


class PushUnsubscribeRequest(BaseModel):
  """Payload for deleting an existing push subscription."""

  endpoint: str = Field(min_length=1, max_length=2048)
  model_config = ConfigDict(extra="forbid")

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    return _validate_endpoint(value)


@router.get("/vapid-public-key")
async def get_vapid_public_key(context: FanoutContext = Depends(get_fanout_context)) -> dict[str, str]:  # noqa: B008
  """Expose the application server key browsers need to subscribe."""
  if not context.vapid_public_key:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Push notifications are not configured")
  return {"publicKey": context.vapid_public_key}


@router.post("/subscribe", status_code=status.HTTP_204_NO_CONTENT)
async def subscribe_to_push(
  payload: PushSubscribeRequest,
  response: Response,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
  user_agent: str | None = Header(default=None),  # noqa: B008
) -> Response:
  """Register this browser for the caller, taking it over from any previous owner."""
  normalized_user_agent = None
  if user_agent:
    # Clamp user agent size to reduce storage abuse while keeping device context.
    normalized_user_agent = user_agent.strip()[:_USER_AGENT_MAX_LENGTH] or None

  try:
    await context.subscription_repo.upsert(user_id=current_user.id, endpoint=payload.endpoint, p256dh=payload.keys.p256dh, auth=payload.keys.auth, user_agent=normalized_user_agent)
  except Exception as exc:  # noqa: BLE001
    logger.error("Push subscription upsert failed user_id=%s error=%s", current_user.id, exc, exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save push subscription") from exc

  response.status_code = status.HTTP_204_NO_CONTENT
  return response


@router.delete("/unsubscribe", status_code=status.HTTP_204_NO_CONTENT)
async def unsubscribe_from_push(
  payload: PushUnsubscribeRequest,
  response: Response,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
) -> Response:
  """Delete a push subscription owned by the authenticated user."""
  # Idempotent: removing an unknown endpoint still succeeds.
  try:
    await context.subscription_repo.remove_for_user_endpoint(user_id=current_user.id, endpoint=payload.endpoint)
  except Exception as exc:  # noqa: BLE001
    logger.error("Push subscription delete failed user_id=%s error=%s", current_user.id, exc, exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete push subscription") from exc

  response.status_code = status.HTTP_204_NO_CONTENT
  return response
