from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from nivora.core.security import get_current_active_user
from nivora.main import app
from nivora.schema.sql import User

_VALID_SUBSCRIPTION = {"endpoint": "https://fcm.googleapis.com/fcm/send/abc", "expirationTime": None, "keys": {"p256dh": "BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I", "auth": "gq8Yh5xA9l2mQ6pR"}}


def _user() -> User:
  return User(id=uuid.uuid4(), firebase_uid="uid", username="alice", email="ok@example.com", is_active=True)


@pytest.fixture
def push_context():
  context = SimpleNamespace(subscription_repo=AsyncMock(), vapid_public_key="BPublicVapidKey")
  app.state.fanout = context
  yield context
  app.state.fanout = None
  app.dependency_overrides.clear()


def test_subscribe_requires_auth(push_context):
  client = TestClient(app)
  response = client.post("/v1/push/subscribe", json=_VALID_SUBSCRIPTION)
  assert response.status_code in {401, 403}


def test_subscribe_forbidden_for_inactive_user_override(push_context):
  def _inactive_user():
    raise HTTPException(status_code=403, detail="Inactive user")

  app.dependency_overrides[get_current_active_user] = _inactive_user
  client = TestClient(app)

  response = client.post("/v1/push/subscribe", json=_VALID_SUBSCRIPTION)
  assert response.status_code == 403
  push_context.subscription_repo.upsert.assert_not_awaited()


def test_subscribe_and_unsubscribe_happy_path(push_context):
  user = _user()
  app.dependency_overrides[get_current_active_user] = lambda: user
  client = TestClient(app)

  subscribe_response = client.post("/v1/push/subscribe", json=_VALID_SUBSCRIPTION, headers={"user-agent": "nivora-test-agent"})
  assert subscribe_response.status_code == 204
  push_context.subscription_repo.upsert.assert_awaited_once_with(user_id=user.id, endpoint=_VALID_SUBSCRIPTION["endpoint"], p256dh=_VALID_SUBSCRIPTION["keys"]["p256dh"], auth=_VALID_SUBSCRIPTION["keys"]["auth"], user_agent="nivora-test-agent")

  unsubscribe_response = client.request("DELETE", "/v1/push/unsubscribe", json={"endpoint": _VALID_SUBSCRIPTION["endpoint"]})
  assert unsubscribe_response.status_code == 204
  push_context.subscription_repo.remove_for_user_endpoint.assert_awaited_once_with(user_id=user.id, endpoint=_VALID_SUBSCRIPTION["endpoint"])


def test_subscribe_truncates_user_agent(push_context):
  app.dependency_overrides[get_current_active_user] = _user
  client = TestClient(app)

  response = client.post("/v1/push/subscribe", json=_VALID_SUBSCRIPTION, headers={"user-agent": "x" * 2000})

  assert response.status_code == 204
  assert len(push_context.subscription_repo.upsert.await_args.kwargs["user_agent"]) == 512


@pytest.mark.parametrize(
  "payload",
  [
    {**_VALID_SUBSCRIPTION, "endpoint": "http://fcm.googleapis.com/fcm/send/abc"},
    {**_VALID_SUBSCRIPTION, "endpoint": "https://example.com/push/abc"},
    {**_VALID_SUBSCRIPTION, "keys": {"p256dh": "not-valid-***", "auth": "gq8Yh5xA9l2mQ6pR"}},
    {**_VALID_SUBSCRIPTION, "keys": {"p256dh": _VALID_SUBSCRIPTION["keys"]["p256dh"], "auth": "short"}},
  ],
)
def test_subscribe_rejects_invalid_payloads(push_context, payload):
  app.dependency_overrides[get_current_active_user] = _user
  client = TestClient(app)

  response = client.post("/v1/push/subscribe", json=payload)

  assert response.status_code == 422
  assert "requestId" in response.json()
  push_context.subscription_repo.upsert.assert_not_awaited()


def test_subscribe_store_failure_is_reported(push_context):
  push_context.subscription_repo.upsert.side_effect = RuntimeError("db down")
  app.dependency_overrides[get_current_active_user] = _user
  client = TestClient(app)

  response = client.post("/v1/push/subscribe", json=_VALID_SUBSCRIPTION)

  assert response.status_code == 500
  assert response.json()["detail"] == "Internal Server Error"


def test_vapid_public_key_is_exposed(push_context):
  client = TestClient(app)

  response = client.get("/v1/push/vapid-public-key")

  assert response.status_code == 200
  assert response.json() == {"publicKey": "BPublicVapidKey"}


def test_vapid_public_key_missing_when_push_unconfigured(push_context):
  push_context.vapid_public_key = None
  client = TestClient(app)

  assert client.get("/v1/push/vapid-public-key").status_code == 404
