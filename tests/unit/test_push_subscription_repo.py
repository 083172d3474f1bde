from __future__ import annotations

import pytest

from nivora.notifications.push_subscription_repo import PushSubscriptionRepository

ENDPOINT = "https://fcm.googleapis.com/fcm/send/device-1"
P256DH = "BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I"
AUTH = "gq8Yh5xA9l2mQ6pR"


@pytest.mark.anyio
async def test_upsert_is_idempotent_for_same_owner(session_factory, make_user):
  alice = await make_user("alice")
  repo = PushSubscriptionRepository(session_factory=session_factory)

  first_id = await repo.upsert(user_id=alice.id, endpoint=ENDPOINT, p256dh=P256DH, auth=AUTH, user_agent="ua")
  second_id = await repo.upsert(user_id=alice.id, endpoint=ENDPOINT, p256dh=P256DH, auth=AUTH, user_agent="ua")

  assert first_id == second_id
  subscriptions = await repo.list_for(user_id=alice.id)
  assert [entry.endpoint for entry in subscriptions] == [ENDPOINT]


@pytest.mark.anyio
async def test_registering_an_endpoint_moves_it_to_the_new_owner(session_factory, make_user):
  alice = await make_user("alice")
  bob = await make_user("bob")
  repo = PushSubscriptionRepository(session_factory=session_factory)

  await repo.upsert(user_id=alice.id, endpoint=ENDPOINT, p256dh=P256DH, auth=AUTH)
  await repo.upsert(user_id=bob.id, endpoint=ENDPOINT, p256dh=P256DH, auth="rotatedAuthSecret0")

  assert await repo.list_for(user_id=alice.id) == []
  owned = await repo.list_for(user_id=bob.id)
  assert len(owned) == 1
  assert owned[0].auth == "rotatedAuthSecret0"


@pytest.mark.anyio
async def test_user_can_have_several_devices(session_factory, make_user):
  alice = await make_user("alice")
  repo = PushSubscriptionRepository(session_factory=session_factory)

  await repo.upsert(user_id=alice.id, endpoint=ENDPOINT, p256dh=P256DH, auth=AUTH)
  await repo.upsert(user_id=alice.id, endpoint="https://updates.push.services.mozilla.com/wpush/v2/x", p256dh=P256DH, auth=AUTH)

  assert len(await repo.list_for(user_id=alice.id)) == 2


@pytest.mark.anyio
async def test_remove_is_idempotent(session_factory, make_user):
  alice = await make_user("alice")
  repo = PushSubscriptionRepository(session_factory=session_factory)
  subscription_id = await repo.upsert(user_id=alice.id, endpoint=ENDPOINT, p256dh=P256DH, auth=AUTH)

  await repo.remove(subscription_id=subscription_id)
  await repo.remove(subscription_id=subscription_id)

  assert await repo.list_for(user_id=alice.id) == []


@pytest.mark.anyio
async def test_remove_for_user_endpoint_only_touches_own_devices(session_factory, make_user):
  alice = await make_user("alice")
  mallory = await make_user("mallory")
  repo = PushSubscriptionRepository(session_factory=session_factory)
  await repo.upsert(user_id=alice.id, endpoint=ENDPOINT, p256dh=P256DH, auth=AUTH)

  await repo.remove_for_user_endpoint(user_id=mallory.id, endpoint=ENDPOINT)
  assert len(await repo.list_for(user_id=alice.id)) == 1

  await repo.remove_for_user_endpoint(user_id=alice.id, endpoint=ENDPOINT)
  assert await repo.list_for(user_id=alice.id) == []
