"""Side indexes of issued cache keys, used when a backend cannot enumerate by prefix."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

from redis.asyncio import Redis

from nivora.cache.backends import call_redis

INDEX_KEY_PREFIX = "__keys__"
SWEEP_INTERVAL_SECONDS = 30.0


class InMemoryKeyIndex:
  """Track issued keys per namespace inside this process.

  Members carry the expiry of the entry they point at, so keys that lapse on
  their own drop out of the index instead of accumulating.
  """

  def __init__(self, *, clock: Callable[[], float] = time.monotonic, sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS) -> None:
    self._clock = clock
    self._sweep_interval_seconds = sweep_interval_seconds
    self._next_sweep_at = clock() + sweep_interval_seconds
    self._members: dict[str, dict[str, float]] = {}

  async def record(self, namespace: str, key: str, ttl_seconds: int) -> None:
    now = self._clock()
    self._maybe_sweep(now)
    self._members.setdefault(namespace, {})[key] = now + ttl_seconds

  async def members(self, namespace: str) -> set[str]:
    now = self._clock()
    self._maybe_sweep(now)
    return {key for key, expires_at in self._members.get(namespace, {}).items() if expires_at > now}

  async def forget(self, namespace: str, keys: Sequence[str]) -> None:
    remaining = self._members.get(namespace)
    if remaining is None:
      return
    for key in keys:
      remaining.pop(key, None)
    if not remaining:
      self._members.pop(namespace, None)

  def _maybe_sweep(self, now: float) -> None:
    if now < self._next_sweep_at:
      return
    self._next_sweep_at = now + self._sweep_interval_seconds
    for namespace in list(self._members):
      live = {key: expires_at for key, expires_at in self._members[namespace].items() if expires_at > now}
      if live:
        self._members[namespace] = live
      else:
        del self._members[namespace]


class RedisSetKeyIndex:
  """Track issued keys per namespace in Redis sets so every process shares one index.

  Each index set expires a while after its longest-lived member so abandoned
  namespaces do not accumulate forever.
  """

  def __init__(self, client: Redis) -> None:
    self._client = client

  @staticmethod
  def index_key(namespace: str) -> str:
    return f"{INDEX_KEY_PREFIX}:{namespace}"

  async def record(self, namespace: str, key: str, ttl_seconds: int) -> None:
    index_key = self.index_key(namespace)

    async def _record() -> None:
      async with self._client.pipeline(transaction=False) as pipe:
        pipe.sadd(index_key, key)
        pipe.expire(index_key, ttl_seconds * 2)
        await pipe.execute()

    await call_redis(_record)

  async def members(self, namespace: str) -> set[str]:
    members = await call_redis(lambda: self._client.smembers(self.index_key(namespace)))
    return set(members or ())

  async def forget(self, namespace: str, keys: Sequence[str]) -> None:
    if not keys:
      return
    await call_redis(lambda: self._client.srem(self.index_key(namespace), *keys))
