"""Cache backend implementations."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from nivora.cache.contracts import CacheOperationFailed, CacheUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_GLOB_SPECIAL_RE = re.compile(r"([\\*?\[\]])")


async def call_redis(operation: Callable[[], Awaitable[T]]) -> T:
  """Run a Redis call and map client errors onto the cache error taxonomy."""
  try:
    return await operation()
  except (RedisConnectionError, RedisTimeoutError) as exc:
    raise CacheUnavailable(str(exc)) from exc
  except RedisError as exc:
    raise CacheOperationFailed(str(exc)) from exc


def escape_glob(value: str) -> str:
  """Escape Redis glob metacharacters so a prefix matches literally."""
  return _GLOB_SPECIAL_RE.sub(r"\\\1", value)


class RedisCacheBackend:
  """`redis.asyncio` backed cache using SET EX for TTLs and SCAN for prefix enumeration."""

  def __init__(self, *, client: Redis, prefix_scan: bool = True, scan_batch_size: int = 500) -> None:
    self._client = client
    self._scan_batch_size = scan_batch_size
    self.supports_prefix_scan = prefix_scan

  @classmethod
  def from_url(cls, url: str, *, timeout_seconds: float, prefix_scan: bool = True) -> RedisCacheBackend:
    """Build a backend with socket timeouts so a stalled server degrades instead of hanging."""
    client = Redis.from_url(url, decode_responses=True, socket_timeout=timeout_seconds, socket_connect_timeout=timeout_seconds)
    return cls(client=client, prefix_scan=prefix_scan)

  @property
  def client(self) -> Redis:
    return self._client

  async def get(self, key: str) -> str | None:
    return await call_redis(lambda: self._client.get(key))

  async def set(self, key: str, value: str, ttl_seconds: int) -> None:
    await call_redis(lambda: self._client.set(key, value, ex=ttl_seconds))

  async def delete(self, keys: Sequence[str]) -> int:
    if not keys:
      return 0
    deleted = await call_redis(lambda: self._client.delete(*keys))
    return int(deleted or 0)

  async def scan_prefix(self, prefix: str) -> list[str]:
    if not self.supports_prefix_scan:
      raise CacheOperationFailed("Prefix scanning is disabled for this backend.")

    async def _scan() -> list[str]:
      # SCAN is incremental and non-blocking on the server, unlike KEYS.
      return [key async for key in self._client.scan_iter(match=f"{escape_glob(prefix)}*", count=self._scan_batch_size)]

    return await call_redis(_scan)

  async def close(self) -> None:
    await self._client.aclose()


class InMemoryCacheBackend:
  """Process-local cache for development and tests.

  It does not advertise prefix scanning, so namespace invalidation
  goes through the cache layer's side index of issued keys.
  """

  supports_prefix_scan = False

  def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
    self._clock = clock
    self._entries: dict[str, tuple[str, float]] = {}

  @property
  def clock(self) -> Callable[[], float]:
    return self._clock

  async def get(self, key: str) -> str | None:
    entry = self._entries.get(key)
    if entry is None:
      return None
    value, expires_at = entry
    if self._clock() >= expires_at:
      # Expired entries are treated exactly like absent ones.
      self._entries.pop(key, None)
      return None
    return value

  async def set(self, key: str, value: str, ttl_seconds: int) -> None:
    self._entries[key] = (value, self._clock() + ttl_seconds)

  async def delete(self, keys: Sequence[str]) -> int:
    deleted = 0
    for key in keys:
      if self._entries.pop(key, None) is not None:
        deleted += 1
    return deleted

  async def scan_prefix(self, prefix: str) -> list[str]:
    raise CacheOperationFailed("In-memory backend does not support prefix scanning.")

  async def close(self) -> None:
    self._entries.clear()


class NullCacheBackend:
  """No-op backend used when caching is disabled; every read is a miss."""

  supports_prefix_scan = True

  async def get(self, key: str) -> str | None:
    return None

  async def set(self, key: str, value: str, ttl_seconds: int) -> None:
    logger.debug("Caching disabled; dropping key=%s", key)

  async def delete(self, keys: Sequence[str]) -> int:
    return 0

  async def scan_prefix(self, prefix: str) -> list[str]:
    return []

  async def close(self) -> None:
    return None
