from __future__ import annotations

import asyncio
from collections.abc import Sequence
from unittest.mock import AsyncMock

import pytest

from nivora.cache.backends import InMemoryCacheBackend, NullCacheBackend
from nivora.cache.contracts import CacheUnavailable
from nivora.cache.key_index import InMemoryKeyIndex
from nivora.cache.layer import CacheLayer


class _Clock:
  def __init__(self) -> None:
    self.now = 1000.0

  def __call__(self) -> float:
    return self.now


class _UnreachableBackend:
  supports_prefix_scan = True

  async def get(self, key: str) -> str | None:
    raise CacheUnavailable("connection refused")

  async def set(self, key: str, value: str, ttl_seconds: int) -> None:
    raise CacheUnavailable("connection refused")

  async def delete(self, keys: Sequence[str]) -> int:
    raise CacheUnavailable("connection refused")

  async def scan_prefix(self, prefix: str) -> list[str]:
    raise CacheUnavailable("connection refused")

  async def close(self) -> None:
    raise CacheUnavailable("connection refused")


class _StalledBackend(InMemoryCacheBackend):
  async def get(self, key: str) -> str | None:
    await asyncio.sleep(5)
    return None


class _ScanningBackend(InMemoryCacheBackend):
  """In-memory backend that enumerates by prefix the way Redis SCAN does."""

  supports_prefix_scan = True

  async def scan_prefix(self, prefix: str) -> list[str]:
    return [key for key in self._entries if key.startswith(prefix)]


@pytest.mark.anyio
async def test_set_then_get_returns_decoded_value():
  cache = CacheLayer(backend=InMemoryCacheBackend())

  await cache.set("post:1", {"id": "1", "likes_count": 3}, 300)

  assert await cache.get("post:1") == {"id": "1", "likes_count": 3}


@pytest.mark.anyio
async def test_expired_entry_reads_as_miss():
  clock = _Clock()
  cache = CacheLayer(backend=InMemoryCacheBackend(clock=clock))

  await cache.set("feed:1:10", [{"id": "a"}], 60)
  clock.now += 59
  assert await cache.get("feed:1:10") == [{"id": "a"}]

  clock.now += 1
  assert await cache.get("feed:1:10") is None


@pytest.mark.anyio
async def test_unreachable_backend_degrades_every_operation():
  cache = CacheLayer(backend=_UnreachableBackend())

  assert await cache.get("post:1") is None
  await cache.set("post:1", {"id": "1"}, 300)
  await cache.invalidate(["post:1"])
  await cache.invalidate_namespaces(["feed", "explore"])
  await cache.close()


@pytest.mark.anyio
async def test_get_or_load_falls_through_to_loader_when_backend_is_down():
  cache = CacheLayer(backend=_UnreachableBackend())
  loader = AsyncMock(return_value=[{"id": "a"}])

  assert await cache.get_or_load("feed:1:10", 60, loader) == [{"id": "a"}]
  assert await cache.get_or_load("feed:1:10", 60, loader) == [{"id": "a"}]
  assert loader.await_count == 2


@pytest.mark.anyio
async def test_slow_backend_read_is_bounded_by_timeout():
  cache = CacheLayer(backend=_StalledBackend(), timeout_seconds=0.05)

  assert await asyncio.wait_for(cache.get("post:1"), timeout=1) is None


@pytest.mark.anyio
async def test_undecodable_entry_is_a_miss():
  backend = InMemoryCacheBackend()
  await backend.set("post:1", "{not json", 300)
  cache = CacheLayer(backend=backend)

  assert await cache.get("post:1") is None


@pytest.mark.anyio
async def test_unserializable_value_is_not_stored():
  backend = InMemoryCacheBackend()
  cache = CacheLayer(backend=backend)

  await cache.set("post:1", {"value": object()}, 300)

  assert await backend.get("post:1") is None


@pytest.mark.anyio
async def test_get_or_load_serves_cached_value_without_calling_loader():
  cache = CacheLayer(backend=InMemoryCacheBackend())
  loader = AsyncMock(return_value={"id": "1"})

  await cache.get_or_load("post:1", 300, loader)
  await cache.get_or_load("post:1", 300, loader)

  loader.assert_awaited_once()


@pytest.mark.anyio
async def test_get_or_load_does_not_cache_missing_values():
  cache = CacheLayer(backend=InMemoryCacheBackend())
  loader = AsyncMock(side_effect=[None, {"id": "1"}])

  assert await cache.get_or_load("post:1", 300, loader) is None
  assert await cache.get_or_load("post:1", 300, loader) == {"id": "1"}


@pytest.mark.anyio
async def test_get_or_load_caches_empty_pages():
  cache = CacheLayer(backend=InMemoryCacheBackend())
  loader = AsyncMock(return_value=[])

  await cache.get_or_load("feed:9:10", 60, loader)
  await cache.get_or_load("feed:9:10", 60, loader)

  loader.assert_awaited_once()


@pytest.mark.anyio
async def test_namespace_invalidation_through_side_index_leaves_other_namespaces():
  index = InMemoryKeyIndex()
  cache = CacheLayer(backend=InMemoryCacheBackend(), key_index=index)
  for key in ("feed:1:10", "feed:2:10", "feed:user:42:1:10", "explore:1:10", "post:7"):
    await cache.set(key, {"key": key}, 60)

  await cache.invalidate_namespaces(["feed"])

  assert await cache.get("feed:1:10") is None
  assert await cache.get("feed:2:10") is None
  assert await cache.get("feed:user:42:1:10") == {"key": "feed:user:42:1:10"}
  assert await cache.get("explore:1:10") == {"key": "explore:1:10"}
  assert await cache.get("post:7") == {"key": "post:7"}
  assert await index.members("feed") == set()


@pytest.mark.anyio
async def test_namespace_invalidation_through_prefix_scan_filters_nested_namespaces():
  cache = CacheLayer(backend=_ScanningBackend())
  for key in ("feed:1:10", "feed:user:42:1:10", "feed:user:43:1:10"):
    await cache.set(key, {"key": key}, 60)

  await cache.invalidate_namespaces(["feed", "feed:user:42"])

  assert await cache.get("feed:1:10") is None
  assert await cache.get("feed:user:42:1:10") is None
  assert await cache.get("feed:user:43:1:10") == {"key": "feed:user:43:1:10"}


@pytest.mark.anyio
async def test_in_memory_backend_uses_side_index_by_default():
  cache = CacheLayer(backend=InMemoryCacheBackend())
  await cache.set("explore:1:10", [], 60)

  await cache.invalidate_namespaces(["explore"])

  assert await cache.get("explore:1:10") is None


@pytest.mark.anyio
async def test_null_backend_always_misses():
  cache = CacheLayer(backend=NullCacheBackend())

  await cache.set("post:1", {"id": "1"}, 300)

  assert await cache.get("post:1") is None


@pytest.mark.anyio
async def test_side_index_drops_keys_that_expire_on_their_own():
  clock = _Clock()
  cache = CacheLayer(backend=InMemoryCacheBackend(clock=clock))
  post_keys = [f"post:{index}" for index in range(1000)]
  for key in post_keys:
    await cache.set(key, {"key": key}, 300)
  await cache.set("feed:1:10", [], 60)

  clock.now += 10_000
  await cache.set("explore:1:10", [], 60)

  assert all([await cache.get(key) is None for key in post_keys])
  assert set(cache._key_index._members) == {"explore"}


@pytest.mark.anyio
async def test_side_index_members_exclude_lapsed_keys_between_sweeps():
  clock = _Clock()
  index = InMemoryKeyIndex(clock=clock, sweep_interval_seconds=3600)
  await index.record("feed", "feed:1:10", 60)
  await index.record("feed", "feed:2:10", 600)

  clock.now += 61

  assert await index.members("feed") == {"feed:2:10"}
