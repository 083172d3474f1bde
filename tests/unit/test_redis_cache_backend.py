from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from nivora.cache.backends import RedisCacheBackend, escape_glob
from nivora.cache.contracts import CacheOperationFailed, CacheUnavailable
from nivora.cache.key_index import RedisSetKeyIndex
from nivora.cache.layer import CacheLayer


def _client() -> MagicMock:
  client = MagicMock()
  client.get = AsyncMock(return_value=None)
  client.set = AsyncMock(return_value=True)
  client.delete = AsyncMock(return_value=1)
  client.smembers = AsyncMock(return_value=set())
  client.srem = AsyncMock(return_value=1)
  client.aclose = AsyncMock()
  return client


def test_escape_glob_quotes_metacharacters():
  assert escape_glob("feed:user:a*b?[c]") == "feed:user:a\\*b\\?\\[c\\]"


@pytest.mark.anyio
async def test_set_uses_expiry():
  client = _client()
  backend = RedisCacheBackend(client=client)

  await backend.set("post:1", "{}", 300)

  client.set.assert_awaited_once_with("post:1", "{}", ex=300)


@pytest.mark.anyio
async def test_connection_errors_map_to_unavailable():
  client = _client()
  client.get.side_effect = RedisConnectionError("refused")
  backend = RedisCacheBackend(client=client)

  with pytest.raises(CacheUnavailable):
    await backend.get("post:1")


@pytest.mark.anyio
async def test_server_errors_map_to_operation_failed():
  client = _client()
  client.delete.side_effect = ResponseError("WRONGTYPE")
  backend = RedisCacheBackend(client=client)

  with pytest.raises(CacheOperationFailed):
    await backend.delete(["post:1"])


@pytest.mark.anyio
async def test_scan_prefix_matches_escaped_prefix():
  client = _client()

  async def _scan_iter(*, match, count):
    assert match == "feed:*"
    for key in ("feed:1:10", "feed:user:9:1:10"):
      yield key

  client.scan_iter = _scan_iter
  backend = RedisCacheBackend(client=client)

  assert await backend.scan_prefix("feed:") == ["feed:1:10", "feed:user:9:1:10"]


@pytest.mark.anyio
async def test_scan_prefix_disabled_raises():
  backend = RedisCacheBackend(client=_client(), prefix_scan=False)

  with pytest.raises(CacheOperationFailed):
    await backend.scan_prefix("feed:")


@pytest.mark.anyio
async def test_cache_layer_stays_silent_when_redis_is_down():
  client = _client()
  client.get.side_effect = RedisConnectionError("refused")
  client.set.side_effect = RedisConnectionError("refused")
  cache = CacheLayer(backend=RedisCacheBackend(client=client))

  assert await cache.get("post:1") is None
  await cache.set("post:1", {"id": "1"}, 300)


@pytest.mark.anyio
async def test_redis_set_index_reads_and_forgets_members():
  client = _client()
  client.smembers.return_value = {"feed:1:10", "feed:2:10"}
  index = RedisSetKeyIndex(client)

  assert await index.members("feed") == {"feed:1:10", "feed:2:10"}
  await index.forget("feed", ["feed:1:10"])

  client.smembers.assert_awaited_once_with("__keys__:feed")
  client.srem.assert_awaited_once_with("__keys__:feed", "feed:1:10")


@pytest.mark.anyio
async def test_redis_set_index_records_with_expiry():
  client = _client()
  pipe = MagicMock()
  pipe.execute = AsyncMock(return_value=[1, True])
  pipeline_cm = MagicMock()
  pipeline_cm.__aenter__ = AsyncMock(return_value=pipe)
  pipeline_cm.__aexit__ = AsyncMock(return_value=False)
  client.pipeline.return_value = pipeline_cm
  index = RedisSetKeyIndex(client)

  await index.record("explore", "explore:1:10", 60)

  pipe.sadd.assert_called_once_with("__keys__:explore", "explore:1:10")
  pipe.expire.assert_called_once_with("__keys__:explore", 120)
  pipe.execute.assert_awaited_once()
