"""Factory helpers for the cache layer."""

from __future__ import annotations

import logging

from nivora.cache.backends import InMemoryCacheBackend, NullCacheBackend, RedisCacheBackend
from nivora.cache.contracts import CacheBackend, KeyIndex
from nivora.cache.key_index import RedisSetKeyIndex
from nivora.cache.layer import CacheLayer
from nivora.config import Settings

logger = logging.getLogger(__name__)


def build_cache_layer(settings: Settings) -> CacheLayer:
  """Construct a cache layer based on environment configuration."""
  key_index: KeyIndex | None = None

  if settings.cache_backend == "redis" and settings.redis_url:
    redis_backend = RedisCacheBackend.from_url(settings.redis_url, timeout_seconds=settings.cache_timeout_seconds, prefix_scan=settings.cache_prefix_scan)
    # Without SCAN the side index must live in Redis too, so every worker process sees the same keys.
    if not settings.cache_prefix_scan:
      key_index = RedisSetKeyIndex(redis_backend.client)
    backend: CacheBackend = redis_backend
  elif settings.cache_backend == "memory":
    backend = InMemoryCacheBackend()
  else:
    logger.warning("Redis is not configured; read-view caching is disabled.")
    backend = NullCacheBackend()

  return CacheLayer(backend=backend, timeout_seconds=settings.cache_timeout_seconds, key_index=key_index)
