"""Fail-open cache layer for serialized read-views."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from nivora.cache.contracts import CacheBackend, CacheError, CacheOperationFailed, CacheUnavailable, KeyIndex
from nivora.cache.key_index import InMemoryKeyIndex
from nivora.cache.keys import namespace_of

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheLayer:
  """Namespaced TTL cache whose operations never raise.

  `get` degrades to a miss and `set`/`invalidate` degrade to no-ops when the
  backend is unreachable, slow, or returns garbage. Every backend call is
  bounded by `timeout_seconds`. Namespace invalidation uses the backend's
  native prefix scan when it has one, otherwise a side index of issued keys.
  """

  def __init__(self, *, backend: CacheBackend, timeout_seconds: float = 1.0, key_index: KeyIndex | None = None) -> None:
    self._backend = backend
    self._timeout_seconds = timeout_seconds
    if key_index is None and not backend.supports_prefix_scan:
      # Share the backend clock so index members lapse together with their entries.
      clock = getattr(backend, "clock", None)
      key_index = InMemoryKeyIndex(clock=clock) if clock is not None else InMemoryKeyIndex()
    self._key_index = key_index

  @property
  def backend(self) -> CacheBackend:
    return self._backend

  async def get(self, key: str) -> Any | None:
    """Return the decoded value for a key, or None on miss or any failure."""
    try:
      raw = await self._bounded(self._backend.get(key))
    except Exception as exc:  # noqa: BLE001
      self._log_bypass("get", key, exc)
      return None

    if raw is None:
      return None

    try:
      return json.loads(raw)
    except ValueError as exc:
      self._log_bypass("get", key, CacheOperationFailed(f"Undecodable cache entry: {exc}"))
      return None

  async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
    """Store a JSON-serializable value; failures are logged and dropped."""
    try:
      raw = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
      self._log_bypass("set", key, CacheOperationFailed(f"Unserializable value: {exc}"))
      return

    try:
      await self._bounded(self._backend.set(key, raw, ttl_seconds))
      if self._key_index is not None:
        await self._bounded(self._key_index.record(namespace_of(key), key, ttl_seconds))
    except Exception as exc:  # noqa: BLE001
      self._log_bypass("set", key, exc)

  async def invalidate(self, keys: Iterable[str]) -> None:
    """Delete exact keys in one best-effort pass."""
    unique_keys = sorted(set(keys))
    if not unique_keys:
      return

    try:
      await self._bounded(self._backend.delete(unique_keys))
    except Exception as exc:  # noqa: BLE001
      self._log_bypass("invalidate", ",".join(unique_keys), exc)
      return

    if self._key_index is None:
      return

    by_namespace: dict[str, list[str]] = {}
    for key in unique_keys:
      by_namespace.setdefault(namespace_of(key), []).append(key)
    for namespace, namespace_keys in by_namespace.items():
      try:
        await self._bounded(self._key_index.forget(namespace, namespace_keys))
      except Exception as exc:  # noqa: BLE001
        # A stale index entry only causes a redundant delete later.
        self._log_bypass("invalidate", namespace, exc)

  async def invalidate_namespaces(self, namespaces: Iterable[str]) -> None:
    """Delete every key issued under each namespace; namespaces fail independently."""
    for namespace in sorted(set(namespaces)):
      try:
        keys = await self._matching_keys(namespace)
      except Exception as exc:  # noqa: BLE001
        self._log_bypass("invalidate", f"{namespace}:*", exc)
        continue

      if keys:
        await self.invalidate(keys)
      logger.debug("Cache namespace invalidated namespace=%s keys=%d", namespace, len(keys))

  async def get_or_load(self, key: str, ttl_seconds: int, loader: Callable[[], Awaitable[T]]) -> T:
    """Read through the cache; loader errors propagate because they come from the source of truth."""
    cached = await self.get(key)
    if cached is not None:
      return cached

    value = await loader()
    if value is not None:
      await self.set(key, value, ttl_seconds)
    return value

  async def close(self) -> None:
    try:
      await self._bounded(self._backend.close())
    except Exception as exc:  # noqa: BLE001
      logger.warning("Cache backend close failed: %s", exc)

  async def _matching_keys(self, namespace: str) -> list[str]:
    if self._key_index is not None:
      members = await self._bounded(self._key_index.members(namespace))
      return sorted(members)

    scanned = await self._bounded(self._backend.scan_prefix(f"{namespace}:"))
    # A `feed:` scan also returns `feed:user:*` keys, which belong to other namespaces.
    return sorted(key for key in scanned if namespace_of(key) == namespace)

  async def _bounded(self, awaitable: Awaitable[T]) -> T:
    return await asyncio.wait_for(awaitable, timeout=self._timeout_seconds)

  @staticmethod
  def _log_bypass(operation: str, key: str, exc: BaseException) -> None:
    reason = _classify(exc)
    logger.warning("Cache %s bypassed key=%s reason=%s error=%s", operation, key, reason.__name__, exc)


def _classify(exc: BaseException) -> type[CacheError]:
  """Map an arbitrary failure onto the cache error taxonomy for logging."""
  if isinstance(exc, CacheError):
    return type(exc)

  if isinstance(exc, TimeoutError | OSError):
    return CacheUnavailable

  return CacheOperationFailed
