"""Translate committed mutations into cache invalidations."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from nivora.cache.keys import EXPLORE_NAMESPACE, FEED_NAMESPACE, post_key, user_feed_namespace
from nivora.cache.layer import CacheLayer
from nivora.fanout.events import MutationEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvalidationTargets:
  """Exact keys and whole namespaces affected by one mutation."""

  keys: frozenset[str]
  namespaces: frozenset[str]


def targets_for(event: MutationEvent) -> InvalidationTargets:
  """Every mutation kind changes a post's rendered state or its position in ordered feeds."""
  return InvalidationTargets(keys=frozenset({post_key(event.post_id)}), namespaces=frozenset({FEED_NAMESPACE, EXPLORE_NAMESPACE, user_feed_namespace(event.author_id)}))


class CacheInvalidator:
  """Erase read-views made stale by a mutation that has already committed."""

  def __init__(self, cache: CacheLayer) -> None:
    self._cache = cache

  async def invalidate_for_mutation(self, event: MutationEvent) -> None:
    """Best-effort erase; a failure leaves entries to expire at their namespace TTL."""
    targets = targets_for(event)
    await self._cache.invalidate(targets.keys)
    await self._cache.invalidate_namespaces(targets.namespaces)
    logger.debug("Cache invalidated for kind=%s post_id=%s author_id=%s", event.kind, event.post_id, event.author_id)
