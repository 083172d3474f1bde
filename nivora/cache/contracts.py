"""Contracts for the read-view cache backends."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


class CacheError(Exception):
  """Base class for cache failures; the cache layer never lets these reach callers."""


class CacheUnavailable(CacheError):
  """Raised when the backend is unreachable, misconfigured, or timed out."""


class CacheOperationFailed(CacheError):
  """Raised when a reachable backend rejects an operation or a value cannot be (de)serialized."""


class CacheBackend(Protocol):
  """Storage contract for serialized read-view snapshots keyed by `<namespace>:<params>`."""

  supports_prefix_scan: bool

  async def get(self, key: str) -> str | None:
    """Return the stored text for a key, or None when absent or expired."""

  async def set(self, key: str, value: str, ttl_seconds: int) -> None:
    """Store text for a key with an expiry."""

  async def delete(self, keys: Sequence[str]) -> int:
    """Delete keys; deleting a missing key is a no-op."""

  async def scan_prefix(self, prefix: str) -> list[str]:
    """Enumerate live keys that start with a prefix."""

  async def close(self) -> None:
    """Release backend connections."""


class KeyIndex(Protocol):
  """Side index of issued keys per namespace for backends without prefix enumeration."""

  async def record(self, namespace: str, key: str, ttl_seconds: int) -> None:
    """Remember that a key was issued under a namespace."""

  async def members(self, namespace: str) -> set[str]:
    """Return every key issued under a namespace since its last invalidation."""

  async def forget(self, namespace: str, keys: Sequence[str]) -> None:
    """Drop keys from a namespace after they were deleted."""
