"""Cache key builders and TTLs for read-view namespaces.

Keys take the form `<namespace>:<params>`:

- `feed:<page>:<limit>`
- `explore:<page>:<limit>`
- `post:<postId>`
- `feed:user:<authorId>:<page>:<limit>`
"""

from __future__ import annotations

import uuid

FEED_NAMESPACE = "feed"
EXPLORE_NAMESPACE = "explore"

FEED_TTL_SECONDS = 60
EXPLORE_TTL_SECONDS = 60
POST_TTL_SECONDS = 300
USER_FEED_TTL_SECONDS = 300


def feed_key(page: int, limit: int) -> str:
  return f"{FEED_NAMESPACE}:{page}:{limit}"


def explore_key(page: int, limit: int) -> str:
  return f"{EXPLORE_NAMESPACE}:{page}:{limit}"


def post_key(post_id: uuid.UUID | str) -> str:
  return f"post:{post_id}"


def user_feed_namespace(author_id: uuid.UUID | str) -> str:
  return f"{FEED_NAMESPACE}:user:{author_id}"


def user_feed_key(author_id: uuid.UUID | str, page: int, limit: int) -> str:
  return f"{user_feed_namespace(author_id)}:{page}:{limit}"


def namespace_of(key: str) -> str:
  """Return the namespace a key was issued under.

  `feed:user:<id>` and `post:<id>` carry their identifier in the namespace, so
  `feed:user:42:1:10` belongs to `feed:user:42` rather than to `feed`.
  """
  parts = key.split(":")
  if len(parts) >= 3 and parts[0] == FEED_NAMESPACE and parts[1] == "user":
    return ":".join(parts[:3])

  if parts[0] == "post" and len(parts) >= 2:
    return ":".join(parts[:2])

  return parts[0]
