"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from nivora.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_CACHE_BACKENDS = {"redis", "memory", "none"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Nivora service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  redis_url: str | None
  cache_backend: str
  cache_timeout_seconds: float
  cache_prefix_scan: bool
  push_notifications_enabled: bool
  push_vapid_public_key: str | None
  push_vapid_private_key: str | None
  push_vapid_sub: str | None
  push_timeout_seconds: float
  push_icon_url: str
  push_badge_url: str
  subscription_store_timeout_seconds: float
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("NIVORA_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("NIVORA_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("NIVORA_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_positive_float(name: str, raw: str) -> float:
  value = float(raw)
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("NIVORA_ENV", "development").lower()

  # Toggle verbose SQL output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("NIVORA_DEBUG"))

  log_max_bytes = int(os.getenv("NIVORA_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("NIVORA_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("NIVORA_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("NIVORA_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Cache falls back to disabled when no Redis URL is configured, matching the fail-open contract.
  redis_url = _optional_str(os.getenv("NIVORA_REDIS_URL"))
  cache_backend = (os.getenv("NIVORA_CACHE_BACKEND") or ("redis" if redis_url else "none")).strip().lower()
  if cache_backend not in _CACHE_BACKENDS:
    raise ValueError(f"NIVORA_CACHE_BACKEND must be one of: {', '.join(sorted(_CACHE_BACKENDS))}.")

  if cache_backend == "redis" and not redis_url:
    raise ValueError("NIVORA_REDIS_URL must be set when NIVORA_CACHE_BACKEND is 'redis'.")

  cache_timeout_seconds = _parse_positive_float("NIVORA_CACHE_TIMEOUT_SECONDS", os.getenv("NIVORA_CACHE_TIMEOUT_SECONDS", "1.0"))
  cache_prefix_scan = _parse_bool(os.getenv("NIVORA_CACHE_PREFIX_SCAN"), default=True)

  push_notifications_enabled = _parse_bool(os.getenv("NIVORA_PUSH_NOTIFICATIONS_ENABLED"))
  push_vapid_public_key = _optional_str(os.getenv("NIVORA_PUSH_VAPID_PUBLIC_KEY"))
  push_vapid_private_key = _optional_str(os.getenv("NIVORA_PUSH_VAPID_PRIVATE_KEY"))
  push_vapid_sub = _optional_str(os.getenv("NIVORA_PUSH_VAPID_SUB"))
  push_timeout_seconds = _parse_positive_float("NIVORA_PUSH_TIMEOUT_SECONDS", os.getenv("NIVORA_PUSH_TIMEOUT_SECONDS", "10"))

  # Validate push configuration only when push notifications are enabled.
  if push_notifications_enabled:
    if not push_vapid_public_key:
      raise ValueError("NIVORA_PUSH_VAPID_PUBLIC_KEY must be set when push notifications are enabled.")

    if not push_vapid_private_key:
      raise ValueError("NIVORA_PUSH_VAPID_PRIVATE_KEY must be set when push notifications are enabled.")

    if not push_vapid_sub:
      raise ValueError("NIVORA_PUSH_VAPID_SUB must be set when push notifications are enabled.")

    if not (push_vapid_sub.startswith("mailto:") or push_vapid_sub.startswith("https://")):
      raise ValueError("NIVORA_PUSH_VAPID_SUB must start with 'mailto:' or 'https://'.")

  subscription_store_timeout_seconds = _parse_positive_float("NIVORA_SUBSCRIPTION_STORE_TIMEOUT_SECONDS", os.getenv("NIVORA_SUBSCRIPTION_STORE_TIMEOUT_SECONDS", "5"))

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("NIVORA_ALLOWED_ORIGINS", "http://localhost:5173")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("NIVORA_LOG_HTTP_4XX")),
    pg_dsn=os.getenv("NIVORA_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=int(os.getenv("NIVORA_PG_CONNECT_TIMEOUT", "5")),
    redis_url=redis_url,
    cache_backend=cache_backend,
    cache_timeout_seconds=cache_timeout_seconds,
    cache_prefix_scan=cache_prefix_scan,
    push_notifications_enabled=push_notifications_enabled,
    push_vapid_public_key=push_vapid_public_key,
    push_vapid_private_key=push_vapid_private_key,
    push_vapid_sub=push_vapid_sub,
    push_timeout_seconds=push_timeout_seconds,
    push_icon_url=(os.getenv("NIVORA_PUSH_ICON_URL") or "/icon-192x192.png").strip(),
    push_badge_url=(os.getenv("NIVORA_PUSH_BADGE_URL") or "/badge-72x72.png").strip(),
    subscription_store_timeout_seconds=subscription_store_timeout_seconds,
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations and offline scripts don't require unrelated env vars.
  debug = _parse_bool(os.getenv("NIVORA_DEBUG"))
  pg_connect_timeout = int(os.getenv("NIVORA_PG_CONNECT_TIMEOUT", "5"))
  if pg_connect_timeout <= 0:
    raise ValueError("NIVORA_PG_CONNECT_TIMEOUT must be a positive integer.")

  pg_dsn = os.getenv("NIVORA_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
