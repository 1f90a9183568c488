"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache

from sniket.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_DEFAULT_ORIGINS = ("http://localhost:3000",)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Sniket notification service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  app_base_url: str
  push_notifications_enabled: bool
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  chat_session_freshness_seconds: int
  service_api_key: str | None
  razorpay_key_secret: str | None
  commission_rate: Decimal


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return _DEFAULT_ORIGINS

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("SNIKET_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("SNIKET_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_commission_rate(raw: str | None) -> Decimal:
  try:
    rate = Decimal((raw or "0.10").strip())
  except InvalidOperation as exc:
    raise ValueError("SNIKET_COMMISSION_RATE must be a decimal number.") from exc

  if rate < 0 or rate >= 1:
    raise ValueError("SNIKET_COMMISSION_RATE must be between 0 and 1.")

  return rate


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("SNIKET_ENV", "development").lower()
  debug = _parse_bool(os.getenv("SNIKET_DEBUG"))

  log_max_bytes = int(os.getenv("SNIKET_LOG_MAX_BYTES", "5242880"))
  if log_max_bytes <= 0:
    raise ValueError("SNIKET_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("SNIKET_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SNIKET_LOG_BACKUP_COUNT must be zero or a positive integer.")

  push_notifications_enabled = _parse_bool(os.getenv("SNIKET_PUSH_NOTIFICATIONS_ENABLED"))
  firebase_project_id = _optional_str(os.getenv("SNIKET_FIREBASE_PROJECT_ID") or os.getenv("FIREBASE_PROJECT_ID"))
  firebase_service_account_json_path = _optional_str(os.getenv("SNIKET_FIREBASE_SERVICE_ACCOUNT_JSON_PATH") or os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH"))

  # Push delivery goes through Firebase Admin, which needs a project to sign requests for.
  if push_notifications_enabled and not firebase_project_id:
    raise ValueError("SNIKET_FIREBASE_PROJECT_ID must be set when push notifications are enabled.")

  chat_session_freshness_seconds = int(os.getenv("SNIKET_CHAT_SESSION_FRESHNESS_SECONDS", "300"))
  if chat_session_freshness_seconds <= 0:
    raise ValueError("SNIKET_CHAT_SESSION_FRESHNESS_SECONDS must be a positive integer.")

  app_base_url = (os.getenv("SNIKET_APP_BASE_URL") or "http://localhost:3000").strip().rstrip("/")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("SNIKET_ALLOWED_ORIGINS")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("SNIKET_LOG_HTTP_4XX")),
    pg_dsn=_optional_str(os.getenv("SNIKET_PG_DSN") or os.getenv("DATABASE_URL")),
    app_base_url=app_base_url,
    push_notifications_enabled=push_notifications_enabled,
    firebase_project_id=firebase_project_id,
    firebase_service_account_json_path=firebase_service_account_json_path,
    chat_session_freshness_seconds=chat_session_freshness_seconds,
    service_api_key=_optional_str(os.getenv("SNIKET_SERVICE_API_KEY")),
    razorpay_key_secret=_optional_str(os.getenv("SNIKET_RAZORPAY_KEY_SECRET") or os.getenv("RAZORPAY_KEY_SECRET")),
    commission_rate=_parse_commission_rate(os.getenv("SNIKET_COMMISSION_RATE")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  # Migrations and offline scripts only need the DSN.
  debug = _parse_bool(os.getenv("SNIKET_DEBUG"))
  pg_dsn = _optional_str(os.getenv("SNIKET_PG_DSN") or os.getenv("DATABASE_URL"))
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn)
