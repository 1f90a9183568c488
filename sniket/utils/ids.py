"""Identifier and timestamp helpers shared by ORM models and repositories."""

from __future__ import annotations

import datetime
import uuid


def new_id() -> str:
  """Return a new opaque record identifier."""
  return str(uuid.uuid4())


def utcnow() -> datetime.datetime:
  """Return the current time as an aware UTC datetime."""
  return datetime.datetime.now(datetime.UTC)


def as_utc(value: datetime.datetime) -> datetime.datetime:
  """Treat naive datetimes (as returned by SQLite) as UTC."""
  if value.tzinfo is None:
    return value.replace(tzinfo=datetime.UTC)
  return value.astimezone(datetime.UTC)


def token_prefix(token: str, length: int = 12) -> str:
  """Shorten a push token for log lines."""
  if len(token) <= length:
    return token
  return f"{token[:length]}..."
