"""SQLAlchemy model for registered push-messaging tokens."""

from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sniket.core.database import Base
from sniket.utils.ids import new_id, utcnow


class PushToken(Base):
  """Persist one push destination (browser or app install) for a user role."""

  __tablename__ = "push_tokens"
  __table_args__ = (
    Index("ux_push_tokens_user_token", "user_id", "user_type", "token", unique=True),
    Index("ix_push_tokens_user_active", "user_id", "user_type", "is_active"),
  )

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  token: Mapped[str] = mapped_column(Text, nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String(64), nullable=False)
  user_type: Mapped[str] = mapped_column(String(16), nullable=False)
  device_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
  device_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  deactivation_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)
  deactivated_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
