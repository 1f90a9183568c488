"""SQLAlchemy model for in-app notifications."""

from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sniket.core.database import Base
from sniket.utils.ids import new_id, utcnow


class Notification(Base):
  """Persist a notification for in-app display; only `read` changes after insert."""

  __tablename__ = "notifications"
  __table_args__ = (Index("ix_notifications_recipient", "user_id", "user_type", "created_at"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  type: Mapped[str] = mapped_column(String(16), nullable=False)
  category: Mapped[str] = mapped_column(String(16), nullable=False)
  priority: Mapped[str] = mapped_column(String(16), nullable=False)
  title: Mapped[str] = mapped_column(String(255), nullable=False)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  user_id: Mapped[str] = mapped_column(String(64), nullable=False)
  user_type: Mapped[str] = mapped_column(String(16), nullable=False)
  related_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
  related_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
  sender_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
  sender_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
  message_preview: Mapped[str | None] = mapped_column(Text, nullable=True)
  metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
  read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
