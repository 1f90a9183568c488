"""SQLAlchemy model for client-reported open chat conversations."""

from __future__ import annotations

import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from sniket.core.database import Base
from sniket.utils.ids import utcnow


class ChatSession(Base):
  """The conversation a user's client last reported as open; one row per user."""

  __tablename__ = "chat_sessions"

  user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
  conversation_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  last_active_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
