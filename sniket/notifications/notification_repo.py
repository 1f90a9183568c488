"""Repository helpers for in-app notifications."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sniket.core.database import SessionFactory
from sniket.notifications.contracts import NotificationCategory, NotificationPriority, NotificationType, UserType
from sniket.schema.notifications import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEntry:
  """Fields of a notification before it is stored."""

  type: NotificationType
  category: NotificationCategory
  priority: NotificationPriority
  title: str
  message: str
  user_id: str
  user_type: UserType
  related_id: str | None = None
  related_type: str | None = None
  sender_id: str | None = None
  sender_name: str | None = None
  message_preview: str | None = None
  metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotificationRecord:
  """A stored notification as returned to callers."""

  id: str
  type: str
  category: str
  priority: str
  title: str
  message: str
  user_id: str
  user_type: str
  related_id: str | None
  related_type: str | None
  sender_id: str | None
  sender_name: str | None
  message_preview: str | None
  metadata: dict[str, Any]
  read: bool
  created_at: datetime.datetime

  def as_payload(self) -> dict[str, Any]:
    """Render the camelCase JSON shape used by the web client."""
    return {
      "id": self.id,
      "type": self.type,
      "category": self.category,
      "priority": self.priority,
      "title": self.title,
      "message": self.message,
      "userId": self.user_id,
      "userType": self.user_type,
      "relatedId": self.related_id,
      "relatedType": self.related_type,
      "senderId": self.sender_id,
      "senderName": self.sender_name,
      "messagePreview": self.message_preview,
      "metadata": self.metadata,
      "read": self.read,
      "createdAt": self.created_at.isoformat(),
    }


class NotificationRepository:
  """Persist and read in-app notifications."""

  def __init__(self, session_factory: SessionFactory) -> None:
    self._session_factory = session_factory

  async def insert(self, entry: NotificationEntry) -> NotificationRecord:
    """Insert a new unread notification row."""
    async with self._session_factory() as session:
      return await self._insert_with_session(session=session, entry=entry)

  async def _insert_with_session(self, *, session: AsyncSession, entry: NotificationEntry) -> NotificationRecord:
    row = Notification(
      type=str(entry.type),
      category=str(entry.category),
      priority=str(entry.priority),
      title=entry.title,
      message=entry.message,
      user_id=entry.user_id,
      user_type=str(entry.user_type),
      related_id=entry.related_id,
      related_type=entry.related_type,
      sender_id=entry.sender_id,
      sender_name=entry.sender_name,
      message_preview=entry.message_preview if entry.message_preview is not None else entry.message,
      metadata_json=dict(entry.metadata),
      read=False,
    )
    session.add(row)
    await session.commit()
    return _to_record(row)

  async def list_for_user(self, user_id: str, user_type: UserType | str, *, limit: int = 50) -> list[NotificationRecord]:
    """Return a user's notifications, newest first."""
    async with self._session_factory() as session:
      stmt = select(Notification).where(Notification.user_id == user_id, Notification.user_type == str(user_type)).order_by(Notification.created_at.desc()).limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
    return [_to_record(row) for row in rows]

  async def unread_count(self, user_id: str, user_type: UserType | str) -> int:
    async with self._session_factory() as session:
      stmt = select(func.count()).select_from(Notification).where(Notification.user_id == user_id, Notification.user_type == str(user_type), Notification.read.is_(False))
      return int((await session.execute(stmt)).scalar_one())

  async def mark_as_read(self, notification_id: str) -> bool:
    """Mark one notification read; returns False when it does not exist."""
    async with self._session_factory() as session:
      row = await session.get(Notification, notification_id)
      if row is None:
        return False
      row.read = True
      await session.commit()
    return True

  async def mark_conversation_read(self, user_id: str, user_type: UserType | str, conversation_id: str) -> int:
    """Mark every unread chat notification for one conversation read."""
    async with self._session_factory() as session:
      stmt = (
        update(Notification)
        .where(Notification.user_id == user_id, Notification.user_type == str(user_type), Notification.related_id == conversation_id, Notification.category == str(NotificationCategory.CHAT), Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
      )
      result = await session.execute(stmt)
      await session.commit()

    updated = int(result.rowcount or 0)
    logger.info("Conversation notifications marked read user_id=%s conversation_id=%s rows=%d", user_id, conversation_id, updated)
    return updated

  async def mark_all_read(self, user_id: str, user_type: UserType | str) -> int:
    """Mark every unread notification of one user role read in a single update."""
    async with self._session_factory() as session:
      stmt = update(Notification).where(Notification.user_id == user_id, Notification.user_type == str(user_type), Notification.read.is_(False)).values(read=True).execution_options(synchronize_session=False)
      result = await session.execute(stmt)
      await session.commit()

    updated = int(result.rowcount or 0)
    logger.info("All notifications marked read user_type=%s user_id=%s rows=%d", user_type, user_id, updated)
    return updated


def _to_record(row: Notification) -> NotificationRecord:
  return NotificationRecord(
    id=row.id,
    type=row.type,
    category=row.category,
    priority=row.priority,
    title=row.title,
    message=row.message,
    user_id=row.user_id,
    user_type=row.user_type,
    related_id=row.related_id,
    related_type=row.related_type,
    sender_id=row.sender_id,
    sender_name=row.sender_name,
    message_preview=row.message_preview,
    metadata=dict(row.metadata_json or {}),
    read=bool(row.read),
    created_at=row.created_at,
  )
