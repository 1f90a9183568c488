"""Notification orchestration: persist the in-app record, then push unless suppressed."""

from __future__ import annotations

import asyncio
import datetime
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from sniket.notifications.chat_presence import DEFAULT_FRESHNESS, ChatPresenceStore, ChatSessionState, should_suppress_chat_alert
from sniket.notifications.content import PushAction
from sniket.notifications.contracts import NotificationCategory, NotificationPriority, NotificationType, UserType
from sniket.notifications.dispatcher import PushDispatcher, PushDispatchResult, PushRequest
from sniket.notifications.notification_repo import NotificationEntry, NotificationRecord, NotificationRepository
from sniket.utils.ids import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationCreate:
  """Caller-supplied fields of a new notification."""

  type: NotificationType
  title: str
  message: str
  user_id: str
  user_type: UserType
  category: NotificationCategory = NotificationCategory.BUSINESS
  priority: NotificationPriority = NotificationPriority.MEDIUM
  related_id: str | None = None
  related_type: str | None = None
  sender_id: str | None = None
  sender_name: str | None = None
  message_preview: str | None = None
  metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CreateOptions:
  send_push: bool = True
  skip_if_active_chat: bool = False
  active_conversation_id: str | None = None


@dataclass(frozen=True)
class NotificationWriteResult:
  """Outcome of `create_notification`; `fcm_sent` means push delivery was scheduled."""

  success: bool
  notification: NotificationRecord | None = None
  fcm_sent: bool = False
  suppressed: bool = False
  error: str | None = None


class NotificationWriter:
  """Single entry point that every notification-producing flow goes through."""

  def __init__(self, *, notification_repo: NotificationRepository, chat_presence: ChatPresenceStore, dispatcher: PushDispatcher, push_enabled: bool, freshness: datetime.timedelta = DEFAULT_FRESHNESS) -> None:
    self._notification_repo = notification_repo
    self._chat_presence = chat_presence
    self._dispatcher = dispatcher
    self._push_enabled = push_enabled
    self._freshness = freshness
    self._pending: set[asyncio.Task[PushDispatchResult]] = set()

  @property
  def notifications(self) -> NotificationRepository:
    return self._notification_repo

  @property
  def pending_pushes(self) -> int:
    return len(self._pending)

  async def create_notification(self, fields: NotificationCreate, options: CreateOptions | None = None) -> NotificationWriteResult:
    """Persist a notification and schedule its push unless the recipient is already in the chat."""
    options = options or CreateOptions()
    entry = NotificationEntry(
      type=fields.type,
      category=fields.category,
      priority=fields.priority,
      title=fields.title,
      message=fields.message,
      user_id=fields.user_id,
      user_type=fields.user_type,
      related_id=fields.related_id,
      related_type=fields.related_type,
      sender_id=fields.sender_id,
      sender_name=fields.sender_name,
      message_preview=fields.message_preview,
      metadata=fields.metadata,
    )

    try:
      record = await self._notification_repo.insert(entry)
    except SQLAlchemyError as exc:
      logger.error("Notification insert failed user_type=%s user_id=%s error=%s", fields.user_type, fields.user_id, exc, exc_info=True)
      return NotificationWriteResult(success=False, error=str(exc))

    if options.skip_if_active_chat and fields.related_id:
      session = await self._recipient_session(fields.user_id, options)
      if should_suppress_chat_alert(session, fields.related_id, freshness=self._freshness):
        logger.info("Push suppressed; recipient is viewing the conversation user_id=%s related_id=%s", fields.user_id, fields.related_id)
        return NotificationWriteResult(success=True, notification=record, fcm_sent=False, suppressed=True)

    if not (options.send_push and self._push_enabled and self._dispatcher.enabled):
      return NotificationWriteResult(success=True, notification=record)

    # Push runs in the background so the API response never waits on the provider.
    task = asyncio.create_task(self._dispatcher.send(_push_request_for(record)))
    self._pending.add(task)
    task.add_done_callback(self._on_push_done)
    return NotificationWriteResult(success=True, notification=record, fcm_sent=True)

  async def _recipient_session(self, user_id: str, options: CreateOptions) -> ChatSessionState | None:
    if options.active_conversation_id:
      return ChatSessionState(user_id=user_id, conversation_id=options.active_conversation_id, is_active=True, last_active_at=utcnow())
    return await self._chat_presence.get_session(user_id)

  async def drain(self) -> None:
    """Wait for every scheduled push delivery to finish."""
    if self._pending:
      await asyncio.gather(*list(self._pending), return_exceptions=True)

  def _on_push_done(self, task: asyncio.Task[PushDispatchResult]) -> None:
    self._pending.discard(task)
    self._log_task_error(task)

  @staticmethod
  def _log_task_error(task: asyncio.Task[PushDispatchResult]) -> None:
    """Log background task exceptions to avoid silent delivery failures."""
    try:
      _ = task.result()
    except Exception as exc:  # noqa: BLE001
      logger.error("Background push dispatch task failed: %s", exc, exc_info=True)


def _push_request_for(record: NotificationRecord) -> PushRequest:
  action_type = "message" if record.category == NotificationCategory.CHAT else record.type
  priority = "high" if record.priority in (NotificationPriority.HIGH, NotificationPriority.URGENT) else "normal"
  data = {"type": record.type, "category": record.category, "priority": record.priority, "relatedId": record.related_id or "", "relatedType": record.related_type or "", "notificationId": record.id}
  return PushRequest(
    user_id=record.user_id,
    user_type=UserType(record.user_type),
    title=record.title,
    body=record.message_preview or record.message,
    data=data,
    action=PushAction(type=action_type, id=record.related_id or ""),
    priority=priority,
  )
