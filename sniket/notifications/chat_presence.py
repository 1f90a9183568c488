"""Chat presence: which conversation a user currently has open, and whether to alert them."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from sniket.core.database import SessionFactory
from sniket.notifications.contracts import NotificationCategory
from sniket.schema.chat_sessions import ChatSession
from sniket.utils.ids import as_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS = datetime.timedelta(minutes=5)


@dataclass(frozen=True)
class ChatSessionState:
  """A user's last reported chat session."""

  user_id: str
  conversation_id: str | None
  is_active: bool
  last_active_at: datetime.datetime


class ChatPresenceStore:
  """Persist client reports of the conversation each user has open."""

  def __init__(self, session_factory: SessionFactory) -> None:
    self._session_factory = session_factory

  async def set_active_chat(self, user_id: str, conversation_id: str | None, *, is_active: bool = True) -> ChatSessionState:
    """Record the conversation a user opened (or closed) in their client."""
    now = utcnow()
    async with self._session_factory() as session:
      row = await session.get(ChatSession, user_id)
      if row is None:
        row = ChatSession(user_id=user_id)
        session.add(row)
      row.conversation_id = conversation_id if is_active else None
      row.is_active = bool(is_active and conversation_id)
      row.last_active_at = now
      await session.commit()
      state = _to_state(row)

    logger.debug("Chat session reported user_id=%s active=%s", user_id, state.is_active)
    return state

  async def get_session(self, user_id: str) -> ChatSessionState | None:
    """Return the user's last reported chat session, or None when unknown."""
    try:
      async with self._session_factory() as session:
        row = await session.get(ChatSession, user_id)
    except SQLAlchemyError as exc:
      # Unknown presence means the user gets alerted.
      logger.error("Chat session lookup failed user_id=%s error=%s", user_id, exc, exc_info=True)
      return None

    if row is None:
      return None
    return _to_state(row)


def should_suppress_chat_alert(session: ChatSessionState | None, related_id: str | None, *, now: datetime.datetime | None = None, freshness: datetime.timedelta = DEFAULT_FRESHNESS) -> bool:
  """Return True when the recipient is actively viewing the conversation the alert belongs to.

  Missing or stale presence never suppresses; a notification is only silenced when the
  session is active, points at `related_id` and was refreshed within `freshness`.
  """
  if session is None or not related_id:
    return False
  if not session.is_active or session.conversation_id != related_id:
    return False

  current = as_utc(now or utcnow())
  return current - as_utc(session.last_active_at) <= freshness


def should_show_toast(notification: dict, *, active_conversation_id: str | None, is_in_chat_tab: bool) -> bool:
  """Decide whether a client should toast an incoming notification.

  Chat notifications for the conversation already on screen are skipped; everything else is shown.
  """
  if notification.get("category") != NotificationCategory.CHAT:
    return True
  related_id = notification.get("related_id") or notification.get("relatedId")
  if is_in_chat_tab and active_conversation_id and related_id == active_conversation_id:
    return False
  return True


def _to_state(row: ChatSession) -> ChatSessionState:
  return ChatSessionState(user_id=row.user_id, conversation_id=row.conversation_id, is_active=bool(row.is_active), last_active_at=as_utc(row.last_active_at))
