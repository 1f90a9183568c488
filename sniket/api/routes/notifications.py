from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field

from sniket.api.deps import get_chat_presence, get_writer, require_service_key
from sniket.api.models import CamelModel
from sniket.notifications.chat_presence import ChatPresenceStore, should_show_toast
from sniket.notifications.contracts import NotificationCategory, NotificationPriority, NotificationType, UserType
from sniket.notifications.service import CreateOptions, NotificationCreate, NotificationWriter

router = APIRouter()


class CreateNotificationRequest(CamelModel):
  type: NotificationType
  category: NotificationCategory = NotificationCategory.BUSINESS
  priority: NotificationPriority = NotificationPriority.MEDIUM
  title: str = Field(min_length=1, max_length=255)
  message: str = Field(min_length=1, max_length=4000)
  user_id: str = Field(min_length=1, max_length=64)
  user_type: UserType
  related_id: str | None = Field(default=None, max_length=64)
  related_type: str | None = Field(default=None, max_length=32)
  sender_id: str | None = Field(default=None, max_length=64)
  sender_name: str | None = Field(default=None, max_length=255)
  message_preview: str | None = Field(default=None, max_length=4000)
  metadata: dict[str, Any] = Field(default_factory=dict)
  send_push: bool = True
  skip_if_active_chat: bool = False
  active_conversation_id: str | None = Field(default=None, max_length=64)


class MarkConversationReadRequest(CamelModel):
  user_id: str = Field(min_length=1, max_length=64)
  user_type: UserType
  conversation_id: str = Field(min_length=1, max_length=64)


class MarkAllReadRequest(CamelModel):
  user_id: str = Field(min_length=1, max_length=64)
  user_type: UserType


class ActiveChatRequest(CamelModel):
  user_id: str = Field(min_length=1, max_length=64)
  conversation_id: str | None = Field(default=None, max_length=64)
  is_active: bool = True


@router.post("/send-notification", dependencies=[Depends(require_service_key)])
async def send_notification(payload: CreateNotificationRequest, writer: NotificationWriter = Depends(get_writer)) -> dict[str, Any]:  # noqa: B008
  """Store a notification and push it unless the recipient already has the chat open."""
  fields = NotificationCreate(
    type=payload.type,
    category=payload.category,
    priority=payload.priority,
    title=payload.title,
    message=payload.message,
    user_id=payload.user_id,
    user_type=payload.user_type,
    related_id=payload.related_id,
    related_type=payload.related_type,
    sender_id=payload.sender_id,
    sender_name=payload.sender_name,
    message_preview=payload.message_preview,
    metadata=payload.metadata,
  )
  options = CreateOptions(send_push=payload.send_push, skip_if_active_chat=payload.skip_if_active_chat, active_conversation_id=payload.active_conversation_id)
  result = await writer.create_notification(fields, options)
  if not result.success or result.notification is None:
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create notification")

  return {"success": True, "notification": result.notification.as_payload(), "fcmSent": result.fcm_sent, "suppressed": result.suppressed}


@router.get("")
@router.get("/", include_in_schema=False)
async def list_notifications(
  user_id: str = Query(..., alias="userId", min_length=1),  # noqa: B008
  user_type: UserType = Query(..., alias="userType"),  # noqa: B008
  limit: int = Query(50, ge=1, le=100),  # noqa: B008
  active_conversation_id: str | None = Query(None, alias="activeConversationId", max_length=64),  # noqa: B008
  in_chat_tab: bool = Query(False, alias="inChatTab"),  # noqa: B008
  writer: NotificationWriter = Depends(get_writer),  # noqa: B008
) -> dict[str, Any]:
  """List a user's notifications, newest first.

  Each item carries `showToast`, evaluated against the conversation the client reports as open.
  """
  records = await writer.notifications.list_for_user(user_id, user_type, limit=limit)
  items = []
  for record in records:
    item = record.as_payload()
    item["showToast"] = should_show_toast(item, active_conversation_id=active_conversation_id, is_in_chat_tab=in_chat_tab)
    items.append(item)
  return {"success": True, "notifications": items}


@router.get("/unread-count")
async def unread_count(
  user_id: str = Query(..., alias="userId", min_length=1),  # noqa: B008
  user_type: UserType = Query(..., alias="userType"),  # noqa: B008
  writer: NotificationWriter = Depends(get_writer),  # noqa: B008
) -> dict[str, Any]:
  count = await writer.notifications.unread_count(user_id, user_type)
  return {"success": True, "unreadCount": count}


@router.post("/mark-conversation-read")
async def mark_conversation_read(payload: MarkConversationReadRequest, writer: NotificationWriter = Depends(get_writer)) -> dict[str, Any]:  # noqa: B008
  updated = await writer.notifications.mark_conversation_read(payload.user_id, payload.user_type, payload.conversation_id)
  return {"success": True, "updated": updated}


@router.post("/mark-all-read")
async def mark_all_read(payload: MarkAllReadRequest, writer: NotificationWriter = Depends(get_writer)) -> dict[str, Any]:  # noqa: B008
  updated = await writer.notifications.mark_all_read(payload.user_id, payload.user_type)
  return {"success": True, "updated": updated}


@router.post("/active-chat")
async def report_active_chat(payload: ActiveChatRequest, presence: ChatPresenceStore = Depends(get_chat_presence)) -> dict[str, Any]:  # noqa: B008
  """Record the conversation the user's client has open; an empty conversation clears it."""
  state = await presence.set_active_chat(payload.user_id, payload.conversation_id, is_active=payload.is_active)
  return {"success": True, "conversationId": state.conversation_id, "isActive": state.is_active}


@router.post("/{notification_id}/read")
async def mark_as_read(notification_id: str, writer: NotificationWriter = Depends(get_writer)) -> dict[str, Any]:  # noqa: B008
  if not await writer.notifications.mark_as_read(notification_id):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
  return {"success": True}
