"""Factory helpers for notification components."""

from __future__ import annotations

import datetime
from dataclasses import dataclass

import firebase_admin

from sniket.config import Settings
from sniket.core.database import SessionFactory
from sniket.notifications.chat_presence import ChatPresenceStore
from sniket.notifications.contracts import PushSender
from sniket.notifications.dispatcher import PushDispatcher
from sniket.notifications.notification_repo import NotificationRepository
from sniket.notifications.push_sender import FcmPushSender, NullPushSender
from sniket.notifications.service import NotificationWriter
from sniket.notifications.token_registry import PushTokenRegistry


@dataclass(frozen=True)
class NotificationComponents:
  """Everything the HTTP layer needs to register tokens and send notifications."""

  token_registry: PushTokenRegistry
  dispatcher: PushDispatcher
  chat_presence: ChatPresenceStore
  writer: NotificationWriter


def build_push_sender(settings: Settings, firebase_app: firebase_admin.App | None) -> PushSender:
  # Without an initialized Firebase app every send would fail; report the channel disabled instead.
  if settings.push_notifications_enabled and firebase_app is not None:
    return FcmPushSender(app=firebase_app)
  return NullPushSender()


def build_notification_components(settings: Settings, *, session_factory: SessionFactory, firebase_app: firebase_admin.App | None, push_sender: PushSender | None = None) -> NotificationComponents:
  """Construct the notification components based on environment configuration."""
  sender = push_sender if push_sender is not None else build_push_sender(settings, firebase_app)
  push_enabled = bool(settings.push_notifications_enabled) and bool(sender.enabled)

  token_registry = PushTokenRegistry(session_factory)
  dispatcher = PushDispatcher(token_registry=token_registry, push_sender=sender, enabled=push_enabled, app_base_url=settings.app_base_url)
  chat_presence = ChatPresenceStore(session_factory)
  writer = NotificationWriter(
    notification_repo=NotificationRepository(session_factory),
    chat_presence=chat_presence,
    dispatcher=dispatcher,
    push_enabled=push_enabled,
    freshness=datetime.timedelta(seconds=settings.chat_session_freshness_seconds),
  )
  return NotificationComponents(token_registry=token_registry, dispatcher=dispatcher, chat_presence=chat_presence, writer=writer)
