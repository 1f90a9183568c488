"""Push notification delivery implementations."""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from sniket.notifications.contracts import InvalidPushTokenError, PushMessage, PushProviderError, PushSender, PushUnavailableError
from sniket.utils.ids import token_prefix

logger = logging.getLogger(__name__)

_ICON = "/assets/logo.png"


class FcmPushSender(PushSender):
  """Firebase Cloud Messaging sender: one `messaging.send` call per token, no retries."""

  enabled = True

  def __init__(self, *, app: firebase_admin.App) -> None:
    self._app = app

  def send(self, message: PushMessage) -> str:
    """Send one message and return the FCM message id."""
    fcm_message = build_fcm_message(message)
    try:
      return messaging.send(fcm_message, app=self._app)
    except messaging.UnregisteredError as exc:
      raise InvalidPushTokenError(f"Push token is no longer registered ({exc.code})") from exc
    except firebase_exceptions.FirebaseError as exc:
      raise PushProviderError(f"Push delivery failed ({exc.code}): {exc}") from exc


class NullPushSender(PushSender):
  """Sender used when push notifications are disabled or Firebase is unconfigured."""

  enabled = False

  def send(self, message: PushMessage) -> str:
    logger.debug("Push notifications disabled; dropping push token=%s", token_prefix(message.token))
    raise PushUnavailableError("Push notifications are disabled")


def build_fcm_message(message: PushMessage) -> messaging.Message:
  """Translate a `PushMessage` into the FCM message for web, Android and APNs clients."""
  urgency = "high" if message.priority == "high" else "normal"
  data = dict(message.data)

  if message.data_only:
    # Data-only messages reach the service worker's background handler untouched.
    data.update({"title": message.title, "body": message.body, "clickAction": message.click_action})
    return messaging.Message(
      token=message.token,
      data=data,
      webpush=messaging.WebpushConfig(headers={"Urgency": urgency}),
      android=messaging.AndroidConfig(priority=urgency),
      apns=messaging.APNSConfig(payload=messaging.APNSPayload(aps=messaging.Aps(content_available=True))),
    )

  return messaging.Message(
    token=message.token,
    notification=messaging.Notification(title=message.title, body=message.body, image=message.image_url),
    data=data,
    webpush=messaging.WebpushConfig(headers={"Urgency": urgency}, notification=messaging.WebpushNotification(icon=_ICON), fcm_options=messaging.WebpushFCMOptions(link=message.click_action) if message.click_action.startswith("https://") else None),
    android=messaging.AndroidConfig(priority=urgency, notification=messaging.AndroidNotification(click_action=message.click_action, channel_id=message.channel_id, image=message.image_url)),
    apns=messaging.APNSConfig(payload=messaging.APNSPayload(aps=messaging.Aps(category=message.action_type, thread_id=message.thread_id, mutable_content=True))),
  )
