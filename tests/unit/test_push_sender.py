from __future__ import annotations

import pytest
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from sniket.notifications.contracts import InvalidPushTokenError, PushMessage, PushProviderError, PushUnavailableError
from sniket.notifications.push_sender import FcmPushSender, NullPushSender, build_fcm_message


def _message(**overrides) -> PushMessage:
  fields = {
    "token": "tok-1",
    "title": "Booking Update",
    "body": "Your booking was confirmed",
    "data": {"type": "booking", "id": "B1"},
    "click_action": "https://app.sniket.test/customer/bookings/B1",
    "channel_id": "booking_notifications",
    "action_type": "booking",
    "thread_id": "booking_U1",
    "priority": "high",
  }
  fields.update(overrides)
  return PushMessage(**fields)


def test_build_fcm_message_sets_platform_blocks():
  fcm_message = build_fcm_message(_message(image_url="https://cdn.sniket.test/a.png"))

  assert fcm_message.token == "tok-1"
  assert fcm_message.notification.title == "Booking Update"
  assert fcm_message.notification.image == "https://cdn.sniket.test/a.png"
  assert fcm_message.webpush.headers == {"Urgency": "high"}
  assert fcm_message.webpush.fcm_options.link == "https://app.sniket.test/customer/bookings/B1"
  assert fcm_message.android.priority == "high"
  assert fcm_message.android.notification.channel_id == "booking_notifications"
  assert fcm_message.android.notification.click_action == "https://app.sniket.test/customer/bookings/B1"
  assert fcm_message.apns.payload.aps.thread_id == "booking_U1"
  assert fcm_message.apns.payload.aps.category == "booking"


def test_build_fcm_message_skips_link_for_relative_click_action():
  fcm_message = build_fcm_message(_message(click_action="/"))

  assert fcm_message.webpush.fcm_options is None


def test_data_only_message_carries_copy_in_data():
  fcm_message = build_fcm_message(_message(data_only=True, priority="normal"))

  assert fcm_message.notification is None
  assert fcm_message.data["title"] == "Booking Update"
  assert fcm_message.data["body"] == "Your booking was confirmed"
  assert fcm_message.data["clickAction"] == "https://app.sniket.test/customer/bookings/B1"
  assert fcm_message.android.priority == "normal"
  assert fcm_message.apns.payload.aps.content_available is True


def test_fcm_sender_returns_message_id(monkeypatch):
  calls = {}

  def _send(message, app=None):
    calls["message"] = message
    calls["app"] = app
    return "projects/sniket/messages/1"

  monkeypatch.setattr("sniket.notifications.push_sender.messaging.send", _send)
  firebase_app = object()

  message_id = FcmPushSender(app=firebase_app).send(_message())

  assert message_id == "projects/sniket/messages/1"
  assert calls["app"] is firebase_app
  assert calls["message"].token == "tok-1"


def test_fcm_sender_maps_unregistered_to_invalid_token(monkeypatch):
  def _send(message, app=None):
    raise messaging.UnregisteredError("Requested entity was not found.")

  monkeypatch.setattr("sniket.notifications.push_sender.messaging.send", _send)

  with pytest.raises(InvalidPushTokenError):
    FcmPushSender(app=object()).send(_message())


def test_fcm_sender_maps_other_firebase_errors_to_provider_error(monkeypatch):
  def _send(message, app=None):
    raise firebase_exceptions.UnavailableError("backend unavailable")

  monkeypatch.setattr("sniket.notifications.push_sender.messaging.send", _send)

  with pytest.raises(PushProviderError) as excinfo:
    FcmPushSender(app=object()).send(_message())

  assert not isinstance(excinfo.value, InvalidPushTokenError)


def test_null_sender_is_disabled():
  sender = NullPushSender()

  assert sender.enabled is False
  with pytest.raises(PushUnavailableError):
    sender.send(_message())
