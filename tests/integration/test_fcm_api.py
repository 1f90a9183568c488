from __future__ import annotations

from dataclasses import replace

import pytest

from sniket.notifications.contracts import InvalidPushTokenError, UserType
from sniket.notifications.factory import build_notification_components
from sniket.notifications.push_sender import NullPushSender

pytestmark = pytest.mark.anyio


async def _register(client, token: str, *, user_id: str = "U1", user_type: str = "customer", device_id: str | None = None):
  payload = {"userId": user_id, "userType": user_type, "token": token, "deviceInfo": {"platform": "web", "browser": "chrome", "userAgent": "Mozilla/5.0"}}
  if device_id:
    payload["deviceId"] = device_id
  return await client.post("/api/fcm/register", json=payload)


async def test_register_returns_token_id(async_client):
  response = await _register(async_client, "tok-1", device_id="device-1")

  assert response.status_code == 200
  body = response.json()
  assert body["success"] is True
  assert body["tokenId"]
  assert body["deviceId"] == "device-1"


async def test_register_rejects_missing_fields_with_400(async_client):
  response = await async_client.post("/api/fcm/register", json={"userId": "U1", "token": "tok-1"})

  assert response.status_code == 400
  body = response.json()
  assert body["success"] is False
  assert body["error"] == "Missing or invalid fields"
  assert any(detail["loc"][-1] == "userType" for detail in body["details"])


async def test_register_rejects_unknown_user_type(async_client):
  response = await _register(async_client, "tok-1", user_type="technician")

  assert response.status_code == 400


async def test_verify_registration_reflects_unregister(async_client):
  await _register(async_client, "tok-1")

  before = (await async_client.post("/api/fcm/verify-registration", json={"userId": "U1", "userType": "customer"})).json()
  unregister = await async_client.post("/api/fcm/unregister", json={"token": "tok-1"})
  after = (await async_client.post("/api/fcm/verify-registration", json={"userId": "U1", "userType": "customer"})).json()

  assert before["exists"] is True
  assert before["activeTokenCount"] == 1
  assert unregister.json()["deactivatedTokens"] == 1
  assert after["exists"] is False
  assert after["shouldReRegister"] is True


async def test_customer_and_provider_sharing_a_browser_both_receive_pushes(async_client, push_sender):
  await _register(async_client, "T1", user_type="customer")
  await _register(async_client, "T1", user_type="provider")

  customer = (await async_client.post("/api/fcm/send-notification", json={"userId": "U1", "userType": "customer", "title": "Booking Update", "body": "Confirmed"})).json()
  provider = (await async_client.post("/api/fcm/send-notification", json={"userId": "U1", "userType": "provider", "title": "New Booking", "body": "Screen repair"})).json()

  assert customer["success"] is True
  assert customer["successCount"] == 1
  assert provider["successCount"] == 1
  assert push_sender.tokens_sent() == ["T1", "T1"]


async def test_unregister_for_one_role_keeps_the_other(async_client):
  await _register(async_client, "T1", user_type="customer")
  await _register(async_client, "T1", user_type="provider")

  unregister = (await async_client.post("/api/fcm/unregister", json={"token": "T1", "userId": "U1", "userType": "customer"})).json()
  customer = (await async_client.post("/api/fcm/verify-registration", json={"userId": "U1", "userType": "customer"})).json()
  provider = (await async_client.post("/api/fcm/verify-registration", json={"userId": "U1", "userType": "provider"})).json()

  assert unregister["deactivatedTokens"] == 1
  assert customer["exists"] is False
  assert provider["activeTokenCount"] == 1


async def test_cleanup_token_deactivates_refreshed_token(async_client, components):
  await _register(async_client, "old-token")
  await _register(async_client, "new-token")

  response = await async_client.post("/api/fcm/cleanup-token", json={"oldToken": "old-token", "userId": "U1"})

  assert response.json()["deactivatedTokens"] == 1
  active = await components.token_registry.get_active_tokens("U1", UserType.CUSTOMER)
  assert [token.token for token in active] == ["new-token"]


async def test_send_notification_generates_copy_from_data(async_client, push_sender):
  await _register(async_client, "tok-1")

  response = await async_client.post("/api/fcm/send-notification", json={"userId": "U1", "userType": "customer", "data": {"type": "message", "senderName": "Ravi", "messageContent": "On my way", "id": "conv-9"}})

  assert response.status_code == 200
  assert response.json()["successCount"] == 1
  message = push_sender.sent[0]
  assert message.title == "Message from Ravi"
  assert message.body == "On my way"
  assert message.click_action == "https://app.sniket.test/chat/conv-9"


async def test_send_notification_bulk(async_client, push_sender):
  await _register(async_client, "c-tok", user_id="C1")
  await _register(async_client, "p-tok", user_id="P1", user_type="provider")

  response = await async_client.post("/api/fcm/send-notification", json={"users": [{"userId": "C1", "userType": "customer"}, {"userId": "P1", "userType": "provider"}], "title": "Maintenance", "body": "Back soon"})

  body = response.json()
  assert body["successCount"] == 2
  assert sorted(push_sender.tokens_sent()) == ["c-tok", "p-tok"]


async def test_send_notification_requires_a_recipient(async_client):
  response = await async_client.post("/api/fcm/send-notification", json={"title": "Hi", "body": "There"})

  assert response.status_code == 400


async def test_send_notification_no_tokens(async_client):
  response = await async_client.post("/api/fcm/send-notification", json={"userId": "nobody", "userType": "customer", "title": "Hi", "body": "There"})

  assert response.status_code == 200
  assert response.json() == {"success": False, "successCount": 0, "failureCount": 0, "failedTokens": [], "reason": "no_tokens"}


async def test_send_data_only_deactivates_unregistered_token(async_client, push_sender, components):
  await _register(async_client, "tok-1")
  push_sender.failures["tok-1"] = InvalidPushTokenError("registration-token-not-registered")

  response = await async_client.post("/api/fcm/send-data-only", json={"userId": "U1", "userType": "customer", "title": "Ping", "body": "Pong"})

  assert response.json()["failureCount"] == 1
  assert push_sender.sent[0].data_only is True
  assert await components.token_registry.get_active_tokens("U1", UserType.CUSTOMER) == []


async def test_send_routes_answer_503_when_push_disabled(async_client, install_state, settings, session_factory):
  disabled = build_notification_components(replace(settings, push_notifications_enabled=False), session_factory=session_factory, firebase_app=None, push_sender=NullPushSender())
  install_state(notifications=disabled)

  response = await async_client.post("/api/fcm/send-notification", json={"userId": "U1", "userType": "customer", "title": "Hi", "body": "There"})

  assert response.status_code == 503
  assert response.json()["success"] is False


async def test_send_routes_require_service_key_when_configured(async_client, install_state, settings):
  install_state(settings=replace(settings, service_api_key="s3cret"))
  payload = {"userId": "U1", "userType": "customer", "title": "Hi", "body": "There"}

  missing = await async_client.post("/api/fcm/send-notification", json=payload)
  wrong = await async_client.post("/api/fcm/send-notification", json=payload, headers={"X-Sniket-Service-Key": "nope"})
  correct = await async_client.post("/api/fcm/send-notification", json=payload, headers={"X-Sniket-Service-Key": "s3cret"})

  assert missing.status_code == 401
  assert wrong.status_code == 401
  assert correct.status_code == 200


async def test_routes_answer_503_without_storage(async_client, install_state):
  app = install_state()
  app.state.notifications = None

  response = await async_client.post("/api/fcm/verify-registration", json={"userId": "U1", "userType": "customer"})

  assert response.status_code == 503


async def test_responses_carry_request_id(async_client):
  response = await async_client.get("/health")

  assert response.status_code == 200
  assert response.headers["x-request-id"]
