from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from sniket.notifications.content import PushAction
from sniket.notifications.contracts import InvalidPushTokenError, PushProviderError, PushTokenRecord, UserType
from sniket.notifications.dispatcher import PushDeliveryOutcome, PushDispatcher, PushDispatchResult, PushRequest, apply_recovery_policy
from sniket.notifications.push_sender import NullPushSender
from sniket.notifications.token_registry import TokenRegistryResult

pytestmark = pytest.mark.anyio


def _registry(*tokens: str) -> AsyncMock:
  registry = AsyncMock()
  registry.get_active_tokens.return_value = [PushTokenRecord(token=token, user_id="U1", user_type=UserType.CUSTOMER) for token in tokens]
  registry.deactivate_token.return_value = TokenRegistryResult(success=True, deactivated=1)
  return registry


def _request(**overrides) -> PushRequest:
  fields = {"user_id": "U1", "user_type": UserType.CUSTOMER, "title": "Booking Update", "body": "Your booking was confirmed", "action": PushAction(type="booking", id="B1")}
  fields.update(overrides)
  return PushRequest(**fields)


async def test_partial_failure_counts_and_deactivates_only_unregistered_token(push_sender):
  registry = _registry("t1", "t2", "t3")
  push_sender.failures["t2"] = InvalidPushTokenError("registration-token-not-registered")
  dispatcher = PushDispatcher(token_registry=registry, push_sender=push_sender, enabled=True, app_base_url="https://app.sniket.test")

  result = await dispatcher.send(_request())

  assert result.success is True
  assert result.success_count == 2
  assert result.failure_count == 1
  assert result.failed_tokens == ["t2"]
  registry.deactivate_token.assert_awaited_once_with("t2", reason="unregistered")


async def test_provider_errors_are_not_treated_as_invalid_tokens(push_sender):
  registry = _registry("t1", "t2")
  push_sender.failures["t1"] = PushProviderError("quota exceeded")
  push_sender.failures["t2"] = RuntimeError("socket closed")
  dispatcher = PushDispatcher(token_registry=registry, push_sender=push_sender, enabled=True, app_base_url="https://app.sniket.test")

  result = await dispatcher.send(_request())

  assert result.success is False
  assert result.failure_count == 2
  registry.deactivate_token.assert_not_awaited()


async def test_no_tokens_reports_reason_without_sending(push_sender):
  registry = _registry()
  dispatcher = PushDispatcher(token_registry=registry, push_sender=push_sender, enabled=True, app_base_url="https://app.sniket.test")

  result = await dispatcher.send(_request())

  assert result.success is False
  assert result.reason == "no_tokens"
  assert result.success_count == 0
  assert push_sender.sent == []


async def test_disabled_dispatcher_does_not_touch_registry(push_sender):
  registry = _registry("t1")
  dispatcher = PushDispatcher(token_registry=registry, push_sender=push_sender, enabled=False, app_base_url="https://app.sniket.test")

  result = await dispatcher.send(_request())

  assert result.error == "push_disabled"
  registry.get_active_tokens.assert_not_awaited()


async def test_null_sender_disables_dispatch_even_when_flag_is_on():
  dispatcher = PushDispatcher(token_registry=_registry("t1"), push_sender=NullPushSender(), enabled=True, app_base_url="https://app.sniket.test")

  assert dispatcher.enabled is False
  assert (await dispatcher.send(_request())).error == "push_disabled"


async def test_message_carries_role_scoped_link_channel_and_data(push_sender):
  dispatcher = PushDispatcher(token_registry=_registry("t1"), push_sender=push_sender, enabled=True, app_base_url="https://app.sniket.test")

  await dispatcher.send(_request(user_type=UserType.PROVIDER, data={"bookingStatus": "confirmed"}, priority="high"))

  message = push_sender.sent[0]
  assert message.click_action == "https://app.sniket.test/provider/bookings/B1"
  assert message.channel_id == "booking_notifications"
  assert message.thread_id == "booking_U1"
  assert message.priority == "high"
  assert message.data["type"] == "booking"
  assert message.data["id"] == "B1"
  assert message.data["userType"] == "provider"
  assert message.data["bookingStatus"] == "confirmed"
  assert all(isinstance(value, str) for value in message.data.values())


async def test_send_bulk_resolves_tokens_once_per_role_and_merges_counts(push_sender):
  registry = AsyncMock()
  registry.get_tokens_for_users.side_effect = [
    [PushTokenRecord(token="a1", user_id="A", user_type=UserType.CUSTOMER)],
    [PushTokenRecord(token="c1", user_id="C", user_type=UserType.PROVIDER), PushTokenRecord(token="c2", user_id="C", user_type=UserType.PROVIDER)],
  ]
  registry.deactivate_token.return_value = TokenRegistryResult(success=True, deactivated=1)
  push_sender.failures["c2"] = InvalidPushTokenError("gone")
  dispatcher = PushDispatcher(token_registry=registry, push_sender=push_sender, enabled=True, app_base_url="https://app.sniket.test")

  result = await dispatcher.send_bulk([("A", UserType.CUSTOMER), ("B", UserType.CUSTOMER), ("C", UserType.PROVIDER)], _request())

  assert result.success_count == 2
  assert result.failure_count == 1
  assert sorted(push_sender.tokens_sent()) == ["a1", "c1", "c2"]
  assert registry.get_tokens_for_users.await_args_list[0].args == (["A", "B"], "customer")
  assert registry.get_tokens_for_users.await_args_list[1].args == (["C"], "provider")
  registry.get_active_tokens.assert_not_awaited()
  registry.deactivate_token.assert_awaited_once_with("c2", reason="unregistered")
  provider_message = next(message for message in push_sender.sent if message.token == "c1")
  assert provider_message.data["userId"] == "C"
  assert provider_message.data["userType"] == "provider"


async def test_recovery_policy_deactivates_each_invalid_token_once():
  registry = AsyncMock()
  registry.deactivate_token.return_value = TokenRegistryResult(success=True, deactivated=1)
  result = PushDispatchResult.from_outcomes(
    [
      PushDeliveryOutcome(token="x", success=False, invalid_token=True),
      PushDeliveryOutcome(token="x", success=False, invalid_token=True),
      PushDeliveryOutcome(token="y", success=False, error="timeout"),
      PushDeliveryOutcome(token="z", success=True, message_id="m1"),
    ]
  )

  deactivated = await apply_recovery_policy(result, registry)

  assert deactivated == 1
  registry.deactivate_token.assert_awaited_once_with("x", reason="unregistered")
