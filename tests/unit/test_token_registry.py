from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError

from sniket.notifications.contracts import DeviceInfo, PushTokenRecord, UserType
from sniket.notifications.token_registry import PushTokenRegistry
from sniket.schema.push_tokens import PushToken
from sniket.utils.ids import utcnow

pytestmark = pytest.mark.anyio


def _record(token: str = "tok-1", *, user_id: str = "U1", user_type: UserType = UserType.CUSTOMER, device_id: str | None = None, platform: str = "web") -> PushTokenRecord:
  return PushTokenRecord(token=token, user_id=user_id, user_type=user_type, device_info=DeviceInfo(platform=platform, browser="chrome", user_agent="ua"), device_id=device_id)


async def _rows(session_factory) -> list[PushToken]:
  async with session_factory() as session:
    return list((await session.execute(select(PushToken))).scalars().all())


async def test_save_token_inserts_active_row(session_factory):
  registry = PushTokenRegistry(session_factory)

  result = await registry.save_token(_record())

  assert result.success is True
  assert result.token_id
  tokens = await registry.get_active_tokens("U1", UserType.CUSTOMER)
  assert [token.token for token in tokens] == ["tok-1"]
  assert tokens[0].device_info.platform == "web"
  assert tokens[0].token_id == result.token_id


async def test_reregistering_same_token_updates_instead_of_duplicating(session_factory):
  registry = PushTokenRegistry(session_factory)

  first = await registry.save_token(_record(platform="web"))
  second = await registry.save_token(_record(platform="android"))

  assert first.token_id == second.token_id
  rows = await _rows(session_factory)
  assert len(rows) == 1
  assert rows[0].device_info["platform"] == "android"


async def test_reregistering_reactivates_a_deactivated_token(session_factory):
  registry = PushTokenRegistry(session_factory)
  await registry.save_token(_record())
  await registry.deactivate_token("tok-1", reason="unregistered")

  await registry.save_token(_record())

  rows = await _rows(session_factory)
  assert len(rows) == 1
  assert rows[0].is_active is True
  assert rows[0].deactivation_reason is None


async def test_deactivated_token_is_excluded_from_active_tokens(session_factory):
  registry = PushTokenRegistry(session_factory)
  await registry.save_token(_record("tok-1"))
  await registry.save_token(_record("tok-2"))

  result = await registry.deactivate_token("tok-1", reason="unregistered")

  assert result.success is True
  assert result.deactivated == 1
  tokens = await registry.get_active_tokens("U1", UserType.CUSTOMER)
  assert [token.token for token in tokens] == ["tok-2"]
  rows = {row.token: row for row in await _rows(session_factory)}
  assert rows["tok-1"].deactivation_reason == "unregistered"
  assert rows["tok-1"].deactivated_at is not None


async def test_deactivating_unknown_token_is_a_noop_success(session_factory):
  registry = PushTokenRegistry(session_factory)

  result = await registry.deactivate_token("missing")

  assert result.success is True
  assert result.deactivated == 0


async def test_users_sharing_a_browser_token_both_stay_active(session_factory):
  registry = PushTokenRegistry(session_factory)
  await registry.save_token(_record("shared", user_id="U1"))

  await registry.save_token(_record("shared", user_id="U2"))

  assert [token.user_id for token in await registry.get_active_tokens("U1", UserType.CUSTOMER)] == ["U1"]
  assert [token.user_id for token in await registry.get_active_tokens("U2", UserType.CUSTOMER)] == ["U2"]
  assert all(row.deactivation_reason is None for row in await _rows(session_factory))


async def test_same_user_keeps_token_active_under_both_roles(session_factory):
  registry = PushTokenRegistry(session_factory)
  await registry.save_token(_record("shared", user_type=UserType.CUSTOMER))

  await registry.save_token(_record("shared", user_type=UserType.PROVIDER))

  assert len(await registry.get_active_tokens("U1", UserType.CUSTOMER)) == 1
  assert len(await registry.get_active_tokens("U1", UserType.PROVIDER)) == 1


async def test_scoped_deactivation_leaves_other_owners_of_the_token(session_factory):
  registry = PushTokenRegistry(session_factory)
  await registry.save_token(_record("shared", user_type=UserType.CUSTOMER))
  await registry.save_token(_record("shared", user_type=UserType.PROVIDER))

  result = await registry.deactivate_token("shared", reason="unregistered_by_user", user_id="U1", user_type=UserType.CUSTOMER)

  assert result.deactivated == 1
  assert await registry.get_active_tokens("U1", UserType.CUSTOMER) == []
  assert len(await registry.get_active_tokens("U1", UserType.PROVIDER)) == 1


async def test_concurrent_insert_is_retried_as_update(session_factory, monkeypatch):
  registry = PushTokenRegistry(session_factory)
  save_with_session = registry._save_with_session
  competitor_ids: list[str] = []

  async def _lose_insert_race(*, session, record):
    if not competitor_ids:
      # Another request commits the same registration while this one is in flight.
      async with session_factory() as other:
        row = PushToken(token=record.token, user_id=record.user_id, user_type=str(record.user_type), device_info={}, is_active=True, created_at=utcnow(), updated_at=utcnow())
        other.add(row)
        await other.commit()
        competitor_ids.append(row.id)
      raise IntegrityError("INSERT INTO push_tokens", {}, Exception("UNIQUE constraint failed: push_tokens.user_id, push_tokens.user_type, push_tokens.token"))
    return await save_with_session(session=session, record=record)

  monkeypatch.setattr(registry, "_save_with_session", _lose_insert_race)

  result = await registry.save_token(_record(platform="android"))

  assert result.success is True
  assert result.token_id == competitor_ids[0]
  rows = await _rows(session_factory)
  assert len(rows) == 1
  assert rows[0].device_info["platform"] == "android"


async def test_repeated_insert_conflicts_are_reported(session_factory, monkeypatch):
  registry = PushTokenRegistry(session_factory)

  async def _always_conflict(*, session, record):
    raise IntegrityError("INSERT INTO push_tokens", {}, Exception("UNIQUE constraint failed"))

  monkeypatch.setattr(registry, "_save_with_session", _always_conflict)

  result = await registry.save_token(_record())

  assert result.success is False
  assert "UNIQUE constraint failed" in (result.error or "")


async def test_new_token_for_same_device_supersedes_the_old_one(session_factory):
  registry = PushTokenRegistry(session_factory)
  await registry.save_token(_record("old", device_id="device-1"))
  await registry.save_token(_record("other-device", device_id="device-2"))

  await registry.save_token(_record("new", device_id="device-1"))

  active = {token.token for token in await registry.get_active_tokens("U1", UserType.CUSTOMER)}
  assert active == {"new", "other-device"}
  rows = {row.token: row for row in await _rows(session_factory)}
  assert rows["old"].deactivation_reason == "superseded"


async def test_get_tokens_for_users_filters_by_role_and_activity(session_factory):
  registry = PushTokenRegistry(session_factory)
  await registry.save_token(_record("a", user_id="U1"))
  await registry.save_token(_record("b", user_id="U2"))
  await registry.save_token(_record("c", user_id="U3", user_type=UserType.PROVIDER))
  await registry.deactivate_token("b")

  tokens = await registry.get_tokens_for_users(["U1", "U2", "U3"], UserType.CUSTOMER)

  assert [token.token for token in tokens] == ["a"]
  assert await registry.get_tokens_for_users([], UserType.CUSTOMER) == []


async def test_persistence_errors_are_reported_not_raised():
  broken_factory = MagicMock(side_effect=OperationalError("SELECT 1", {}, Exception("database is locked")))
  registry = PushTokenRegistry(broken_factory)

  saved = await registry.save_token(_record())
  deactivated = await registry.deactivate_token("tok-1")
  tokens = await registry.get_active_tokens("U1", UserType.CUSTOMER)

  assert saved.success is False
  assert "database is locked" in (saved.error or "")
  assert deactivated.success is False
  assert tokens == []
