"""Repository for push token registration, lookup and deactivation."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sniket.core.database import SessionFactory
from sniket.notifications.contracts import DeviceInfo, PushTokenRecord, UserType
from sniket.schema.push_tokens import PushToken
from sniket.utils.ids import token_prefix, utcnow

logger = logging.getLogger(__name__)

_SAVE_ATTEMPTS = 2


@dataclass(frozen=True)
class TokenRegistryResult:
  """Outcome of a registry write; failures carry the error instead of raising."""

  success: bool
  token_id: str | None = None
  deactivated: int = 0
  error: str | None = None


class PushTokenRegistry:
  """Persist push tokens keyed by user, role and raw token value.

  One browser may register the same raw token for several users or roles; each registration stays
  deliverable on its own.
  """

  def __init__(self, session_factory: SessionFactory) -> None:
    self._session_factory = session_factory

  async def save_token(self, record: PushTokenRecord) -> TokenRegistryResult:
    """Insert a token or refresh the existing row for the same user, role and token."""
    for attempt in range(_SAVE_ATTEMPTS):
      try:
        async with self._session_factory() as session:
          token_id = await self._save_with_session(session=session, record=record)
        return TokenRegistryResult(success=True, token_id=token_id)
      except IntegrityError as exc:
        # A concurrent registration inserted the same row first; the next pass updates it.
        if attempt + 1 < _SAVE_ATTEMPTS:
          logger.info("Push token insert raced user_id=%s token=%s; retrying as update", record.user_id, token_prefix(record.token))
          continue
        logger.error("Push token save failed user_id=%s error=%s", record.user_id, exc)
        return TokenRegistryResult(success=False, error=str(exc))
      except SQLAlchemyError as exc:
        logger.error("Push token save failed user_id=%s error=%s", record.user_id, exc, exc_info=True)
        return TokenRegistryResult(success=False, error=str(exc))

    return TokenRegistryResult(success=False, error="push token save exhausted retries")

  async def _save_with_session(self, *, session: AsyncSession, record: PushTokenRecord) -> str:
    now = utcnow()
    user_type = str(record.user_type)
    stmt = select(PushToken).where(PushToken.user_id == record.user_id, PushToken.user_type == user_type, PushToken.token == record.token)
    row = (await session.execute(stmt)).scalar_one_or_none()

    if row is None:
      row = PushToken(token=record.token, user_id=record.user_id, user_type=user_type, device_id=record.device_id, device_info=record.device_info.as_dict(), is_active=True, created_at=now, updated_at=now)
      session.add(row)
    else:
      row.is_active = True
      row.device_id = record.device_id or row.device_id
      row.device_info = record.device_info.as_dict()
      row.deactivation_reason = None
      row.deactivated_at = None
      row.updated_at = now

    await session.flush()

    # A refreshed token replaces whatever the same device registered before.
    if record.device_id:
      await session.execute(
        update(PushToken)
        .where(PushToken.user_id == record.user_id, PushToken.user_type == user_type, PushToken.device_id == record.device_id, PushToken.id != row.id, PushToken.is_active.is_(True))
        .values(is_active=False, deactivation_reason="superseded", deactivated_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
      )

    token_id = row.id
    await session.commit()
    logger.info("Push token saved token_id=%s user_type=%s user_id=%s token=%s", token_id, user_type, record.user_id, token_prefix(record.token))
    return token_id

  async def get_active_tokens(self, user_id: str, user_type: UserType | str) -> list[PushTokenRecord]:
    """Return active tokens for one user role, most recently refreshed first."""
    try:
      async with self._session_factory() as session:
        stmt = select(PushToken).where(PushToken.user_id == user_id, PushToken.user_type == str(user_type), PushToken.is_active.is_(True)).order_by(PushToken.updated_at.desc())
        rows = (await session.execute(stmt)).scalars().all()
    except SQLAlchemyError as exc:
      logger.error("Active token lookup failed user_type=%s user_id=%s error=%s", user_type, user_id, exc, exc_info=True)
      return []

    return [_to_record(row) for row in rows]

  async def get_tokens_for_users(self, user_ids: Sequence[str], user_type: UserType | str) -> list[PushTokenRecord]:
    """Return active tokens for many users of one role."""
    if not user_ids:
      return []

    try:
      async with self._session_factory() as session:
        stmt = select(PushToken).where(PushToken.user_id.in_(list(user_ids)), PushToken.user_type == str(user_type), PushToken.is_active.is_(True)).order_by(PushToken.updated_at.desc())
        rows = (await session.execute(stmt)).scalars().all()
    except SQLAlchemyError as exc:
      logger.error("Bulk token lookup failed user_type=%s users=%d error=%s", user_type, len(user_ids), exc, exc_info=True)
      return []

    return [_to_record(row) for row in rows]

  async def deactivate_token(self, token: str, *, reason: str = "invalid", user_id: str | None = None, user_type: UserType | str | None = None) -> TokenRegistryResult:
    """Mark active rows holding this token as inactive, optionally only those of one user or role."""
    now = utcnow()
    conditions = [PushToken.token == token, PushToken.is_active.is_(True)]
    if user_id is not None:
      conditions.append(PushToken.user_id == user_id)
    if user_type is not None:
      conditions.append(PushToken.user_type == str(user_type))

    try:
      async with self._session_factory() as session:
        stmt = update(PushToken).where(*conditions).values(is_active=False, deactivation_reason=reason, deactivated_at=now, updated_at=now).execution_options(synchronize_session=False)
        result = await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError as exc:
      logger.error("Push token deactivation failed token=%s error=%s", token_prefix(token), exc, exc_info=True)
      return TokenRegistryResult(success=False, error=str(exc))

    deactivated = int(result.rowcount or 0)
    logger.info("Push token deactivated token=%s reason=%s rows=%d", token_prefix(token), reason, deactivated)
    return TokenRegistryResult(success=True, deactivated=deactivated)


def _to_record(row: PushToken) -> PushTokenRecord:
  return PushTokenRecord(token=row.token, user_id=row.user_id, user_type=UserType(row.user_type), device_info=DeviceInfo.from_dict(row.device_info), device_id=row.device_id, is_active=row.is_active, token_id=row.id)
