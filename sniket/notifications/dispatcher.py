"""Fan a push notification out to every active token of a user."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Protocol

from starlette.concurrency import run_in_threadpool

from sniket.notifications.content import PushAction, build_click_action, channel_id_for
from sniket.notifications.contracts import InvalidPushTokenError, PushMessage, PushProviderError, PushSender, PushTokenRecord, UserType
from sniket.notifications.token_registry import TokenRegistryResult
from sniket.utils.ids import token_prefix, utcnow

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
  """The slice of the token registry the dispatcher depends on."""

  async def get_active_tokens(self, user_id: str, user_type: UserType | str) -> list[PushTokenRecord]: ...

  async def get_tokens_for_users(self, user_ids: Sequence[str], user_type: UserType | str) -> list[PushTokenRecord]: ...

  async def deactivate_token(self, token: str, *, reason: str = "invalid") -> TokenRegistryResult: ...


@dataclass(frozen=True)
class PushRequest:
  """A push addressed to one user role."""

  user_id: str
  user_type: UserType
  title: str
  body: str
  data: dict[str, str] = field(default_factory=dict)
  action: PushAction | None = None
  image_url: str | None = None
  priority: str = "normal"
  data_only: bool = False


@dataclass(frozen=True)
class PushDeliveryOutcome:
  """Result of the send call for one token."""

  token: str
  success: bool
  message_id: str | None = None
  error: str | None = None
  invalid_token: bool = False


@dataclass(frozen=True)
class PushDispatchResult:
  """Aggregate of every per-token send made for one request."""

  success: bool
  success_count: int = 0
  failure_count: int = 0
  failed_tokens: list[str] = field(default_factory=list)
  outcomes: list[PushDeliveryOutcome] = field(default_factory=list)
  reason: str | None = None
  error: str | None = None

  @classmethod
  def from_outcomes(cls, outcomes: Sequence[PushDeliveryOutcome]) -> PushDispatchResult:
    success_count = sum(1 for outcome in outcomes if outcome.success)
    failed_tokens = [outcome.token for outcome in outcomes if not outcome.success]
    return cls(success=success_count > 0, success_count=success_count, failure_count=len(failed_tokens), failed_tokens=failed_tokens, outcomes=list(outcomes))

  @classmethod
  def merge(cls, results: Sequence[PushDispatchResult]) -> PushDispatchResult:
    outcomes = [outcome for result in results for outcome in result.outcomes]
    return cls.from_outcomes(outcomes)


async def apply_recovery_policy(result: PushDispatchResult, registry: TokenStore) -> int:
  """Deactivate every token the provider reported as unregistered; other failures are left alone."""
  invalid_tokens = list(dict.fromkeys(outcome.token for outcome in result.outcomes if outcome.invalid_token))
  deactivated = 0
  for token in invalid_tokens:
    outcome = await registry.deactivate_token(token, reason="unregistered")
    if outcome.success:
      deactivated += 1
    else:
      logger.error("Failed deactivating unregistered token=%s error=%s", token_prefix(token), outcome.error)
  return deactivated


class PushDispatcher:
  """Resolve a user's active tokens and send one push per token."""

  def __init__(self, *, token_registry: TokenStore, push_sender: PushSender, enabled: bool, app_base_url: str) -> None:
    self._token_registry = token_registry
    self._push_sender = push_sender
    self._enabled = bool(enabled) and bool(push_sender.enabled)
    self._app_base_url = app_base_url

  @property
  def enabled(self) -> bool:
    return self._enabled

  async def send(self, request: PushRequest) -> PushDispatchResult:
    """Deliver a push to every active token of the user; best-effort, at most once per token."""
    if not self.enabled:
      return PushDispatchResult(success=False, error="push_disabled")

    tokens = await self._token_registry.get_active_tokens(request.user_id, request.user_type)
    return await self._deliver(request, tokens)

  async def send_bulk(self, users: Sequence[tuple[str, UserType]], request: PushRequest) -> PushDispatchResult:
    """Send the same push to several user roles one after another and merge the results."""
    if not self.enabled:
      return PushDispatchResult(success=False, error="push_disabled")

    # Resolve tokens with one lookup per role instead of one per user.
    tokens_by_user: dict[tuple[str, str], list[PushTokenRecord]] = {}
    for role in dict.fromkeys(str(user_type) for _, user_type in users):
      user_ids = [user_id for user_id, user_type in users if str(user_type) == role]
      for token in await self._token_registry.get_tokens_for_users(user_ids, role):
        tokens_by_user.setdefault((token.user_id, role), []).append(token)

    results: list[PushDispatchResult] = []
    for user_id, user_type in users:
      per_user = replace(request, user_id=user_id, user_type=UserType(user_type))
      results.append(await self._deliver(per_user, tokens_by_user.get((user_id, str(user_type)), [])))

    return PushDispatchResult.merge(results)

  async def _deliver(self, request: PushRequest, tokens: Sequence[PushTokenRecord]) -> PushDispatchResult:
    if not tokens:
      logger.info("No active push tokens user_type=%s user_id=%s", request.user_type, request.user_id)
      return PushDispatchResult(success=False, reason="no_tokens")

    # Each token is sent independently; one failure never cancels the others.
    messages = [self._build_message(request=request, token=token.token) for token in tokens]
    outcomes = await asyncio.gather(*(self._send_one(message) for message in messages))
    result = PushDispatchResult.from_outcomes(outcomes)

    # Only tokens the provider reported as unregistered are deactivated.
    await apply_recovery_policy(result, self._token_registry)
    logger.info("Push dispatch user_type=%s user_id=%s success=%d failure=%d", request.user_type, request.user_id, result.success_count, result.failure_count)
    return result

  async def _send_one(self, message: PushMessage) -> PushDeliveryOutcome:
    # The Firebase SDK blocks on HTTP; keep the event loop free while each send runs.
    try:
      message_id = await run_in_threadpool(self._push_sender.send, message)
    except InvalidPushTokenError as exc:
      logger.warning("Push token not registered token=%s error=%s", token_prefix(message.token), exc)
      return PushDeliveryOutcome(token=message.token, success=False, error=str(exc), invalid_token=True)
    except PushProviderError as exc:
      logger.error("Push notification delivery failed (provider error) token=%s: %s", token_prefix(message.token), exc)
      return PushDeliveryOutcome(token=message.token, success=False, error=str(exc))
    except Exception as exc:  # noqa: BLE001
      logger.error("Push notification delivery failed token=%s: %s", token_prefix(message.token), exc, exc_info=True)
      return PushDeliveryOutcome(token=message.token, success=False, error=str(exc))

    return PushDeliveryOutcome(token=message.token, success=True, message_id=message_id)

  def _build_message(self, *, request: PushRequest, token: str) -> PushMessage:
    action_type = request.action.type if request.action else "system"
    click_action = build_click_action(request.action, str(request.user_type), self._app_base_url)
    # FCM data values must be strings; caller data may override the defaults.
    data = {
      "type": action_type,
      "id": request.action.id if request.action else "",
      "userId": request.user_id,
      "userType": str(request.user_type),
      "clickAction": click_action,
      "timestamp": utcnow().isoformat(),
      "priority": request.priority,
      **{key: str(value) for key, value in request.data.items()},
    }
    return PushMessage(
      token=token,
      title=request.title,
      body=request.body,
      data=data,
      click_action=click_action,
      channel_id=channel_id_for(action_type),
      action_type=action_type,
      thread_id=f"{action_type}_{request.user_id}",
      image_url=request.image_url,
      priority=request.priority,
      data_only=request.data_only,
    )
