"""Routes for push token lifecycle and direct push sends."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field, model_validator

from sniket.api.deps import get_dispatcher, get_token_registry, require_service_key
from sniket.api.models import CamelModel, dispatch_payload
from sniket.notifications.content import PushAction, body_from_data, title_from_data
from sniket.notifications.contracts import DeviceInfo, PushTokenRecord, UserType
from sniket.notifications.dispatcher import PushDispatcher, PushDispatchResult, PushRequest
from sniket.notifications.token_registry import PushTokenRegistry
from sniket.utils.ids import token_prefix, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


class DeviceInfoPayload(CamelModel):
  platform: str = Field(default="unknown", max_length=64)
  browser: str = Field(default="unknown", max_length=64)
  user_agent: str = Field(default="unknown", max_length=512)


class RegisterTokenRequest(CamelModel):
  user_id: str = Field(min_length=1, max_length=64)
  user_type: UserType
  token: str = Field(min_length=1, max_length=4096)
  device_id: str | None = Field(default=None, max_length=128)
  device_info: DeviceInfoPayload | None = None


class UnregisterTokenRequest(CamelModel):
  token: str = Field(min_length=1, max_length=4096)
  user_id: str | None = Field(default=None, max_length=64)
  user_type: UserType | None = None


class CleanupTokenRequest(CamelModel):
  old_token: str = Field(min_length=1, max_length=4096)
  device_id: str | None = None
  user_id: str | None = None


class VerifyRegistrationRequest(CamelModel):
  user_id: str = Field(min_length=1, max_length=64)
  user_type: UserType


class PushActionPayload(CamelModel):
  type: str = Field(min_length=1, max_length=32)
  id: str = Field(default="", max_length=64)


class Recipient(CamelModel):
  user_id: str = Field(min_length=1, max_length=64)
  user_type: UserType


class SendPushRequest(CamelModel):
  """A direct push to one user (`userId` + `userType`) or to several (`users`)."""

  user_id: str | None = Field(default=None, max_length=64)
  user_type: UserType | None = None
  users: list[Recipient] | None = None
  title: str | None = Field(default=None, max_length=255)
  body: str | None = Field(default=None, max_length=4000)
  data: dict[str, Any] = Field(default_factory=dict)
  action: PushActionPayload | None = None
  image_url: str | None = Field(default=None, max_length=2048)
  priority: str = Field(default="normal", pattern="^(normal|high)$")

  @model_validator(mode="after")
  def require_recipient(self) -> SendPushRequest:
    if self.users:
      return self
    if self.user_id and self.user_type:
      return self
    raise ValueError("Either users or userId and userType are required")

  def recipients(self) -> list[tuple[str, UserType]]:
    if self.users:
      return [(recipient.user_id, recipient.user_type) for recipient in self.users]
    return [(str(self.user_id), UserType(self.user_type))]

  def to_push_request(self, *, data_only: bool = False) -> PushRequest:
    user_id, user_type = self.recipients()[0]
    data = {key: str(value) for key, value in self.data.items() if value is not None}
    return PushRequest(
      user_id=user_id,
      user_type=user_type,
      title=self.title or title_from_data(self.data),
      body=self.body or body_from_data(self.data),
      data=data,
      action=self._action(),
      image_url=self.image_url,
      priority=self.priority,
      data_only=data_only,
    )

  def _action(self) -> PushAction | None:
    if self.action:
      return PushAction(type=self.action.type, id=self.action.id)
    kind = self.data.get("type")
    if not kind:
      return None
    return PushAction(type=str(kind), id=str(self.data.get("id") or self.data.get("relatedId") or ""))


class SendDataOnlyRequest(SendPushRequest):
  @model_validator(mode="after")
  def require_single_recipient(self) -> SendDataOnlyRequest:
    if not (self.user_id and self.user_type):
      raise ValueError("userId and userType are required")
    return self


def _raise_if_disabled(result: PushDispatchResult) -> None:
  if result.error == "push_disabled":
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Push notifications are disabled")


@router.post("/register")
async def register_token(payload: RegisterTokenRequest, registry: PushTokenRegistry = Depends(get_token_registry)) -> dict[str, Any]:  # noqa: B008
  """Register (or refresh) the caller's push token."""
  device_info = DeviceInfo(**payload.device_info.model_dump()) if payload.device_info else DeviceInfo()
  record = PushTokenRecord(token=payload.token, user_id=payload.user_id, user_type=payload.user_type, device_info=device_info, device_id=payload.device_id)
  result = await registry.save_token(record)
  if not result.success:
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save push token")

  return {"success": True, "tokenId": result.token_id, "deviceId": payload.device_id, "message": "Push token registered successfully"}


@router.post("/unregister")
async def unregister_token(payload: UnregisterTokenRequest, registry: PushTokenRegistry = Depends(get_token_registry)) -> dict[str, Any]:  # noqa: B008
  """Deactivate a token; with `userId`/`userType` only that owner's registration is dropped."""
  result = await registry.deactivate_token(payload.token, reason="unregistered_by_user", user_id=payload.user_id, user_type=payload.user_type)
  if not result.success:
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to unregister push token")

  return {"success": True, "deactivatedTokens": result.deactivated, "message": "Push token unregistered"}


@router.post("/cleanup-token")
async def cleanup_token(payload: CleanupTokenRequest, registry: PushTokenRegistry = Depends(get_token_registry)) -> dict[str, Any]:  # noqa: B008
  """Retire a token the client replaced after a refresh."""
  logger.info("Token cleanup requested token=%s device_id=%s user_id=%s", token_prefix(payload.old_token), payload.device_id, payload.user_id)
  result = await registry.deactivate_token(payload.old_token, reason="token_refresh")
  if not result.success:
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Token cleanup failed")

  return {"success": True, "message": "Token cleanup completed", "deactivatedTokens": result.deactivated, "timestamp": utcnow().isoformat()}


@router.post("/verify-registration")
async def verify_registration(payload: VerifyRegistrationRequest, registry: PushTokenRegistry = Depends(get_token_registry)) -> dict[str, Any]:  # noqa: B008
  """Tell the client whether it still has an active registration or should register again."""
  tokens = await registry.get_active_tokens(payload.user_id, payload.user_type)
  exists = bool(tokens)
  return {"success": True, "exists": exists, "activeTokenCount": len(tokens), "shouldReRegister": not exists, "timestamp": utcnow().isoformat()}


@router.post("/send-notification", dependencies=[Depends(require_service_key)])
async def send_notification(payload: SendPushRequest, dispatcher: PushDispatcher = Depends(get_dispatcher)) -> dict[str, Any]:  # noqa: B008
  """Send a push without storing an in-app notification."""
  request = payload.to_push_request()
  if payload.users:
    result = await dispatcher.send_bulk(payload.recipients(), request)
  else:
    result = await dispatcher.send(request)

  _raise_if_disabled(result)
  return dispatch_payload(result)


@router.post("/send-data-only", dependencies=[Depends(require_service_key)])
async def send_data_only(payload: SendDataOnlyRequest, dispatcher: PushDispatcher = Depends(get_dispatcher)) -> dict[str, Any]:  # noqa: B008
  """Send a data-only push that the client's background handler renders itself."""
  result = await dispatcher.send(payload.to_push_request(data_only=True))
  _raise_if_disabled(result)
  return dispatch_payload(result)
