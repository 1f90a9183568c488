"""Shared FastAPI dependencies: component lookup and service-key enforcement."""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, Header, HTTPException, Request, status

from sniket.config import Settings, get_settings
from sniket.notifications.chat_presence import ChatPresenceStore
from sniket.notifications.dispatcher import PushDispatcher
from sniket.notifications.factory import NotificationComponents
from sniket.notifications.service import NotificationWriter
from sniket.notifications.token_registry import PushTokenRegistry
from sniket.payments.service import PaymentService

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
  """Settings the app was started with, falling back to the process-wide settings."""
  return getattr(request.app.state, "settings", None) or get_settings()


def get_components(request: Request) -> NotificationComponents:
  components = getattr(request.app.state, "notifications", None)
  if components is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Notification storage is not configured")
  return components


def get_token_registry(components: NotificationComponents = Depends(get_components)) -> PushTokenRegistry:  # noqa: B008
  return components.token_registry


def get_dispatcher(components: NotificationComponents = Depends(get_components)) -> PushDispatcher:  # noqa: B008
  return components.dispatcher


def get_writer(components: NotificationComponents = Depends(get_components)) -> NotificationWriter:  # noqa: B008
  return components.writer


def get_chat_presence(components: NotificationComponents = Depends(get_components)) -> ChatPresenceStore:  # noqa: B008
  return components.chat_presence


def get_payment_service(request: Request) -> PaymentService:
  service = getattr(request.app.state, "payments", None)
  if service is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payment storage is not configured")
  return service


async def require_service_key(settings: Settings = Depends(get_app_settings), x_sniket_service_key: str | None = Header(default=None)) -> None:  # noqa: B008
  """Guard server-to-server routes with the shared service key when one is configured."""
  expected = settings.service_api_key
  if not expected:
    return
  if not x_sniket_service_key or not secrets.compare_digest(x_sniket_service_key.encode(), expected.encode()):
    logger.warning("Rejected request with missing or invalid service key")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid service key")
