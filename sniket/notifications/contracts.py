"""Contracts shared by the notification delivery path."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Protocol


class UserType(enum.StrEnum):
  CUSTOMER = "customer"
  PROVIDER = "provider"
  ADMIN = "admin"


class NotificationType(enum.StrEnum):
  MESSAGE = "message"
  BOOKING = "booking"
  OFFER = "offer"
  PAYMENT = "payment"
  SYSTEM = "system"


class NotificationCategory(enum.StrEnum):
  BUSINESS = "business"
  CHAT = "chat"


class NotificationPriority(enum.StrEnum):
  LOW = "low"
  MEDIUM = "medium"
  HIGH = "high"
  URGENT = "urgent"


@dataclass(frozen=True)
class DeviceInfo:
  """Client-reported description of the device holding a push token."""

  platform: str = "unknown"
  browser: str = "unknown"
  user_agent: str = "unknown"

  def as_dict(self) -> dict[str, str]:
    return {"platform": self.platform, "browser": self.browser, "userAgent": self.user_agent}

  @classmethod
  def from_dict(cls, raw: dict[str, Any] | None) -> DeviceInfo:
    raw = raw or {}
    return cls(platform=str(raw.get("platform") or "unknown"), browser=str(raw.get("browser") or "unknown"), user_agent=str(raw.get("userAgent") or raw.get("user_agent") or "unknown"))


@dataclass(frozen=True)
class PushTokenRecord:
  """One registered push destination for a (user, role) pair."""

  token: str
  user_id: str
  user_type: UserType
  device_info: DeviceInfo = field(default_factory=DeviceInfo)
  device_id: str | None = None
  is_active: bool = True
  token_id: str | None = None


@dataclass(frozen=True)
class PushMessage:
  """A push payload addressed to exactly one token."""

  token: str
  title: str
  body: str
  data: dict[str, str]
  click_action: str
  channel_id: str
  action_type: str = "system"
  thread_id: str | None = None
  image_url: str | None = None
  priority: str = "normal"
  data_only: bool = False


class NotificationError(Exception):
  """Base class for all notification delivery failures."""


class PushProviderError(NotificationError):
  """Raised when the push provider rejects or fails a single send."""


class InvalidPushTokenError(PushProviderError):
  """Raised when the provider reports the token is no longer registered."""


class PushUnavailableError(NotificationError):
  """Raised when push delivery is disabled or the provider is not configured."""


class PushSender(Protocol):
  """Delivery contract for sending one push message."""

  enabled: bool

  def send(self, message: PushMessage) -> str:
    """Send a push message synchronously and return the provider message id."""
