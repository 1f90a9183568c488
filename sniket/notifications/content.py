"""Push copy, click-through links and Android channels for notification payloads.

Links are role-scoped so a provider never lands on a customer page. Copy for sends
that arrive with only a data payload is generated from fixed templates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-zA-Z0-9_]+)\s*\}\}")
_PREVIEW_CHARS = 50

_CHANNELS = {"booking": "booking_notifications", "message": "message_notifications", "payment": "payment_notifications"}


@dataclass(frozen=True)
class PushAction:
  """What a notification opens when tapped."""

  type: str
  id: str = ""


@dataclass(frozen=True)
class CopyTemplate:
  """Title/body templates with their fallback placeholder values."""

  title: str
  body: str
  defaults: dict[str, str]


# Keyed by the `type` field of a send request's data payload.
GENERATED_COPY: dict[str, CopyTemplate] = {
  "message": CopyTemplate(title="Message from {{senderName}}", body="{{messageContent}}", defaults={"senderName": "Someone", "messageContent": "New message received"}),
  "booking": CopyTemplate(title="Booking Update", body="Your booking has been {{bookingStatus}}. Tap to view details.", defaults={"bookingStatus": "updated"}),
  "payment": CopyTemplate(title="Payment Notification", body="Payment of ₹{{amount}} processed successfully.", defaults={"amount": "amount"}),
  "provider_verification": CopyTemplate(title="Provider Verification", body="Your provider application has been reviewed. Check status.", defaults={}),
  "quote_request": CopyTemplate(title="Quote Request", body="New quote request for {{deviceType}} repair.", defaults={"deviceType": "device"}),
  "service_update": CopyTemplate(title="Service Update", body="Service status: {{serviceStatus}}. View progress.", defaults={"serviceStatus": "updated"}),
  "system": CopyTemplate(title="Sniket Notification", body="You have a new notification from Sniket.", defaults={}),
}
GENERATED_COPY["chat"] = GENERATED_COPY["message"]


def build_click_action(action: PushAction | None, user_type: str, base_url: str) -> str:
  """Return the absolute URL a notification opens for this recipient role."""
  if action is None:
    return "/"

  if action.type == "message":
    return f"{base_url}/chat/{action.id}"

  if action.type in {"booking", "payment"}:
    section = f"{action.type}s"
    if user_type in {"customer", "provider"}:
      return f"{base_url}/{user_type}/{section}/{action.id}"
    return f"{base_url}/admin/{section}/{action.id}"

  if user_type in {"customer", "provider"}:
    return f"{base_url}/{user_type}"
  return f"{base_url}/admin"


def channel_id_for(action_type: str | None) -> str:
  """Map an action type to its Android notification channel."""
  return _CHANNELS.get(action_type or "", "default_notifications")


def truncate_preview(text: str, limit: int = _PREVIEW_CHARS) -> str:
  if len(text) > limit:
    return f"{text[:limit]}..."
  return text


def title_from_data(data: dict[str, Any] | None) -> str:
  """Generate a push title from a data-only send request."""
  template = _template_for(data)
  return _render(template.title, template=template, data=data or {})


def body_from_data(data: dict[str, Any] | None) -> str:
  """Generate a push body from a data-only send request."""
  template = _template_for(data)
  body = _render(template.body, template=template, data=data or {})
  if (data or {}).get("type") in {"message", "chat"}:
    return truncate_preview(body)
  return body


def _template_for(data: dict[str, Any] | None) -> CopyTemplate:
  kind = str((data or {}).get("type") or "system")
  return GENERATED_COPY.get(kind, GENERATED_COPY["system"])


def _render(raw: str, *, template: CopyTemplate, data: dict[str, Any]) -> str:
  def _replace(match: re.Match[str]) -> str:
    key = match.group(1)
    value = data.get(key)
    if value is None or value == "":
      return template.defaults.get(key, "")
    return str(value)

  return _PLACEHOLDER_RE.sub(_replace, raw)
