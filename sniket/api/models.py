"""Base request model and response rendering shared by the route modules."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from sniket.notifications.dispatcher import PushDispatchResult


class CamelModel(BaseModel):
  """Request body accepting camelCase keys (and snake_case field names)."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def dispatch_payload(result: PushDispatchResult) -> dict[str, Any]:
  payload: dict[str, Any] = {"success": result.success, "successCount": result.success_count, "failureCount": result.failure_count, "failedTokens": result.failed_tokens}
  if result.reason:
    payload["reason"] = result.reason
  if result.error:
    payload["error"] = result.error
  return payload
