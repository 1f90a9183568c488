"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from sniket.core.exceptions import _sanitize_validation_errors, error_payload


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Validation errors stay JSON-serializable and never echo raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body",), "msg": "Value error, Either users or userId and userType are required", "input": {"token": "secret-token"}, "ctx": {"error": ValueError("Either users or userId and userType are required"), "input": {"token": "secret-token"}}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: Either users or userId and userType are required"
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["loc"] == ["body"]


def test_error_payload_shape() -> None:
  assert error_payload("Booking not found") == {"success": False, "error": "Booking not found"}
  assert error_payload("boom", request_id="req-1") == {"success": False, "error": "boom", "requestId": "req-1"}
