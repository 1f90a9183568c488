"""Razorpay checkout signature verification."""

from __future__ import annotations

import hashlib
import hmac


def razorpay_signature(secret: str, order_id: str, payment_id: str) -> str:
  """Return the hex HMAC-SHA256 Razorpay signs `order_id|payment_id` with."""
  message = f"{order_id}|{payment_id}".encode()
  return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_razorpay_signature(*, secret: str, order_id: str, payment_id: str, signature: str) -> bool:
  expected = razorpay_signature(secret, order_id, payment_id)
  return hmac.compare_digest(expected, signature.strip().lower())
