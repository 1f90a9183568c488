"""Routes for booking payments and provider commission collection."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field

from sniket.api.deps import get_payment_service
from sniket.api.models import CamelModel
from sniket.payments.service import PaymentService, PaymentStateError, PaymentUnavailableError, PaymentVerificationError, RecordNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


class VerifyPaymentRequest(CamelModel):
  booking_id: str = Field(min_length=1, max_length=64)
  razorpay_payment_id: str = Field(min_length=1, max_length=64)
  razorpay_order_id: str = Field(min_length=1, max_length=64)
  razorpay_signature: str = Field(min_length=1, max_length=128)


class CodConfirmRequest(CamelModel):
  booking_id: str = Field(min_length=1, max_length=64)


class CollectCommissionRequest(CamelModel):
  booking_id: str = Field(min_length=1, max_length=64)
  provider_id: str = Field(min_length=1, max_length=64)
  collection_method: str = Field(default="upi", pattern="^(upi|bank_transfer|cash_pickup)$")


class VerifyCommissionRequest(CamelModel):
  commission_id: str = Field(min_length=1, max_length=64)
  razorpay_payment_id: str = Field(min_length=1, max_length=64)
  razorpay_order_id: str = Field(min_length=1, max_length=64)
  razorpay_signature: str = Field(min_length=1, max_length=128)


async def _run(flow: Awaitable[T]) -> T:
  """Translate payment flow errors into HTTP responses."""
  try:
    return await flow
  except RecordNotFoundError as exc:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
  except PaymentVerificationError as exc:
    logger.warning("Payment signature rejected: %s", exc)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
  except PaymentStateError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
  except PaymentUnavailableError as exc:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.post("/verify-payment")
async def verify_payment(payload: VerifyPaymentRequest, service: PaymentService = Depends(get_payment_service)) -> dict[str, Any]:  # noqa: B008
  """Confirm a Razorpay checkout for a booking."""
  outcome = await _run(
    service.verify_payment(booking_id=payload.booking_id, razorpay_payment_id=payload.razorpay_payment_id, razorpay_order_id=payload.razorpay_order_id, razorpay_signature=payload.razorpay_signature)
  )
  return {"success": True, "paymentId": outcome.payment_id, "commissionAmount": str(outcome.commission_amount), "providerPayout": str(outcome.provider_payout)}


@router.post("/cod-confirm")
async def cod_confirm(payload: CodConfirmRequest, service: PaymentService = Depends(get_payment_service)) -> dict[str, Any]:  # noqa: B008
  outcome = await _run(service.confirm_cod(booking_id=payload.booking_id))
  return {"success": True, "paymentId": outcome.payment_id, "commissionAmount": str(outcome.commission_amount)}


@router.post("/collect-cod-commission")
async def collect_cod_commission(payload: CollectCommissionRequest, service: PaymentService = Depends(get_payment_service)) -> dict[str, Any]:  # noqa: B008
  """Open a commission collection for a cash-on-delivery booking."""
  outcome = await _run(service.collect_cod_commission(booking_id=payload.booking_id, provider_id=payload.provider_id, collection_method=payload.collection_method))
  return {
    "success": True,
    "commissionId": outcome.commission_id,
    "commissionAmount": str(outcome.commission_amount),
    "dueDate": outcome.due_date.isoformat(),
    "message": f"Commission collection record created for ₹{outcome.commission_amount}",
  }


@router.post("/verify-commission-payment")
async def verify_commission_payment(payload: VerifyCommissionRequest, service: PaymentService = Depends(get_payment_service)) -> dict[str, Any]:  # noqa: B008
  outcome = await _run(
    service.verify_commission_payment(commission_id=payload.commission_id, razorpay_payment_id=payload.razorpay_payment_id, razorpay_order_id=payload.razorpay_order_id, razorpay_signature=payload.razorpay_signature)
  )
  return {"success": True, "commissionId": outcome.commission_id, "message": "Commission payment verified successfully"}
