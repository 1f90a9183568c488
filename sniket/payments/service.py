"""Booking payment flows: online checkout, cash on delivery and commission collection.

Each flow flips status fields on existing records, creates the payment-side record and
then tells the affected users through the notification writer. Notification failures
are logged and never undo a payment write.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select

from sniket.core.database import SessionFactory
from sniket.notifications.contracts import NotificationPriority, NotificationType, UserType
from sniket.notifications.service import NotificationCreate, NotificationWriter
from sniket.payments.signature import verify_razorpay_signature
from sniket.schema.payments import Booking, CommissionCollection, Payment
from sniket.utils.ids import utcnow

logger = logging.getLogger(__name__)

COMMISSION_DUE_DAYS = 7
COLLECTION_METHODS = frozenset({"upi", "bank_transfer", "cash_pickup"})
_CENTS = Decimal("0.01")


class PaymentError(Exception):
  """Base class for payment flow failures."""


class PaymentVerificationError(PaymentError):
  """Raised when a Razorpay signature does not match."""


class PaymentStateError(PaymentError):
  """Raised when a record is not in a state the flow can act on."""


class PaymentUnavailableError(PaymentError):
  """Raised when signature verification is not configured."""


class RecordNotFoundError(PaymentError):
  """Raised when a referenced booking, payment or commission does not exist."""


@dataclass(frozen=True)
class PaymentOutcome:
  payment_id: str
  booking_id: str
  amount: Decimal
  commission_amount: Decimal
  provider_payout: Decimal


@dataclass(frozen=True)
class CommissionOutcome:
  commission_id: str
  booking_id: str
  commission_amount: Decimal
  status: str
  due_date: datetime.datetime


def split_amount(total: Decimal, rate: Decimal) -> tuple[Decimal, Decimal]:
  """Split a booking total into (platform commission, provider payout)."""
  commission = (Decimal(total) * rate).quantize(_CENTS, rounding=ROUND_HALF_UP)
  return commission, Decimal(total).quantize(_CENTS, rounding=ROUND_HALF_UP) - commission


def format_rupees(amount: Decimal) -> str:
  return f"₹{Decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP)}"


class PaymentService:
  """Apply payment state changes and emit the matching notifications."""

  def __init__(self, *, session_factory: SessionFactory, writer: NotificationWriter, razorpay_key_secret: str | None, commission_rate: Decimal) -> None:
    self._session_factory = session_factory
    self._writer = writer
    self._razorpay_key_secret = razorpay_key_secret
    self._commission_rate = commission_rate

  def _verify_signature(self, *, order_id: str, payment_id: str, signature: str) -> None:
    if not self._razorpay_key_secret:
      raise PaymentUnavailableError("Payment verification is not configured")
    if not verify_razorpay_signature(secret=self._razorpay_key_secret, order_id=order_id, payment_id=payment_id, signature=signature):
      raise PaymentVerificationError("Payment verification failed")

  async def verify_payment(self, *, booking_id: str, razorpay_payment_id: str, razorpay_order_id: str, razorpay_signature: str) -> PaymentOutcome:
    """Confirm an online checkout and record the completed payment."""
    now = utcnow()
    async with self._session_factory() as session:
      booking = await session.get(Booking, booking_id)
      if booking is None:
        raise RecordNotFoundError("Booking not found")

      self._verify_signature(order_id=razorpay_order_id, payment_id=razorpay_payment_id, signature=razorpay_signature)

      # Online bookings are paid in full: the platform keeps its commission, the rest is the provider payout.
      commission, payout = split_amount(booking.total_amount, self._commission_rate)
      booking.payment_status = "completed"
      booking.status = "confirmed"
      payment = Payment(
        booking_id=booking.id,
        amount=booking.total_amount,
        status="completed",
        payment_method="online",
        transaction_id=f"TXN_{int(now.timestamp() * 1000)}",
        commission_amount=commission,
        provider_payout=payout,
        is_commission_settled=False,
        razorpay_payment_id=razorpay_payment_id,
        razorpay_order_id=razorpay_order_id,
      )
      session.add(payment)
      await session.commit()
      outcome = PaymentOutcome(payment_id=payment.id, booking_id=booking.id, amount=booking.total_amount, commission_amount=commission, provider_payout=payout)
      customer_id, provider_id = booking.customer_id, booking.provider_id

    logger.info("Online payment verified booking_id=%s payment_id=%s", booking_id, outcome.payment_id)
    # Both parties are told; notification failures never undo the committed payment.
    await self._notify(
      NotificationCreate(
        type=NotificationType.PAYMENT,
        title="Payment Successful",
        message=f"Your payment of {format_rupees(outcome.amount)} was received. Your booking is confirmed.",
        user_id=customer_id,
        user_type=UserType.CUSTOMER,
        priority=NotificationPriority.HIGH,
        related_id=booking_id,
        related_type="booking",
        metadata={"paymentId": outcome.payment_id, "amount": str(outcome.amount)},
      )
    )
    await self._notify(
      NotificationCreate(
        type=NotificationType.PAYMENT,
        title="Payment Received",
        message=f"A customer paid {format_rupees(outcome.amount)} online. Your payout is {format_rupees(outcome.provider_payout)}.",
        user_id=provider_id,
        user_type=UserType.PROVIDER,
        priority=NotificationPriority.HIGH,
        related_id=booking_id,
        related_type="booking",
        metadata={"paymentId": outcome.payment_id, "providerPayout": str(outcome.provider_payout)},
      )
    )
    return outcome

  async def confirm_cod(self, *, booking_id: str) -> PaymentOutcome:
    """Record a cash-on-delivery booking; the provider owes the commission later."""
    async with self._session_factory() as session:
      booking = await session.get(Booking, booking_id)
      if booking is None:
        raise RecordNotFoundError("Booking not found")

      commission, payout = split_amount(booking.total_amount, self._commission_rate)
      booking.payment_status = "pending"
      booking.status = "pending"
      payment = Payment(booking_id=booking.id, amount=booking.total_amount, status="pending", payment_method="COD", transaction_id="", commission_amount=commission, provider_payout=payout, is_commission_settled=False)
      session.add(payment)
      await session.commit()
      outcome = PaymentOutcome(payment_id=payment.id, booking_id=booking.id, amount=booking.total_amount, commission_amount=commission, provider_payout=payout)
      provider_id = booking.provider_id

    logger.info("COD booking confirmed booking_id=%s payment_id=%s", booking_id, outcome.payment_id)
    await self._notify(
      NotificationCreate(
        type=NotificationType.BOOKING,
        title="Cash on Delivery Booking",
        message=f"A customer chose cash on delivery for {format_rupees(outcome.amount)}.",
        user_id=provider_id,
        user_type=UserType.PROVIDER,
        related_id=booking_id,
        related_type="booking",
        metadata={"paymentId": outcome.payment_id},
      )
    )
    return outcome

  async def collect_cod_commission(self, *, booking_id: str, provider_id: str, collection_method: str = "upi") -> CommissionOutcome:
    """Open a commission collection for an unsettled COD payment."""
    if collection_method not in COLLECTION_METHODS:
      raise PaymentStateError(f"Unsupported collection method: {collection_method}")

    now = utcnow()
    async with self._session_factory() as session:
      # Only an unsettled cash payment can owe a commission.
      stmt = select(Payment).where(Payment.booking_id == booking_id).order_by(Payment.created_at.desc()).limit(1)
      payment = (await session.execute(stmt)).scalar_one_or_none()
      if payment is None:
        raise RecordNotFoundError("Payment record not found")
      if payment.payment_method != "COD":
        raise PaymentStateError("Not a COD payment")
      if payment.is_commission_settled:
        raise PaymentStateError("Commission already settled")

      collection = CommissionCollection(
        booking_id=booking_id,
        provider_id=provider_id,
        commission_amount=payment.commission_amount,
        collection_method=collection_method,
        status="pending",
        due_date=now + datetime.timedelta(days=COMMISSION_DUE_DAYS),
      )
      session.add(collection)
      await session.commit()
      outcome = CommissionOutcome(commission_id=collection.id, booking_id=booking_id, commission_amount=collection.commission_amount, status=collection.status, due_date=collection.due_date)

    logger.info("Commission collection opened commission_id=%s booking_id=%s", outcome.commission_id, booking_id)
    await self._notify(
      NotificationCreate(
        type=NotificationType.PAYMENT,
        title="Commission Due",
        message=f"Platform commission of {format_rupees(outcome.commission_amount)} is due by {outcome.due_date:%d %b %Y}.",
        user_id=provider_id,
        user_type=UserType.PROVIDER,
        priority=NotificationPriority.HIGH,
        related_id=booking_id,
        related_type="booking",
        metadata={"commissionId": outcome.commission_id},
      )
    )
    return outcome

  async def verify_commission_payment(self, *, commission_id: str, razorpay_payment_id: str, razorpay_order_id: str, razorpay_signature: str) -> CommissionOutcome:
    """Complete a commission collection paid through Razorpay and settle its payment."""
    self._verify_signature(order_id=razorpay_order_id, payment_id=razorpay_payment_id, signature=razorpay_signature)

    now = utcnow()
    async with self._session_factory() as session:
      collection = await session.get(CommissionCollection, commission_id)
      if collection is None:
        raise RecordNotFoundError("Commission record not found")
      if collection.status != "pending":
        raise PaymentStateError(f"Commission collection is already {collection.status}")

      collection.status = "completed"
      collection.razorpay_payment_id = razorpay_payment_id
      collection.paid_at = now

      # Settling the collection settles the commission owed on the booking's latest payment.
      stmt = select(Payment).where(Payment.booking_id == collection.booking_id).order_by(Payment.created_at.desc()).limit(1)
      payment = (await session.execute(stmt)).scalar_one_or_none()
      if payment is not None:
        payment.is_commission_settled = True

      await session.commit()
      outcome = CommissionOutcome(commission_id=collection.id, booking_id=collection.booking_id, commission_amount=collection.commission_amount, status=collection.status, due_date=collection.due_date)
      provider_id = collection.provider_id

    logger.info("Commission payment verified commission_id=%s", commission_id)
    await self._notify(
      NotificationCreate(
        type=NotificationType.PAYMENT,
        title="Commission Paid",
        message=f"We received your commission payment of {format_rupees(outcome.commission_amount)}. Thank you!",
        user_id=provider_id,
        user_type=UserType.PROVIDER,
        related_id=outcome.booking_id,
        related_type="booking",
        metadata={"commissionId": outcome.commission_id},
      )
    )
    return outcome

  async def _notify(self, fields: NotificationCreate) -> None:
    result = await self._writer.create_notification(fields)
    if not result.success:
      logger.error("Payment notification failed user_type=%s user_id=%s error=%s", fields.user_type, fields.user_id, result.error)
