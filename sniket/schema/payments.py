"""SQLAlchemy models for bookings and the payment records hanging off them."""

from __future__ import annotations

import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from sniket.core.database import Base
from sniket.utils.ids import new_id, utcnow


class Booking(Base):
  """A repair booking; only its status fields are mutated here."""

  __tablename__ = "bookings"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  customer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
  provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
  total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
  status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
  payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class Payment(Base):
  """One payment attempt for a booking, online or cash on delivery."""

  __tablename__ = "payments"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
  amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
  status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
  payment_method: Mapped[str] = mapped_column(String(16), nullable=False)
  transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
  commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
  provider_payout: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
  is_commission_settled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  razorpay_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
  razorpay_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class CommissionCollection(Base):
  """Platform commission a provider owes on a cash-on-delivery booking."""

  __tablename__ = "commission_collections"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
  provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
  commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
  collection_method: Mapped[str] = mapped_column(String(16), nullable=False, default="upi")
  status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
  due_date: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  razorpay_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
  paid_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
