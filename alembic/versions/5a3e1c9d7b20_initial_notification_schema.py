"""Initial notification, push token, chat session and payment tables.

Revision ID: 5a3e1c9d7b20
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "5a3e1c9d7b20"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "push_tokens",
    sa.Column("id", sa.String(length=36), nullable=False),
    sa.Column("token", sa.Text(), nullable=False),
    sa.Column("user_id", sa.String(length=64), nullable=False),
    sa.Column("user_type", sa.String(length=16), nullable=False),
    sa.Column("device_id", sa.String(length=128), nullable=True),
    sa.Column("device_info", sa.JSON(), nullable=False),
    sa.Column("is_active", sa.Boolean(), nullable=False),
    sa.Column("deactivation_reason", sa.String(length=32), nullable=True),
    sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index("ux_push_tokens_user_token", "push_tokens", ["user_id", "user_type", "token"], unique=True)
  op.create_index("ix_push_tokens_user_active", "push_tokens", ["user_id", "user_type", "is_active"], unique=False)
  op.create_index(op.f("ix_push_tokens_token"), "push_tokens", ["token"], unique=False)

  op.create_table(
    "notifications",
    sa.Column("id", sa.String(length=36), nullable=False),
    sa.Column("type", sa.String(length=16), nullable=False),
    sa.Column("category", sa.String(length=16), nullable=False),
    sa.Column("priority", sa.String(length=16), nullable=False),
    sa.Column("title", sa.String(length=255), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    sa.Column("user_id", sa.String(length=64), nullable=False),
    sa.Column("user_type", sa.String(length=16), nullable=False),
    sa.Column("related_id", sa.String(length=64), nullable=True),
    sa.Column("related_type", sa.String(length=32), nullable=True),
    sa.Column("sender_id", sa.String(length=64), nullable=True),
    sa.Column("sender_name", sa.String(length=255), nullable=True),
    sa.Column("message_preview", sa.Text(), nullable=True),
    sa.Column("metadata", sa.JSON(), nullable=False),
    sa.Column("read", sa.Boolean(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index("ix_notifications_recipient", "notifications", ["user_id", "user_type", "created_at"], unique=False)

  op.create_table(
    "chat_sessions",
    sa.Column("user_id", sa.String(length=64), nullable=False),
    sa.Column("conversation_id", sa.String(length=64), nullable=True),
    sa.Column("is_active", sa.Boolean(), nullable=False),
    sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint("user_id"),
  )

  op.create_table(
    "bookings",
    sa.Column("id", sa.String(length=36), nullable=False),
    sa.Column("customer_id", sa.String(length=64), nullable=False),
    sa.Column("provider_id", sa.String(length=64), nullable=False),
    sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("status", sa.String(length=16), nullable=False),
    sa.Column("payment_status", sa.String(length=16), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_bookings_customer_id"), "bookings", ["customer_id"], unique=False)
  op.create_index(op.f("ix_bookings_provider_id"), "bookings", ["provider_id"], unique=False)

  op.create_table(
    "payments",
    sa.Column("id", sa.String(length=36), nullable=False),
    sa.Column("booking_id", sa.String(length=36), nullable=False),
    sa.Column("amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("status", sa.String(length=16), nullable=False),
    sa.Column("payment_method", sa.String(length=16), nullable=False),
    sa.Column("transaction_id", sa.String(length=64), nullable=True),
    sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("provider_payout", sa.Numeric(12, 2), nullable=False),
    sa.Column("is_commission_settled", sa.Boolean(), nullable=False),
    sa.Column("razorpay_payment_id", sa.String(length=64), nullable=True),
    sa.Column("razorpay_order_id", sa.String(length=64), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"]),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_payments_booking_id"), "payments", ["booking_id"], unique=False)

  op.create_table(
    "commission_collections",
    sa.Column("id", sa.String(length=36), nullable=False),
    sa.Column("booking_id", sa.String(length=36), nullable=False),
    sa.Column("provider_id", sa.String(length=64), nullable=False),
    sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("collection_method", sa.String(length=16), nullable=False),
    sa.Column("status", sa.String(length=16), nullable=False),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
    sa.Column("razorpay_payment_id", sa.String(length=64), nullable=True),
    sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"]),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_commission_collections_booking_id"), "commission_collections", ["booking_id"], unique=False)
  op.create_index(op.f("ix_commission_collections_provider_id"), "commission_collections", ["provider_id"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index(op.f("ix_commission_collections_provider_id"), table_name="commission_collections")
  op.drop_index(op.f("ix_commission_collections_booking_id"), table_name="commission_collections")
  op.drop_table("commission_collections")
  op.drop_index(op.f("ix_payments_booking_id"), table_name="payments")
  op.drop_table("payments")
  op.drop_index(op.f("ix_bookings_provider_id"), table_name="bookings")
  op.drop_index(op.f("ix_bookings_customer_id"), table_name="bookings")
  op.drop_table("bookings")
  op.drop_table("chat_sessions")
  op.drop_index("ix_notifications_recipient", table_name="notifications")
  op.drop_table("notifications")
  op.drop_index(op.f("ix_push_tokens_token"), table_name="push_tokens")
  op.drop_index("ix_push_tokens_user_active", table_name="push_tokens")
  op.drop_index("ux_push_tokens_user_token", table_name="push_tokens")
  op.drop_table("push_tokens")
