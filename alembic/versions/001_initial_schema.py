"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2025-08-29

Creates the tables the payment webhook works against:
- Users
- Bookings
- Provider transactions, with one live transaction per booking
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== USERS ====================
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(20), unique=True, index=True),
        sa.Column("is_active", sa.Boolean, default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), index=True),
        sa.Column("check_in_date", sa.Date, nullable=False, index=True),
        sa.Column("check_out_date", sa.Date, nullable=False),
        sa.Column("total_price", sa.Integer, nullable=False),
        sa.Column("final_total", sa.Integer),
        sa.Column("currency", sa.String(3), default="UZS"),
        sa.Column("status", sa.String(20), default="pending", index=True),
        sa.Column("payment_data", postgresql.JSONB),
        sa.Column("selected_at", sa.DateTime(timezone=True)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== TRANSACTIONS ====================
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("provider_transaction_id", sa.String(64), nullable=False),
        sa.Column("booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id")),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("state", sa.Integer, nullable=False),
        sa.Column("reason", sa.Integer),
        sa.Column("create_date", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("perform_date", sa.DateTime(timezone=True)),
        sa.Column("cancel_date", sa.DateTime(timezone=True)),
        sa.Column("provider_data", postgresql.JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("provider", "provider_transaction_id", name="uq_transactions_provider_tid"),
    )
    op.create_index(
        "uq_transactions_live_booking",
        "transactions",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("state > 0"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("uq_transactions_live_booking", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("bookings")
    op.drop_table("users")
