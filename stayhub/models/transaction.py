"""Payment provider transaction model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from stayhub.database import Base

if TYPE_CHECKING:
    from stayhub.models.booking import Booking


class Transaction(Base):
    """Provider-side payment transaction. Rows are never deleted."""

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_transaction_id", name="uq_transactions_provider_tid"
        ),
        # At most one pending or paid transaction per booking
        Index(
            "uq_transactions_live_booking",
            "booking_id",
            unique=True,
            postgresql_where=text("state > 0"),
            sqlite_where=text("state > 0"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(20), nullable=False, default="payme")
    provider_transaction_id: Mapped[str] = mapped_column(String(64), nullable=False)
    booking_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bookings.id"), nullable=False, index=True
    )
    user_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))

    # Major currency units
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    # Wire encoding: 1 pending, 2 paid, -1 pending canceled, -2 paid canceled
    state: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[int | None] = mapped_column(Integer)

    create_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    perform_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancel_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    provider_data: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="transactions")
