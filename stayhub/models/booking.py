"""Booking database model."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from stayhub.database import Base

if TYPE_CHECKING:
    from stayhub.models.transaction import Transaction
    from stayhub.models.user import User


class Booking(Base):
    """Booking model."""

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )

    # Dates
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Pricing (major currency units, UZS)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)
    final_total: Mapped[int | None] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3), default="UZS")

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default="pending", index=True
    )  # pending, selected, approved, rejected, cancelled

    # Payment audit
    payment_data: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))

    # Timestamps
    selected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    user: Mapped["User | None"] = relationship("User", back_populates="bookings")
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="booking"
    )

    @property
    def payable_amount(self) -> int:
        """Amount the guest owes, in major units."""
        return self.final_total or self.total_price
