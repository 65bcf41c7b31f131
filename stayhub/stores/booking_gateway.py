"""SQLAlchemy-backed booking gateway."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from stayhub.core.exceptions import NotFoundError
from stayhub.models.booking import Booking
from stayhub.models.user import User
from stayhub.stores.base import BookingGateway, BookingRecord
from stayhub.stores.transaction_store import as_utc

logger = logging.getLogger(__name__)


class SqlAlchemyBookingGateway(BookingGateway):
    """Booking access over a request-scoped ``AsyncSession``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, booking_id: int) -> BookingRecord | None:
        booking = await self.db.get(Booking, booking_id, populate_existing=True)
        if not booking:
            return None

        return BookingRecord(
            id=booking.id,
            user_id=booking.user_id,
            status=booking.status,
            check_in_date=booking.check_in_date,
            total_price=booking.total_price,
            final_total=booking.final_total,
            currency=booking.currency,
            paid_at=as_utc(booking.paid_at),
            approved_at=as_utc(booking.approved_at),
        )

    async def user_exists(self, user_id: int | None) -> bool:
        if user_id is None:
            return False
        return await self.db.get(User, user_id) is not None

    async def mark_approved(
        self,
        booking_id: int,
        at: datetime,
        payment_summary: dict[str, Any],
    ) -> None:
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .values(
                status="approved",
                paid_at=as_utc(at),
                approved_at=as_utc(at),
                payment_data=payment_summary,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError("Booking", str(booking_id))

        logger.info(f"Booking {booking_id} approved after payment")
