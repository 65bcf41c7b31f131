"""Read-only views of a booking's Payme payment."""

import logging
from typing import Any

from stayhub.core.exceptions import NotFoundError
from stayhub.domain.normalizers import to_minor_units
from stayhub.domain.transaction_state import TransactionState
from stayhub.services.payme_service import BOOKING_PAYABLE_STATUS
from stayhub.stores.base import PAYME_PROVIDER, BookingGateway, TransactionStore
from stayhub.utils.timestamps import to_millis

logger = logging.getLogger(__name__)


class PaymentStatusService:
    """Answers "can this booking be paid, and how far along is its payment"."""

    def __init__(self, transactions: TransactionStore, bookings: BookingGateway):
        self.transactions = transactions
        self.bookings = bookings

    async def get_payment_info(self, booking_id: int) -> dict[str, Any]:
        booking = await self.bookings.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking", str(booking_id))

        transaction = await self.transactions.find_live_transaction_for_booking(booking_id)
        return {
            "booking_id": booking.id,
            "amount": booking.price,
            "currency": booking.currency,
            "status": booking.status,
            "payment_provider": PAYME_PROVIDER,
            "has_existing_transaction": transaction is not None,
            "transaction_id": transaction.provider_transaction_id if transaction else None,
            "transaction_state": transaction.state.wire_value if transaction else None,
            "can_pay": booking.status == BOOKING_PAYABLE_STATUS and transaction is None,
        }

    async def check_payment_availability(self, booking_id: int) -> dict[str, Any]:
        booking = await self.bookings.get_by_id(booking_id)
        if not booking:
            return {"available": False, "reason": "Booking not found"}

        if not await self.bookings.user_exists(booking.user_id):
            return {"available": False, "reason": "User not found"}

        if booking.status != BOOKING_PAYABLE_STATUS:
            return {
                "available": False,
                "reason": (
                    f"Booking must be in '{BOOKING_PAYABLE_STATUS}' status. "
                    f"Current status: {booking.status}"
                ),
            }

        transaction = await self.transactions.find_live_transaction_for_booking(booking_id)
        if transaction and transaction.state is TransactionState.PAID:
            return {"available": False, "reason": "Booking already paid"}

        if booking.price <= 0:
            return {"available": False, "reason": "Invalid amount"}

        return {
            "available": True,
            "booking_id": booking.id,
            "amount": booking.price,
            "amount_minor": to_minor_units(booking.price),
            "currency": booking.currency,
            "user_id": booking.user_id,
        }

    async def get_detailed_payment_status(self, booking_id: int) -> dict[str, Any]:
        booking = await self.bookings.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking", str(booking_id))

        # Canceled payments are reported too, so look past live transactions
        transaction = await self.transactions.find_latest_transaction_for_booking(booking_id)
        if not transaction:
            return {
                "booking_id": booking.id,
                "status": "no_payment_transaction",
                "message": "No payment transaction created",
                "amount": booking.price,
            }

        return {
            "booking_id": booking.id,
            "transaction_id": transaction.provider_transaction_id,
            "status": transaction.state.value,
            "state": transaction.state.wire_value,
            "amount": transaction.amount,
            "currency": booking.currency,
            "create_time": to_millis(transaction.create_date),
            "perform_time": to_millis(transaction.perform_date),
            "cancel_time": to_millis(transaction.cancel_date),
            "reason": transaction.reason,
        }
