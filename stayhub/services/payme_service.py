"""Payme Merchant API webhook handlers.

Payme drives the payment through six JSON-RPC methods and may deliver any of
them more than once. Every handler here is written so that a repeated call
with the same provider transaction id returns the stored outcome instead of
repeating a side effect.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from stayhub.config import Settings
from stayhub.core.exceptions import (
    DuplicateTransactionError,
    LiveTransactionConflict,
    PaymeError,
    PaymeTransactionError,
    StaleTransactionState,
)
from stayhub.domain.expiration_policy import (
    is_creation_window_expired,
    is_payment_window_expired,
)
from stayhub.domain.normalizers import (
    BookingIdRejected,
    extract_account_booking_id,
    to_major_units,
    to_minor_units,
)
from stayhub.domain.transaction_state import TransactionState
from stayhub.stores.base import (
    PAYME_PROVIDER,
    BookingGateway,
    BookingRecord,
    NewTransaction,
    TransactionRecord,
    TransactionStore,
)
from stayhub.utils.timestamps import from_millis, to_millis, utc_now

logger = logging.getLogger(__name__)

# Account field reported back to Payme when the booking reference is unusable
BOOKING_ACCOUNT_FIELD = "booking_id"

DEFAULT_CANCEL_REASON = 1

BOOKING_PAYABLE_STATUS = "selected"

# Width of transactions.provider_transaction_id
MAX_TRANSACTION_ID_LENGTH = 64


class PaymeMethod:
    CHECK_PERFORM_TRANSACTION = "CheckPerformTransaction"
    CREATE_TRANSACTION = "CreateTransaction"
    CHECK_TRANSACTION = "CheckTransaction"
    PERFORM_TRANSACTION = "PerformTransaction"
    CANCEL_TRANSACTION = "CancelTransaction"
    GET_STATEMENT = "GetStatement"


class PaymeService:
    """State machine behind the Payme webhook endpoint."""

    def __init__(
        self,
        transactions: TransactionStore,
        bookings: BookingGateway,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.transactions = transactions
        self.bookings = bookings
        self.settings = settings
        self.clock = clock
        self._handlers: dict[str, Callable[[dict, Any], Awaitable[dict]]] = {
            PaymeMethod.CHECK_PERFORM_TRANSACTION: self.check_perform_transaction,
            PaymeMethod.CREATE_TRANSACTION: self.create_transaction,
            PaymeMethod.CHECK_TRANSACTION: self.check_transaction,
            PaymeMethod.PERFORM_TRANSACTION: self.perform_transaction,
            PaymeMethod.CANCEL_TRANSACTION: self.cancel_transaction,
            PaymeMethod.GET_STATEMENT: self.get_statement,
        }

    @property
    def methods(self) -> set[str]:
        return set(self._handlers)

    async def dispatch(self, method: str, params: dict, request_id: Any) -> dict:
        """Route a JSON-RPC call to its handler and return the ``result`` object."""
        handler = self._handlers.get(method)
        if handler is None:
            raise PaymeTransactionError(PaymeError.METHOD_NOT_FOUND, request_id, method)

        logger.info(f"Payme {method} (request {request_id}, transaction {params.get('id')})")
        return await handler(params, request_id)

    # ==================== HANDLERS ====================

    async def check_perform_transaction(self, params: dict, request_id: Any) -> dict:
        """Read-only check that the booking can be paid with the given amount."""
        booking = await self._get_booking_context(params.get("account"), request_id)
        self._validate_amount(params.get("amount"), booking, request_id)
        return {"allow": True}

    async def create_transaction(self, params: dict, request_id: Any) -> dict:
        """Create a pending transaction, or replay the stored one for a known id."""
        provider_transaction_id = self._require_transaction_id(params, request_id)
        account = params.get("account")

        parsed = extract_account_booking_id(account)
        if isinstance(parsed, BookingIdRejected):
            logger.warning(f"CreateTransaction rejected account {account!r}: {parsed.reason}")
            raise PaymeTransactionError(
                PaymeError.BOOKING_NOT_FOUND, request_id, BOOKING_ACCOUNT_FIELD
            )
        booking_id = parsed.booking_id
        now = self._now()

        await self._release_competing_transaction(
            booking_id, provider_transaction_id, now, request_id
        )

        existing = await self.transactions.find_by_provider_transaction_id(
            provider_transaction_id
        )
        if existing:
            return await self._replay_create(existing, now, request_id)

        booking = await self._load_booking(booking_id, request_id)
        self._validate_amount(params.get("amount"), booking, request_id)

        # Payme has no dedicated code for a booking in the wrong status
        if booking.status != BOOKING_PAYABLE_STATUS:
            logger.warning(
                f"CreateTransaction for booking {booking_id} in status {booking.status}"
            )
            raise PaymeTransactionError(
                PaymeError.BOOKING_NOT_FOUND, request_id, BOOKING_ACCOUNT_FIELD
            )

        if is_payment_window_expired(booking.check_in_date, now, self.settings.payme_timezone):
            raise PaymeTransactionError(PaymeError.TRANSACTION_NOT_FOUND, request_id)

        # Another transaction may have been created since the first check
        await self._release_competing_transaction(
            booking_id, provider_transaction_id, now, request_id, booking
        )

        try:
            record = await self.transactions.create(
                NewTransaction(
                    provider_transaction_id=provider_transaction_id,
                    booking_id=booking.id,
                    user_id=booking.user_id,
                    amount=to_major_units(params["amount"]),
                    create_date=now,
                    provider_data={
                        "amount_minor": params["amount"],
                        "account": account,
                        "time": params.get("time"),
                    },
                )
            )
        except DuplicateTransactionError:
            existing = await self.transactions.find_by_provider_transaction_id(
                provider_transaction_id
            )
            return await self._replay_create(existing, now, request_id)
        except LiveTransactionConflict:
            raise PaymeTransactionError(PaymeError.PENDING, request_id, BOOKING_ACCOUNT_FIELD)

        return self._create_result(record)

    async def check_transaction(self, params: dict, request_id: Any) -> dict:
        record = await self._find_transaction(params, request_id)
        return {
            "create_time": to_millis(record.create_date),
            "perform_time": to_millis(record.perform_date),
            "cancel_time": to_millis(record.cancel_date),
            "transaction": record.provider_transaction_id,
            "state": record.state.wire_value,
            "reason": record.reason,
        }

    async def perform_transaction(self, params: dict, request_id: Any) -> dict:
        """Confirm a pending transaction and approve its booking."""
        record = await self._find_transaction(params, request_id)

        if record.state is TransactionState.PAID:
            return self._perform_result(record)

        if record.state is not TransactionState.PENDING:
            raise PaymeTransactionError(PaymeError.CANT_DO_OPERATION, request_id)

        now = self._now()
        if is_creation_window_expired(
            record.create_date, now, self.settings.payme_transaction_timeout_minutes
        ):
            await self._cancel_expired(record, now)
            raise PaymeTransactionError(PaymeError.CANT_DO_OPERATION, request_id)

        try:
            paid = await self.transactions.transition(
                record.provider_transaction_id,
                TransactionState.PAID,
                now,
                audit_patch={"perform_time": to_millis(now)},
            )
        except StaleTransactionState:
            current = await self.transactions.find_by_provider_transaction_id(
                record.provider_transaction_id
            )
            if current and current.state is TransactionState.PAID:
                return self._perform_result(current)
            raise PaymeTransactionError(PaymeError.CANT_DO_OPERATION, request_id)

        await self.bookings.mark_approved(
            paid.booking_id,
            now,
            {
                "provider": PAYME_PROVIDER,
                "provider_transaction_id": paid.provider_transaction_id,
                "amount": paid.amount,
                "amount_minor": to_minor_units(paid.amount),
                "perform_time": to_millis(now),
            },
        )
        return self._perform_result(paid)

    async def cancel_transaction(self, params: dict, request_id: Any) -> dict:
        record = await self._find_transaction(params, request_id)

        if record.state.is_canceled:
            return self._cancel_result(record)

        reason = params.get("reason")
        if not isinstance(reason, int) or isinstance(reason, bool):
            reason = DEFAULT_CANCEL_REASON

        try:
            canceled = await self.transactions.transition(
                record.provider_transaction_id,
                record.state.canceled(),
                self._now(),
                audit_patch={"cancel_reason": reason},
                reason=reason,
            )
        except StaleTransactionState:
            current = await self.transactions.find_by_provider_transaction_id(
                record.provider_transaction_id
            )
            if current and current.state.is_canceled:
                return self._cancel_result(current)
            raise PaymeTransactionError(PaymeError.CANT_DO_OPERATION, request_id)

        return self._cancel_result(canceled)

    async def get_statement(self, params: dict, request_id: Any) -> dict:
        start, end = params.get("from"), params.get("to")
        for value in (start, end):
            if not isinstance(value, int) or isinstance(value, bool):
                raise PaymeTransactionError(PaymeError.INVALID_REQUEST, request_id, "from/to")

        records = await self.transactions.list_by_create_date(
            from_millis(start), from_millis(end)
        )
        return {"transactions": [self._statement_entry(record) for record in records]}

    # ==================== EXPIRATION SWEEP ====================

    async def cancel_expired_pending(self) -> int:
        """Cancel every pending transaction whose payment window has lapsed.

        Returns:
            Number of transactions canceled
        """
        now = self._now()
        canceled = 0
        for record in await self.transactions.list_pending():
            booking = await self.bookings.get_by_id(record.booking_id)
            if not self._is_pending_expired(record, booking, now):
                continue
            result = await self._cancel_expired(record, now)
            if result and result.state is TransactionState.PENDING_CANCELED:
                canceled += 1
        return canceled

    # ==================== HELPERS ====================

    def _now(self) -> datetime:
        now = self.clock()
        return now.replace(microsecond=now.microsecond // 1000 * 1000)

    def _require_transaction_id(self, params: dict, request_id: Any) -> str:
        provider_transaction_id = params.get("id")
        if isinstance(provider_transaction_id, int) and not isinstance(provider_transaction_id, bool):
            provider_transaction_id = str(provider_transaction_id)
        if (
            not isinstance(provider_transaction_id, str)
            or not provider_transaction_id
            or len(provider_transaction_id) > MAX_TRANSACTION_ID_LENGTH
        ):
            raise PaymeTransactionError(PaymeError.INVALID_REQUEST, request_id, "id")
        return provider_transaction_id

    async def _find_transaction(self, params: dict, request_id: Any) -> TransactionRecord:
        provider_transaction_id = self._require_transaction_id(params, request_id)
        record = await self.transactions.find_by_provider_transaction_id(provider_transaction_id)
        if not record:
            raise PaymeTransactionError(PaymeError.TRANSACTION_NOT_FOUND, request_id)
        return record

    async def _get_booking_context(self, account: Any, request_id: Any) -> BookingRecord:
        parsed = extract_account_booking_id(account)
        if isinstance(parsed, BookingIdRejected):
            logger.warning(f"Rejected Payme account {account!r}: {parsed.reason}")
            raise PaymeTransactionError(
                PaymeError.BOOKING_NOT_FOUND, request_id, BOOKING_ACCOUNT_FIELD
            )
        return await self._load_booking(parsed.booking_id, request_id)

    async def _load_booking(self, booking_id: int, request_id: Any) -> BookingRecord:
        booking = await self.bookings.get_by_id(booking_id)
        if not booking:
            raise PaymeTransactionError(
                PaymeError.BOOKING_NOT_FOUND, request_id, BOOKING_ACCOUNT_FIELD
            )

        if not await self.bookings.user_exists(booking.user_id):
            raise PaymeTransactionError(PaymeError.USER_NOT_FOUND, request_id)

        return booking

    def _validate_amount(self, amount: Any, booking: BookingRecord, request_id: Any) -> None:
        if not isinstance(amount, (int, float)) or isinstance(amount, bool):
            raise PaymeTransactionError(PaymeError.INVALID_AMOUNT, request_id, "amount")

        expected = to_minor_units(booking.price)
        if amount != expected:
            logger.warning(
                f"Amount mismatch for booking {booking.id}: got {amount}, expected {expected}"
            )
            raise PaymeTransactionError(PaymeError.INVALID_AMOUNT, request_id, "amount")

    def _is_pending_expired(
        self,
        record: TransactionRecord,
        booking: BookingRecord | None,
        now: datetime,
    ) -> bool:
        if is_creation_window_expired(
            record.create_date, now, self.settings.payme_transaction_timeout_minutes
        ):
            return True
        if booking is not None and is_payment_window_expired(
            booking.check_in_date, now, self.settings.payme_timezone
        ):
            return True
        return False

    async def _cancel_expired(
        self,
        record: TransactionRecord,
        now: datetime,
    ) -> TransactionRecord | None:
        """Cancel a lapsed pending transaction, returning its current state."""
        reason = self.settings.payme_cancel_reason_expired
        try:
            return await self.transactions.transition(
                record.provider_transaction_id,
                TransactionState.PENDING_CANCELED,
                now,
                audit_patch={"cancel_reason": reason, "canceled_by": "expiration"},
                reason=reason,
            )
        except StaleTransactionState:
            logger.info(
                f"Transaction {record.provider_transaction_id} changed before expiry cancel"
            )
            return await self.transactions.find_by_provider_transaction_id(
                record.provider_transaction_id
            )

    async def _release_competing_transaction(
        self,
        booking_id: int,
        provider_transaction_id: str,
        now: datetime,
        request_id: Any,
        booking: BookingRecord | None = None,
    ) -> None:
        """Make room for a new transaction on the booking or refuse the call.

        A paid booking can never take another payment. A pending one blocks
        new transactions until its window lapses, at which point it is
        canceled.
        """
        live = await self.transactions.find_live_transaction_for_booking(booking_id)
        if live is None or live.provider_transaction_id == provider_transaction_id:
            return

        if live.state is TransactionState.PAID:
            raise PaymeTransactionError(PaymeError.CANT_DO_OPERATION, request_id)

        if booking is None:
            booking = await self.bookings.get_by_id(booking_id)

        if not self._is_pending_expired(live, booking, now):
            raise PaymeTransactionError(PaymeError.PENDING, request_id, BOOKING_ACCOUNT_FIELD)

        current = await self._cancel_expired(live, now)
        if current and current.state is TransactionState.PAID:
            raise PaymeTransactionError(PaymeError.CANT_DO_OPERATION, request_id)
        if current and current.state is TransactionState.PENDING:
            raise PaymeTransactionError(PaymeError.PENDING, request_id, BOOKING_ACCOUNT_FIELD)

    async def _replay_create(
        self,
        existing: TransactionRecord,
        now: datetime,
        request_id: Any,
    ) -> dict:
        booking = await self.bookings.get_by_id(existing.booking_id)
        if not booking:
            raise PaymeTransactionError(
                PaymeError.BOOKING_NOT_FOUND, request_id, BOOKING_ACCOUNT_FIELD
            )

        if existing.state is TransactionState.PENDING and self._is_pending_expired(
            existing, booking, now
        ):
            await self._cancel_expired(existing, now)
            raise PaymeTransactionError(PaymeError.CANT_DO_OPERATION, request_id)

        return self._create_result(existing)

    @staticmethod
    def _create_result(record: TransactionRecord) -> dict:
        return {
            "create_time": to_millis(record.create_date),
            "transaction": record.provider_transaction_id,
            "state": record.state.wire_value,
        }

    @staticmethod
    def _perform_result(record: TransactionRecord) -> dict:
        return {
            "perform_time": to_millis(record.perform_date),
            "transaction": record.provider_transaction_id,
            "state": record.state.wire_value,
        }

    @staticmethod
    def _cancel_result(record: TransactionRecord) -> dict:
        return {
            "cancel_time": to_millis(record.cancel_date),
            "transaction": record.provider_transaction_id,
            "state": record.state.wire_value,
        }

    @staticmethod
    def _statement_entry(record: TransactionRecord) -> dict:
        account = record.provider_data.get("account") or {
            BOOKING_ACCOUNT_FIELD: record.booking_id
        }
        return {
            "id": record.provider_transaction_id,
            "time": record.provider_data.get("time") or to_millis(record.create_date),
            "amount": to_minor_units(record.amount),
            "account": account,
            "create_time": to_millis(record.create_date),
            "perform_time": to_millis(record.perform_date),
            "cancel_time": to_millis(record.cancel_date),
            "transaction": record.provider_transaction_id,
            "state": record.state.wire_value,
            "reason": record.reason,
        }
