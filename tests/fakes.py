"""In-memory stand-ins for the payment stores."""

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from stayhub.core.exceptions import (
    DuplicateTransactionError,
    LiveTransactionConflict,
    StaleTransactionState,
)
from stayhub.domain.transaction_state import TransactionState, source_state_for
from stayhub.stores.base import (
    PAYME_PROVIDER,
    BookingGateway,
    BookingRecord,
    NewTransaction,
    TransactionRecord,
    TransactionStore,
)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemoryTransactionStore(TransactionStore):
    """Mirrors the database constraints of the SQLAlchemy store."""

    def __init__(self):
        self.rows: dict[str, TransactionRecord] = {}
        self._next_id = 1

    async def find_by_provider_transaction_id(self, provider_transaction_id):
        return self.rows.get(provider_transaction_id)

    def _latest(self, booking_id, live_only: bool):
        rows = [
            row for row in self.rows.values()
            if row.booking_id == booking_id and (row.state.is_live or not live_only)
        ]
        if not rows:
            return None
        return max(rows, key=lambda row: (row.create_date, row.id))

    async def find_live_transaction_for_booking(self, booking_id):
        return self._latest(booking_id, live_only=True)

    async def find_latest_transaction_for_booking(self, booking_id):
        return self._latest(booking_id, live_only=False)

    async def create(self, fields: NewTransaction) -> TransactionRecord:
        if fields.provider_transaction_id in self.rows:
            raise DuplicateTransactionError(fields.provider_transaction_id)
        if await self.find_live_transaction_for_booking(fields.booking_id):
            raise LiveTransactionConflict(fields.booking_id)

        record = TransactionRecord(
            id=self._next_id,
            provider=fields.provider,
            provider_transaction_id=fields.provider_transaction_id,
            booking_id=fields.booking_id,
            user_id=fields.user_id,
            amount=fields.amount,
            state=TransactionState.PENDING,
            create_date=fields.create_date,
            provider_data=dict(fields.provider_data),
        )
        self._next_id += 1
        self.rows[record.provider_transaction_id] = record
        return record

    async def transition(
        self,
        provider_transaction_id: str,
        new_state: TransactionState,
        at: datetime,
        audit_patch: dict[str, Any] | None = None,
        reason: int | None = None,
    ) -> TransactionRecord:
        source = source_state_for(new_state)
        row = self.rows.get(provider_transaction_id)
        if row is None or row.state is not source:
            raise StaleTransactionState(provider_transaction_id, source.value)

        changes: dict[str, Any] = {
            "state": new_state,
            "provider_data": {**row.provider_data, **(audit_patch or {})},
        }
        if new_state is TransactionState.PAID:
            changes["perform_date"] = at
        else:
            changes["cancel_date"] = at
        if reason is not None:
            changes["reason"] = reason

        updated = replace(row, **changes)
        self.rows[provider_transaction_id] = updated
        return updated

    async def list_by_create_date(self, start, end, provider=PAYME_PROVIDER):
        return sorted(
            (
                row for row in self.rows.values()
                if row.provider == provider and start <= row.create_date <= end
            ),
            key=lambda row: (row.create_date, row.id),
        )

    async def list_pending(self, provider=PAYME_PROVIDER):
        return [
            row for row in self.rows.values()
            if row.provider == provider and row.state is TransactionState.PENDING
        ]

    def for_booking(self, booking_id: int) -> list[TransactionRecord]:
        return [row for row in self.rows.values() if row.booking_id == booking_id]


class InMemoryBookingGateway(BookingGateway):
    def __init__(self):
        self.bookings: dict[int, BookingRecord] = {}
        self.users: set[int] = set()
        self.payment_data: dict[int, dict] = {}

    def add(self, booking: BookingRecord, with_user: bool = True) -> BookingRecord:
        self.bookings[booking.id] = booking
        if with_user and booking.user_id is not None:
            self.users.add(booking.user_id)
        return booking

    async def get_by_id(self, booking_id):
        return self.bookings.get(booking_id)

    async def user_exists(self, user_id):
        return user_id in self.users

    async def mark_approved(self, booking_id, at, payment_summary):
        booking = self.bookings[booking_id]
        self.bookings[booking_id] = replace(
            booking, status="approved", paid_at=at, approved_at=at
        )
        self.payment_data[booking_id] = payment_summary


class RacingTransactionStore(InMemoryTransactionStore):
    """Lets one concurrent write land between the service's read and its own write."""

    def __init__(self):
        super().__init__()
        self.concurrent_create: Callable[[NewTransaction], NewTransaction] | None = None
        self.concurrent_transition: tuple[TransactionState, datetime, int | None] | None = None

    async def create(self, fields: NewTransaction) -> TransactionRecord:
        if self.concurrent_create:
            make_rival, self.concurrent_create = self.concurrent_create, None
            await super().create(make_rival(fields))
        return await super().create(fields)

    async def transition(
        self,
        provider_transaction_id: str,
        new_state: TransactionState,
        at: datetime,
        audit_patch: dict[str, Any] | None = None,
        reason: int | None = None,
    ) -> TransactionRecord:
        if self.concurrent_transition:
            (rival_state, rival_at, rival_reason), self.concurrent_transition = (
                self.concurrent_transition,
                None,
            )
            await super().transition(
                provider_transaction_id, rival_state, rival_at, reason=rival_reason
            )
        return await super().transition(
            provider_transaction_id, new_state, at, audit_patch, reason
        )
