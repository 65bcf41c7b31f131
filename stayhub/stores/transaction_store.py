"""SQLAlchemy-backed transaction store."""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stayhub.core.exceptions import (
    DuplicateTransactionError,
    LiveTransactionConflict,
    StaleTransactionState,
)
from stayhub.domain.transaction_state import TransactionState, source_state_for
from stayhub.models.transaction import Transaction
from stayhub.stores.base import (
    PAYME_PROVIDER,
    NewTransaction,
    TransactionRecord,
    TransactionStore,
)

logger = logging.getLogger(__name__)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values read back from the database."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_record(row: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        provider=row.provider,
        provider_transaction_id=row.provider_transaction_id,
        booking_id=row.booking_id,
        user_id=row.user_id,
        amount=row.amount,
        state=TransactionState.from_wire(row.state),
        create_date=as_utc(row.create_date),
        perform_date=as_utc(row.perform_date),
        cancel_date=as_utc(row.cancel_date),
        reason=row.reason,
        provider_data=dict(row.provider_data or {}),
    )


class SqlAlchemyTransactionStore(TransactionStore):
    """Transaction store over a request-scoped ``AsyncSession``."""

    def __init__(self, db: AsyncSession, provider: str = PAYME_PROVIDER):
        self.db = db
        self.provider = provider

    async def _get_row(self, provider_transaction_id: str) -> Transaction | None:
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.provider == self.provider,
                Transaction.provider_transaction_id == provider_transaction_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_provider_transaction_id(
        self,
        provider_transaction_id: str,
    ) -> TransactionRecord | None:
        row = await self._get_row(provider_transaction_id)
        return to_record(row) if row else None

    async def _latest_for_booking(self, booking_id: int, *criteria) -> TransactionRecord | None:
        result = await self.db.execute(
            select(Transaction)
            .where(Transaction.booking_id == booking_id, *criteria)
            .order_by(Transaction.create_date.desc(), Transaction.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return to_record(row) if row else None

    async def find_live_transaction_for_booking(
        self,
        booking_id: int,
    ) -> TransactionRecord | None:
        return await self._latest_for_booking(booking_id, Transaction.state > 0)

    async def find_latest_transaction_for_booking(
        self,
        booking_id: int,
    ) -> TransactionRecord | None:
        return await self._latest_for_booking(booking_id)

    async def create(self, fields: NewTransaction) -> TransactionRecord:
        row = Transaction(
            provider=fields.provider,
            provider_transaction_id=fields.provider_transaction_id,
            booking_id=fields.booking_id,
            user_id=fields.user_id,
            amount=fields.amount,
            state=TransactionState.PENDING.wire_value,
            create_date=as_utc(fields.create_date),
            provider_data=dict(fields.provider_data),
        )

        # Savepoint keeps the outer request transaction usable after a conflict
        try:
            async with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            if await self._get_row(fields.provider_transaction_id) is not None:
                raise DuplicateTransactionError(fields.provider_transaction_id)
            raise LiveTransactionConflict(fields.booking_id)

        logger.info(
            f"Created {fields.provider} transaction {fields.provider_transaction_id} "
            f"for booking {fields.booking_id}"
        )
        return to_record(row)

    async def transition(
        self,
        provider_transaction_id: str,
        new_state: TransactionState,
        at: datetime,
        audit_patch: dict[str, Any] | None = None,
        reason: int | None = None,
    ) -> TransactionRecord:
        source = source_state_for(new_state)

        row = await self._get_row(provider_transaction_id)
        if row is None or row.state != source.wire_value:
            raise StaleTransactionState(provider_transaction_id, source.value)

        values: dict[str, Any] = {
            "state": new_state.wire_value,
            "provider_data": {**(row.provider_data or {}), **(audit_patch or {})},
        }
        if new_state is TransactionState.PAID:
            values["perform_date"] = as_utc(at)
        else:
            values["cancel_date"] = as_utc(at)
        if reason is not None:
            values["reason"] = reason

        result = await self.db.execute(
            update(Transaction)
            .where(
                Transaction.id == row.id,
                Transaction.state == source.wire_value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleTransactionState(provider_transaction_id, source.value)

        logger.info(
            f"Transaction {provider_transaction_id}: {source.value} → {new_state.value}"
        )

        updated = await self._get_row(provider_transaction_id)
        return to_record(updated)

    async def list_by_create_date(
        self,
        start: datetime,
        end: datetime,
        provider: str = PAYME_PROVIDER,
    ) -> list[TransactionRecord]:
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.provider == provider,
                Transaction.create_date >= as_utc(start),
                Transaction.create_date <= as_utc(end),
            )
            .order_by(Transaction.create_date.asc(), Transaction.id.asc())
        )
        return [to_record(row) for row in result.scalars().all()]

    async def list_pending(self, provider: str = PAYME_PROVIDER) -> list[TransactionRecord]:
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.provider == provider,
                Transaction.state == TransactionState.PENDING.wire_value,
            )
            .order_by(Transaction.create_date.asc())
        )
        return [to_record(row) for row in result.scalars().all()]
