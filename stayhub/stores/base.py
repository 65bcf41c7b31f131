"""Storage interfaces for the Payme webhook.

The handlers only talk to these abstractions so that an in-memory
implementation can stand in for the database.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from stayhub.domain.transaction_state import TransactionState

PAYME_PROVIDER = "payme"


@dataclass(frozen=True)
class TransactionRecord:
    """Snapshot of a stored provider transaction."""

    id: int
    provider: str
    provider_transaction_id: str
    booking_id: int
    user_id: int | None
    amount: int
    state: TransactionState
    create_date: datetime
    perform_date: datetime | None = None
    cancel_date: datetime | None = None
    reason: int | None = None
    provider_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NewTransaction:
    """Fields needed to create a transaction."""

    provider_transaction_id: str
    booking_id: int
    user_id: int | None
    amount: int
    create_date: datetime
    provider_data: dict[str, Any] = field(default_factory=dict)
    provider: str = PAYME_PROVIDER


@dataclass(frozen=True)
class BookingRecord:
    """Snapshot of the booking fields the payment flow reads."""

    id: int
    user_id: int | None
    status: str
    check_in_date: date
    total_price: int
    final_total: int | None = None
    currency: str = "UZS"
    paid_at: datetime | None = None
    approved_at: datetime | None = None

    @property
    def price(self) -> int:
        """Payable amount in major units."""
        return self.final_total or self.total_price


class TransactionStore(ABC):
    """Persistence for provider transactions."""

    @abstractmethod
    async def find_by_provider_transaction_id(
        self,
        provider_transaction_id: str,
    ) -> TransactionRecord | None:
        """Look up a transaction by the provider-assigned id."""
        pass

    @abstractmethod
    async def find_live_transaction_for_booking(
        self,
        booking_id: int,
    ) -> TransactionRecord | None:
        """Return the most recent pending or paid transaction for a booking."""
        pass

    @abstractmethod
    async def find_latest_transaction_for_booking(
        self,
        booking_id: int,
    ) -> TransactionRecord | None:
        """Return the most recent transaction for a booking in any state."""
        pass

    @abstractmethod
    async def create(self, fields: NewTransaction) -> TransactionRecord:
        """Create a pending transaction.

        Raises:
            DuplicateTransactionError: If the provider id is already stored
            LiveTransactionConflict: If the booking already has a live transaction
        """
        pass

    @abstractmethod
    async def transition(
        self,
        provider_transaction_id: str,
        new_state: TransactionState,
        at: datetime,
        audit_patch: dict[str, Any] | None = None,
        reason: int | None = None,
    ) -> TransactionRecord:
        """Move a transaction to ``new_state`` and stamp the matching date.

        The update only applies when the stored state is the legal source of
        ``new_state``.

        Raises:
            StaleTransactionState: If the stored state changed concurrently
        """
        pass

    @abstractmethod
    async def list_by_create_date(
        self,
        start: datetime,
        end: datetime,
        provider: str = PAYME_PROVIDER,
    ) -> list[TransactionRecord]:
        """Transactions created within ``[start, end]``, oldest first."""
        pass

    @abstractmethod
    async def list_pending(self, provider: str = PAYME_PROVIDER) -> list[TransactionRecord]:
        """All transactions still waiting for confirmation."""
        pass


class BookingGateway(ABC):
    """Read/write access to bookings for the payment flow."""

    @abstractmethod
    async def get_by_id(self, booking_id: int) -> BookingRecord | None:
        pass

    @abstractmethod
    async def user_exists(self, user_id: int | None) -> bool:
        pass

    @abstractmethod
    async def mark_approved(
        self,
        booking_id: int,
        at: datetime,
        payment_summary: dict[str, Any],
    ) -> None:
        """Set status ``approved``, ``paid_at``, ``approved_at`` and the payment audit blob."""
        pass
