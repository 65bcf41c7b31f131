"""Persistence adapters used by the payment services."""

from stayhub.stores.base import (
    BookingGateway,
    BookingRecord,
    NewTransaction,
    TransactionRecord,
    TransactionStore,
)
from stayhub.stores.booking_gateway import SqlAlchemyBookingGateway
from stayhub.stores.transaction_store import SqlAlchemyTransactionStore

__all__ = [
    "BookingGateway",
    "BookingRecord",
    "NewTransaction",
    "TransactionRecord",
    "TransactionStore",
    "SqlAlchemyBookingGateway",
    "SqlAlchemyTransactionStore",
]
