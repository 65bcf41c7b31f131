"""Database models."""

from stayhub.models.booking import Booking
from stayhub.models.transaction import Transaction
from stayhub.models.user import User

__all__ = [
    "User",
    "Booking",
    "Transaction",
]
