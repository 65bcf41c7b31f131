"""Core utilities and security modules."""

from stayhub.core.exceptions import (
    AppException,
    DuplicateTransactionError,
    LiveTransactionConflict,
    NotFoundError,
    PaymeError,
    PaymeTransactionError,
    StaleTransactionState,
    ValidationError,
)
from stayhub.core.security import verify_payme_authorization

__all__ = [
    "AppException",
    "DuplicateTransactionError",
    "LiveTransactionConflict",
    "NotFoundError",
    "PaymeError",
    "PaymeTransactionError",
    "StaleTransactionState",
    "ValidationError",
    "verify_payme_authorization",
]
