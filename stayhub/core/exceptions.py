"""Custom application exceptions."""

from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


# ==================== PAYME ====================


class PaymeError(Enum):
    """Payme Merchant API error codes with their trilingual messages.

    Codes are fixed by the provider and must not be renumbered.
    """

    INVALID_AMOUNT = (
        -31001,
        "Noto'g'ri summa",
        "Недопустимая сумма",
        "Invalid amount",
    )
    USER_NOT_FOUND = (
        -31050,
        "Biz sizning hisobingizni topolmadik.",
        "Мы не нашли вашу учетную запись",
        "We couldn't find your account",
    )
    BOOKING_NOT_FOUND = (
        -31050,
        "Biz buyurtmani topolmadik.",
        "Мы не нашли заказ.",
        "We could not find the booking.",
    )
    PENDING = (
        -31050,
        "Buyurtma uchun to'lov kutilayapti",
        "Ожидается оплата заказа",
        "Payment for the booking is pending",
    )
    CANT_DO_OPERATION = (
        -31008,
        "Biz operatsiyani bajara olmaymiz",
        "Мы не можем сделать операцию",
        "We can't do operation",
    )
    TRANSACTION_NOT_FOUND = (
        -31003,
        "Tranzaktsiya topilmadi",
        "Транзакция не найдена",
        "Transaction not found",
    )
    ALREADY_DONE = (
        -31060,
        "Buyurtma uchun to'lov qilingan",
        "Заказ уже оплачен",
        "The booking is already paid",
    )
    INVALID_AUTHORIZATION = (
        -32504,
        "Avtorizatsiya yaroqsiz",
        "Авторизация недействительна",
        "Authorization invalid",
    )
    PARSE_ERROR = (
        -32700,
        "So'rovni o'qib bo'lmadi",
        "Ошибка разбора запроса",
        "Parse error",
    )
    INVALID_REQUEST = (
        -32600,
        "Noto'g'ri so'rov",
        "Неверный запрос",
        "Invalid request",
    )
    METHOD_NOT_FOUND = (
        -32601,
        "Metod topilmadi",
        "Метод не найден",
        "Method not found",
    )
    INTERNAL_ERROR = (
        -32000,
        "Ichki server xatosi",
        "Внутренняя ошибка сервера",
        "Internal server error",
    )

    @property
    def code(self) -> int:
        return self.value[0]

    @property
    def message(self) -> dict[str, str]:
        _, uz, ru, en = self.value
        return {"uz": uz, "ru": ru, "en": en}


class PaymeTransactionError(Exception):
    """Error reported back to Payme inside an HTTP 200 JSON-RPC envelope."""

    def __init__(self, error: PaymeError, request_id: Any = None, data: Any = None) -> None:
        self.error = error
        self.request_id = request_id
        self.data = data
        super().__init__(f"{error.name} ({error.code})")

    @property
    def code(self) -> int:
        return self.error.code

    def to_response(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.error.code,
                "message": self.error.message,
                "data": self.data,
            },
            "id": self.request_id,
            "result": None,
        }


# ==================== STORAGE ====================


class TransactionStoreError(Exception):
    """Base class for transaction persistence conflicts."""


class DuplicateTransactionError(TransactionStoreError):
    """A transaction with the same provider id already exists."""

    def __init__(self, provider_transaction_id: str) -> None:
        self.provider_transaction_id = provider_transaction_id
        super().__init__(f"Transaction {provider_transaction_id} already exists")


class LiveTransactionConflict(TransactionStoreError):
    """The booking already has a pending or paid transaction."""

    def __init__(self, booking_id: int) -> None:
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} already has a live transaction")


class StaleTransactionState(TransactionStoreError):
    """Compare-and-set transition lost a race with a concurrent update."""

    def __init__(self, provider_transaction_id: str, expected: str) -> None:
        self.provider_transaction_id = provider_transaction_id
        self.expected = expected
        super().__init__(
            f"Transaction {provider_transaction_id} is no longer in state {expected}"
        )
