"""Payme-related Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, Field


class PaymeRpcRequest(BaseModel):
    """JSON-RPC envelope Payme posts to the webhook."""

    method: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    id: Any = None


class PaymentInfoResponse(BaseModel):
    """Schema for a booking's Payme payment summary."""

    booking_id: int
    amount: int
    currency: str
    status: str
    payment_provider: str
    has_existing_transaction: bool
    transaction_id: str | None = None
    cancel_time: int | None = None
    reason: int | None = None
    transaction_state: int | None = None
    can_pay: bool


class PaymentAvailabilityResponse(BaseModel):
    """Schema for payment availability check."""

    available: bool
    reason: str | None = None
    booking_id: int | None = None
    amount: int | None = None
    amount_minor: int | None = None
    currency: str | None = None
    user_id: int | None = None


class PaymentStatusResponse(BaseModel):
    """Schema for detailed payment status."""

    booking_id: int
    status: str
    message: str | None = None
    transaction_id: str | None = None
    state: int | None = None
    amount: int | None = None
    currency: str | None = None
    create_time: int | None = None
    perform_time: int | None = None
    cancel_time: int | None = None
    reason: int | None = None
