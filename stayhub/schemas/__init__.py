"""Pydantic schemas for request/response validation."""

from stayhub.schemas.payme import (
    PaymeRpcRequest,
    PaymentAvailabilityResponse,
    PaymentInfoResponse,
    PaymentStatusResponse,
)

__all__ = [
    "PaymeRpcRequest",
    "PaymentAvailabilityResponse",
    "PaymentInfoResponse",
    "PaymentStatusResponse",
]
