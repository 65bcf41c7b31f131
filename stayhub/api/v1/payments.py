"""Payment status endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from stayhub.api.deps import get_payment_status_service
from stayhub.domain.normalizers import MAX_BOOKING_ID
from stayhub.schemas.payme import (
    PaymentAvailabilityResponse,
    PaymentInfoResponse,
    PaymentStatusResponse,
)
from stayhub.services.payment_status_service import PaymentStatusService

router = APIRouter()

BookingIdPath = Annotated[int, Path(gt=0, le=MAX_BOOKING_ID)]


@router.get("/payme/bookings/{booking_id}", response_model=PaymentInfoResponse)
async def get_payment_info(
    booking_id: BookingIdPath,
    service: Annotated[PaymentStatusService, Depends(get_payment_status_service)],
) -> dict:
    """Get Payme payment summary for a booking."""
    return await service.get_payment_info(booking_id)


@router.get(
    "/payme/bookings/{booking_id}/availability",
    response_model=PaymentAvailabilityResponse,
)
async def check_payment_availability(
    booking_id: BookingIdPath,
    service: Annotated[PaymentStatusService, Depends(get_payment_status_service)],
) -> dict:
    """Check whether a booking can currently be paid through Payme."""
    return await service.check_payment_availability(booking_id)


@router.get("/payme/bookings/{booking_id}/status", response_model=PaymentStatusResponse)
async def get_payment_status(
    booking_id: BookingIdPath,
    service: Annotated[PaymentStatusService, Depends(get_payment_status_service)],
) -> dict:
    """Get the detailed state of a booking's Payme transaction."""
    return await service.get_detailed_payment_status(booking_id)
