"""API dependencies for the payment endpoints."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stayhub.config import Settings, get_settings
from stayhub.database import get_db
from stayhub.services.payme_service import PaymeService
from stayhub.services.payment_status_service import PaymentStatusService
from stayhub.stores import SqlAlchemyBookingGateway, SqlAlchemyTransactionStore


async def get_payme_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PaymeService:
    """Build a webhook service bound to the request's database session."""
    return PaymeService(
        SqlAlchemyTransactionStore(db),
        SqlAlchemyBookingGateway(db),
        settings,
    )


async def get_payment_status_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PaymentStatusService:
    return PaymentStatusService(
        SqlAlchemyTransactionStore(db),
        SqlAlchemyBookingGateway(db),
    )
