"""Background task that cancels lapsed pending Payme transactions."""

import asyncio
import logging

from stayhub.config import settings
from stayhub.database import async_session_maker
from stayhub.services.payme_service import PaymeService
from stayhub.stores import SqlAlchemyBookingGateway, SqlAlchemyTransactionStore

logger = logging.getLogger(__name__)

# Flag to stop the background task
_stop_sweeper = False


async def run_expired_transaction_sweep() -> int:
    """Cancel expired pending transactions in one committed unit of work."""
    async with async_session_maker() as db:
        service = PaymeService(
            SqlAlchemyTransactionStore(db),
            SqlAlchemyBookingGateway(db),
            settings,
        )
        try:
            canceled = await service.cancel_expired_pending()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    if canceled:
        logger.info(f"Expired transaction sweep canceled {canceled} transaction(s)")
    return canceled


async def start_expired_transaction_sweeper(interval_seconds: int | None = None) -> None:
    """Run the sweep every ``interval_seconds`` until stopped."""
    global _stop_sweeper
    _stop_sweeper = False

    interval = interval_seconds or settings.payme_sweep_interval_seconds
    logger.info(f"Expired transaction sweeper started (every {interval}s)")

    while not _stop_sweeper:
        try:
            await run_expired_transaction_sweep()
        except Exception as e:
            logger.error(f"Expired transaction sweep failed: {e}")

        # Check stop flag every second
        for _ in range(interval):
            if _stop_sweeper:
                break
            await asyncio.sleep(1)

    logger.info("Expired transaction sweeper stopped")


def stop_expired_transaction_sweeper() -> None:
    """Signal the sweeper to stop."""
    global _stop_sweeper
    _stop_sweeper = True
