"""Shared test fixtures."""

import os

os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PAYME_SWEEP_INTERVAL_SECONDS", "0")

from datetime import UTC, date, datetime

import pytest

from stayhub.config import Settings
from stayhub.services.payme_service import PaymeService
from stayhub.stores.base import BookingRecord
from tests.fakes import FakeClock, InMemoryBookingGateway, InMemoryTransactionStore

TEST_KEY = "test-merchant-key"
PROD_KEY = "prod-merchant-key"

# 15:00 in Tashkent
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)

BOOKING_ID = 125
BOOKING_PRICE = 1000
BOOKING_AMOUNT_MINOR = 100000


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="development",
        payme_test_key=TEST_KEY,
        payme_secret_key=PROD_KEY,
        payme_timezone="Asia/Tashkent",
        payme_transaction_timeout_minutes=12,
        payme_sweep_interval_seconds=0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def transactions() -> InMemoryTransactionStore:
    return InMemoryTransactionStore()


@pytest.fixture
def bookings() -> InMemoryBookingGateway:
    gateway = InMemoryBookingGateway()
    gateway.add(
        BookingRecord(
            id=BOOKING_ID,
            user_id=7,
            status="selected",
            check_in_date=date(2026, 10, 20),
            total_price=BOOKING_PRICE,
        )
    )
    return gateway


@pytest.fixture
def service(transactions, bookings, settings, clock) -> PaymeService:
    return PaymeService(transactions, bookings, settings, clock=clock)
