"""Tests for the expired transaction sweeper."""

from datetime import date, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from stayhub.core import background_tasks
from stayhub.database import Base
from stayhub.models import Booking, Transaction, User
from stayhub.utils.timestamps import utc_now


@pytest.fixture
async def session_maker(tmp_path, monkeypatch):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sweep.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, expire_on_commit=False)
    monkeypatch.setattr(background_tasks, "async_session_maker", maker)
    yield maker
    await engine.dispose()


async def seed(maker, created_minutes_ago: int) -> None:
    async with maker() as db:
        db.add(User(id=1, name="Guest"))
        db.add(
            Booking(
                id=10,
                user_id=1,
                check_in_date=date.today() + timedelta(days=30),
                check_out_date=date.today() + timedelta(days=32),
                total_price=500,
                status="selected",
            )
        )
        db.add(
            Transaction(
                provider="payme",
                provider_transaction_id="T-sweep",
                booking_id=10,
                user_id=1,
                amount=500,
                state=1,
                create_date=utc_now() - timedelta(minutes=created_minutes_ago),
                provider_data={},
            )
        )
        await db.commit()


async def load_transaction(maker) -> Transaction:
    async with maker() as db:
        result = await db.execute(
            select(Transaction).where(Transaction.provider_transaction_id == "T-sweep")
        )
        return result.scalar_one()


async def test_sweep_cancels_transaction_past_confirmation_window(session_maker):
    await seed(session_maker, created_minutes_ago=60)

    assert await background_tasks.run_expired_transaction_sweep() == 1

    transaction = await load_transaction(session_maker)
    assert transaction.state == -1
    assert transaction.reason == 4
    assert transaction.provider_data["canceled_by"] == "expiration"


async def test_sweep_leaves_fresh_transaction_alone(session_maker):
    await seed(session_maker, created_minutes_ago=1)

    assert await background_tasks.run_expired_transaction_sweep() == 0

    transaction = await load_transaction(session_maker)
    assert transaction.state == 1
