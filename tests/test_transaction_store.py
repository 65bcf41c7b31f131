"""Tests for the SQLAlchemy stores against SQLite."""

from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from stayhub.core.exceptions import (
    DuplicateTransactionError,
    LiveTransactionConflict,
    NotFoundError,
    StaleTransactionState,
)
from stayhub.database import Base
from stayhub.domain.transaction_state import TransactionState
from stayhub.models import Booking, User
from stayhub.stores.base import NewTransaction
from stayhub.stores.booking_gateway import SqlAlchemyBookingGateway
from stayhub.stores.transaction_store import SqlAlchemyTransactionStore

NOW = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)


@pytest.fixture
async def session(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}")

    # pysqlite needs explicit BEGIN for SAVEPOINT to work
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    async with session_maker() as db:
        db.add(User(id=7, name="Guest"))
        db.add_all(
            [
                Booking(
                    id=booking_id,
                    user_id=7,
                    check_in_date=date(2026, 10, 20),
                    check_out_date=date(2026, 10, 22),
                    total_price=1000,
                    status="selected",
                )
                for booking_id in (125, 126)
            ]
        )
        await db.commit()
        yield db

    await engine.dispose()


def new_transaction(provider_transaction_id: str, booking_id: int = 125, at: datetime = NOW):
    return NewTransaction(
        provider_transaction_id=provider_transaction_id,
        booking_id=booking_id,
        user_id=7,
        amount=1000,
        create_date=at,
        provider_data={"amount_minor": 100000},
    )


async def test_create_and_find(session):
    store = SqlAlchemyTransactionStore(session)

    created = await store.create(new_transaction("T1"))
    found = await store.find_by_provider_transaction_id("T1")

    assert found == created
    assert found.state is TransactionState.PENDING
    assert found.create_date == NOW
    assert found.provider_data == {"amount_minor": 100000}
    assert await store.find_by_provider_transaction_id("missing") is None


async def test_create_duplicate_provider_id(session):
    store = SqlAlchemyTransactionStore(session)
    await store.create(new_transaction("T1"))

    with pytest.raises(DuplicateTransactionError):
        await store.create(new_transaction("T1", booking_id=126))

    # Outer transaction survives the failed savepoint
    assert (await store.find_by_provider_transaction_id("T1")).booking_id == 125


async def test_create_second_live_transaction_for_booking(session):
    store = SqlAlchemyTransactionStore(session)
    await store.create(new_transaction("T1"))

    with pytest.raises(LiveTransactionConflict):
        await store.create(new_transaction("T2"))

    assert await store.find_by_provider_transaction_id("T2") is None


async def test_canceled_transaction_frees_the_booking(session):
    store = SqlAlchemyTransactionStore(session)
    await store.create(new_transaction("T1"))
    await store.transition("T1", TransactionState.PENDING_CANCELED, NOW, reason=4)

    await store.create(new_transaction("T2", at=NOW + timedelta(minutes=1)))

    live = await store.find_live_transaction_for_booking(125)
    assert live.provider_transaction_id == "T2"


async def test_transition_stamps_dates_and_merges_audit(session):
    store = SqlAlchemyTransactionStore(session)
    await store.create(new_transaction("T1"))
    performed_at = NOW + timedelta(minutes=2)
    canceled_at = NOW + timedelta(hours=1)

    paid = await store.transition(
        "T1", TransactionState.PAID, performed_at, audit_patch={"perform_time": 1}
    )
    assert paid.state is TransactionState.PAID
    assert paid.perform_date == performed_at
    assert paid.cancel_date is None

    canceled = await store.transition(
        "T1",
        TransactionState.PAID_CANCELED,
        canceled_at,
        audit_patch={"cancel_reason": 5},
        reason=5,
    )
    assert canceled.state is TransactionState.PAID_CANCELED
    assert canceled.perform_date == performed_at
    assert canceled.cancel_date == canceled_at
    assert canceled.reason == 5
    assert canceled.provider_data == {
        "amount_minor": 100000,
        "perform_time": 1,
        "cancel_reason": 5,
    }


async def test_transition_from_wrong_state_is_stale(session):
    store = SqlAlchemyTransactionStore(session)
    await store.create(new_transaction("T1"))
    await store.transition("T1", TransactionState.PENDING_CANCELED, NOW)

    with pytest.raises(StaleTransactionState):
        await store.transition("T1", TransactionState.PAID, NOW)

    with pytest.raises(StaleTransactionState):
        await store.transition("missing", TransactionState.PAID, NOW)


async def test_list_by_create_date_and_pending(session):
    store = SqlAlchemyTransactionStore(session)
    await store.create(new_transaction("T1"))
    await store.create(new_transaction("T2", booking_id=126, at=NOW + timedelta(minutes=5)))
    await store.transition("T1", TransactionState.PAID, NOW + timedelta(minutes=1))

    in_range = await store.list_by_create_date(NOW, NOW + timedelta(minutes=5))
    assert [row.provider_transaction_id for row in in_range] == ["T1", "T2"]

    assert await store.list_by_create_date(NOW + timedelta(minutes=6), NOW + timedelta(hours=1)) == []

    pending = await store.list_pending()
    assert [row.provider_transaction_id for row in pending] == ["T2"]


async def test_booking_gateway_reads_and_approves(session):
    gateway = SqlAlchemyBookingGateway(session)

    booking = await gateway.get_by_id(125)
    assert booking.status == "selected"
    assert booking.price == 1000
    assert await gateway.user_exists(7)
    assert not await gateway.user_exists(8)
    assert not await gateway.user_exists(None)
    assert await gateway.get_by_id(999) is None

    await gateway.mark_approved(125, NOW, {"provider_transaction_id": "T1"})

    approved = await gateway.get_by_id(125)
    assert approved.status == "approved"
    assert approved.paid_at == NOW
    assert approved.approved_at == NOW


async def test_booking_gateway_approve_missing_booking(session):
    gateway = SqlAlchemyBookingGateway(session)
    with pytest.raises(NotFoundError):
        await gateway.mark_approved(999, NOW, {})


async def test_find_latest_transaction_includes_canceled(session):
    store = SqlAlchemyTransactionStore(session)
    assert await store.find_latest_transaction_for_booking(125) is None

    await store.create(new_transaction("T1"))
    await store.transition("T1", TransactionState.PENDING_CANCELED, NOW, reason=5)

    assert await store.find_live_transaction_for_booking(125) is None
    latest = await store.find_latest_transaction_for_booking(125)
    assert latest.provider_transaction_id == "T1"
    assert latest.state is TransactionState.PENDING_CANCELED

    await store.create(new_transaction("T2", at=NOW + timedelta(minutes=1)))
    assert (await store.find_latest_transaction_for_booking(125)).provider_transaction_id == "T2"
