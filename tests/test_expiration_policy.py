"""Tests for payment window rules."""

from datetime import UTC, date, datetime, timedelta

from stayhub.domain.expiration_policy import (
    is_creation_window_expired,
    is_payment_window_expired,
    payment_deadline,
)

TASHKENT = "Asia/Tashkent"


def test_payment_deadline_is_end_of_check_in_day_local_time():
    deadline = payment_deadline(date(2026, 10, 20), TASHKENT)
    assert deadline.astimezone(UTC) == datetime(2026, 10, 20, 18, 59, 59, 999000, tzinfo=UTC)


def test_payment_window_open_on_last_millisecond():
    last = datetime(2026, 10, 20, 18, 59, 59, 999000, tzinfo=UTC)
    assert not is_payment_window_expired(date(2026, 10, 20), last, TASHKENT)


def test_payment_window_closed_after_local_midnight():
    after = datetime(2026, 10, 20, 19, 0, 0, 1000, tzinfo=UTC)
    assert is_payment_window_expired(date(2026, 10, 20), after, TASHKENT)


def test_payment_window_uses_local_not_utc_day():
    # 20:00 UTC on the 20th is already the 21st in Tashkent
    now = datetime(2026, 10, 20, 20, 0, tzinfo=UTC)
    assert is_payment_window_expired(date(2026, 10, 20), now, TASHKENT)
    assert not is_payment_window_expired(date(2026, 10, 20), now, "UTC")


def test_creation_window_boundary():
    created = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)
    assert not is_creation_window_expired(created, created + timedelta(minutes=12), 12)
    assert is_creation_window_expired(
        created, created + timedelta(minutes=12, milliseconds=1), 12
    )
