"""Payment window expiration rules."""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

END_OF_DAY = time(23, 59, 59, 999000)


def payment_deadline(check_in_date: date, timezone: str) -> datetime:
    """Last instant a booking may still be paid: the end of its check-in day."""
    return datetime.combine(check_in_date, END_OF_DAY, tzinfo=ZoneInfo(timezone))


def is_payment_window_expired(check_in_date: date, now: datetime, timezone: str) -> bool:
    """True once ``now`` is past the booking's check-in day in local time."""
    return now > payment_deadline(check_in_date, timezone)


def is_creation_window_expired(create_date: datetime, now: datetime, timeout_minutes: int) -> bool:
    """True when more than ``timeout_minutes`` have passed since creation."""
    return now - create_date > timedelta(minutes=timeout_minutes)
