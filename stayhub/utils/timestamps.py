"""Conversion between datetimes and Payme millisecond timestamps."""

from datetime import UTC, datetime, timedelta

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
ONE_MILLISECOND = timedelta(milliseconds=1)


def to_millis(value: datetime | None) -> int:
    """Milliseconds since the epoch, 0 for an unset timestamp."""
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - EPOCH) // ONE_MILLISECOND


def from_millis(value: int) -> datetime:
    return EPOCH + timedelta(milliseconds=int(value))


def utc_now() -> datetime:
    """Current UTC time truncated to whole milliseconds."""
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)
