"""Account identifier and amount normalization.

Payme sends the booking reference inside ``params.account`` under whichever
field name the merchant cabinet was configured with, and sends every amount
in tiyin (1 UZS = 100 tiyin).
"""

import re
from dataclasses import dataclass
from typing import Any, Union

MINOR_UNITS_PER_MAJOR = 100

ACCOUNT_FIELD_ALIASES = ("booking_id", "order_id")

# Upper bound of the bookings.id INTEGER column
MAX_BOOKING_ID = 2**31 - 1

_NUMERIC_ID = re.compile(r"^\s*(\d+)\s*$")
_COMPOSITE_TOKEN = re.compile(r"^booking_(\d+)_(\d+)$")


@dataclass(frozen=True)
class BookingIdParsed:
    booking_id: int


@dataclass(frozen=True)
class BookingIdRejected:
    reason: str


BookingIdResult = Union[BookingIdParsed, BookingIdRejected]


def extract_booking_id(raw: Any) -> BookingIdResult:
    """Parse a booking id from a bare int, numeric string or ``booking_<id>_<ts>`` token."""
    if isinstance(raw, bool):
        return BookingIdRejected("boolean is not a booking id")

    if isinstance(raw, int):
        if raw <= 0:
            return BookingIdRejected(f"non-positive booking id: {raw}")
        if raw > MAX_BOOKING_ID:
            return BookingIdRejected(f"booking id out of range: {raw}")
        return BookingIdParsed(raw)

    if isinstance(raw, str):
        for pattern in (_NUMERIC_ID, _COMPOSITE_TOKEN):
            match = pattern.match(raw)
            if match:
                booking_id = int(match.group(1))
                if booking_id <= 0:
                    return BookingIdRejected(f"non-positive booking id: {raw!r}")
                if booking_id > MAX_BOOKING_ID:
                    return BookingIdRejected(f"booking id out of range: {raw!r}")
                return BookingIdParsed(booking_id)
        return BookingIdRejected(f"unrecognized booking reference: {raw!r}")

    return BookingIdRejected(f"unsupported booking reference type: {type(raw).__name__}")


def extract_account_booking_id(account: Any) -> BookingIdResult:
    """Find the booking reference in a Payme ``account`` object."""
    if not isinstance(account, dict):
        return BookingIdRejected("account is not an object")

    for field in ACCOUNT_FIELD_ALIASES:
        if field in account and account[field] is not None:
            return extract_booking_id(account[field])

    return BookingIdRejected("account has no booking reference")


def to_minor_units(major_amount: int) -> int:
    return int(major_amount) * MINOR_UNITS_PER_MAJOR


def to_major_units(minor_amount: int | float) -> int:
    # Truncates toward zero, never rounds up
    return int(minor_amount) // MINOR_UNITS_PER_MAJOR
