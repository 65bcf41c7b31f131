"""Tests for booking reference and amount normalization."""

import pytest

from stayhub.domain.normalizers import (
    BookingIdParsed,
    BookingIdRejected,
    extract_account_booking_id,
    extract_booking_id,
    to_major_units,
    to_minor_units,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (125, 125),
        ("125", 125),
        (" 42 ", 42),
        ("booking_125_1760860800000", 125),
    ],
)
def test_extract_booking_id_accepts_known_shapes(raw, expected):
    assert extract_booking_id(raw) == BookingIdParsed(expected)


@pytest.mark.parametrize("raw", [0, -3, "0", "abc", "booking_x_1", "12.5", True, None, 1.5, []])
def test_extract_booking_id_rejects_everything_else(raw):
    assert isinstance(extract_booking_id(raw), BookingIdRejected)


def test_extract_account_booking_id_prefers_booking_id_field():
    result = extract_account_booking_id({"booking_id": "7", "order_id": "8"})
    assert result == BookingIdParsed(7)


def test_extract_account_booking_id_falls_back_to_order_id():
    assert extract_account_booking_id({"order_id": 8}) == BookingIdParsed(8)


def test_extract_account_booking_id_requires_object():
    rejected = extract_account_booking_id("125")
    assert isinstance(rejected, BookingIdRejected)
    assert "object" in rejected.reason


def test_extract_account_booking_id_without_reference():
    assert isinstance(extract_account_booking_id({"phone": "998901234567"}), BookingIdRejected)


def test_amount_conversion():
    assert to_minor_units(1000) == 100000
    assert to_major_units(100000) == 1000
    assert to_major_units(100099) == 1000


@pytest.mark.parametrize(
    "raw",
    [2**31, "2147483648", "9" * 25, "booking_3000000000_1760860800000"],
)
def test_extract_booking_id_rejects_ids_beyond_column_range(raw):
    rejected = extract_booking_id(raw)
    assert isinstance(rejected, BookingIdRejected)
    assert "out of range" in rejected.reason


def test_extract_booking_id_accepts_largest_column_value():
    assert extract_booking_id(str(2**31 - 1)) == BookingIdParsed(2**31 - 1)
