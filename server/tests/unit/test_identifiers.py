"""Unit tests for booking number generation."""

from datetime import datetime

from healthtour.services.identifiers import is_booking_number, next_booking_number


def test_booking_number_format():
    """Test booking numbers carry the prefix, year and month."""
    number = next_booking_number(datetime(2025, 3, 14, 9, 30))

    assert number.startswith("HT202503")
    assert len(number) == 12
    assert number[8:].isdigit()
    assert is_booking_number(number)


def test_booking_number_pads_month():
    """Test single-digit months are zero padded."""
    assert next_booking_number(datetime(2026, 1, 1)).startswith("HT202601")


def test_is_booking_number_rejects_malformed():
    """Test malformed booking numbers are recognized."""
    assert not is_booking_number("HT2025031")
    assert not is_booking_number("BK2025030417")
    assert not is_booking_number("HT2025130417")
    assert not is_booking_number("ht2025030417")
