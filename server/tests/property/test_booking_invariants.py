"""Property-based tests for booking system invariants."""

from datetime import datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from healthtour.core.exceptions import ValidationError
from healthtour.models.booking import (
    ALLOWED_PREDECESSORS,
    TERMINAL_STATUSES,
    BookingStatus,
    can_transition,
)
from healthtour.services.identifiers import is_booking_number, next_booking_number
from healthtour.services.pricing import (
    PriceQuote,
    compute_total,
    payment_progress,
    payment_status_for,
    round_half_up,
)
from healthtour.services.rating_service import rounded_average

# Strategies for generating test data
amounts = st.integers(min_value=0, max_value=10_000_000)
statuses = st.sampled_from(list(BookingStatus))
transaction_statuses = st.sampled_from(["pending", "completed", "failed", "refunded"])
transactions = st.lists(
    st.fixed_dictionaries({"amount": amounts, "status": transaction_statuses}),
    max_size=10
)


@given(base=amounts, additional=amounts, taxes=amounts, discounts=amounts)
def test_total_equals_components(base, additional, taxes, discounts):
    """Test the total is always base + additional + taxes - discounts."""
    total = compute_total(base, additional, taxes, discounts)

    assert total == base + additional + taxes - discounts
    assert total + discounts - taxes - additional == base


@given(
    quote=st.builds(
        PriceQuote,
        base_price=amounts,
        additional_services=amounts,
        discounts=amounts,
        taxes=amounts,
        currency=st.just("EUR"),
    ),
    discounts=st.one_of(st.none(), amounts),
    taxes=st.one_of(st.none(), amounts),
)
def test_overrides_keep_total_derived(quote, discounts, taxes):
    """Test overridden quotes stay consistent or are refused when negative."""
    overrides = {"discounts": discounts, "taxes": taxes, "total_price": -1}
    expected_discounts = quote.discounts if discounts is None else discounts
    expected_taxes = quote.taxes if taxes is None else taxes
    expected_total = quote.base_price + quote.additional_services + expected_taxes - expected_discounts

    if expected_total < 0:
        with pytest.raises(ValidationError):
            quote.with_overrides(overrides)
        return

    result = quote.with_overrides(overrides)
    assert result.discounts == expected_discounts
    assert result.taxes == expected_taxes
    assert result.total_price == expected_total


@given(total=st.integers(min_value=-1000, max_value=10_000_000), transactions=transactions)
def test_payment_progress_bounded(total, transactions):
    """Test progress is always an integer percentage between 0 and 100."""
    progress = payment_progress(total, transactions)

    assert isinstance(progress, int)
    assert 0 <= progress <= 100


@given(total=st.integers(min_value=1, max_value=10_000_000), transactions=transactions)
def test_payment_progress_ignores_incomplete(total, transactions):
    """Test only completed transactions count toward progress."""
    completed = [t for t in transactions if t["status"] == "completed"]

    assert payment_progress(total, transactions) == payment_progress(total, completed)


@given(progress=st.integers(min_value=0, max_value=100), has_transactions=st.booleans())
def test_payment_status_matches_progress(progress, has_transactions):
    """Test the payment status follows progress once money has moved."""
    status = payment_status_for(progress, has_transactions)

    if not has_transactions or progress == 0:
        assert status.value == "pending"
    elif progress == 100:
        assert status.value == "completed"
    else:
        assert status.value == "partial"


@given(whole=st.integers(min_value=0, max_value=1_000_000))
def test_half_rounds_up(whole):
    """Test exact halves always round away from zero."""
    assert round_half_up(f"{whole}.5") == whole + 1
    assert round_half_up(f"{whole}.49") == whole


@given(average=st.floats(min_value=1.0, max_value=5.0, allow_nan=False))
def test_rounded_average_in_range(average):
    """Test the rounded rating stays within 1-5 at one decimal place."""
    rounded = rounded_average(average)

    assert 1.0 <= rounded <= 5.0
    assert abs(rounded - average) <= 0.05 + 1e-9
    assert round(rounded * 10) == pytest.approx(rounded * 10)


@given(now=st.datetimes(min_value=datetime(1000, 1, 1), max_value=datetime(9999, 12, 31)))
def test_booking_number_format(now):
    """Test generated booking numbers always carry the year and month."""
    number = next_booking_number(now)

    assert is_booking_number(number)
    assert number.startswith(f"HT{now.year:04d}{now.month:02d}")
    assert len(number) == 12


@given(current=statuses, target=statuses)
def test_transition_table_consistent(current, target):
    """Test the transition check agrees with the predecessor table."""
    assert can_transition(current, target) == (current in ALLOWED_PREDECESSORS[target])


@given(target=statuses)
def test_completed_and_cancelled_are_final(target):
    """Test no status follows a completed or cancelled booking except refunds."""
    for current in TERMINAL_STATUSES - {BookingStatus.REFUNDED}:
        if target != BookingStatus.REFUNDED:
            assert not can_transition(current, target)


def test_pending_confirmation_is_initial_only():
    """Test nothing transitions back into pending-confirmation."""
    assert all(not can_transition(status, BookingStatus.PENDING_CONFIRMATION) for status in BookingStatus)
