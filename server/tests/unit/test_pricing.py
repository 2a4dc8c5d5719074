"""Unit tests for the pricing ledger."""

from datetime import date
from decimal import Decimal

import pytest

from healthtour.core.exceptions import ValidationError
from healthtour.models.booking import PaymentStatus
from healthtour.models.package import Package, PackageService
from healthtour.services.pricing import (
    PriceQuote,
    additional_services_cost,
    compute_total,
    payment_progress,
    payment_status_for,
    quote,
    round_half_up,
)


def make_package(**overrides) -> Package:
    fields = {
        "title": "Istanbul Hair Transplant",
        "base_price": 100000,
        "currency": "EUR",
        "discounts": [],
        "services": [
            PackageService(name="Translator", included=True, additional_cost=0),
            PackageService(name="PRP Session", included=False, additional_cost=20000),
            PackageService(name="City Tour", included=False, additional_cost=5000),
        ],
    }
    fields.update(overrides)
    return Package(**fields)


def test_compute_total():
    """Test the total is base + additional + taxes - discounts."""
    assert compute_total(100000, 20000, 9000, 10000) == 119000
    assert compute_total(0, 0, 0, 0) == 0


def test_round_half_up():
    """Test half-up rounding at the midpoint."""
    assert round_half_up(Decimal("2.5")) == Decimal("3")
    assert round_half_up(Decimal("3.5")) == Decimal("4")
    assert round_half_up(Decimal("2.49")) == Decimal("2")
    assert round_half_up(4.25, 1) == Decimal("4.3")


def test_additional_services_cost_ignores_included():
    """Test only non-included selected services add cost."""
    package = make_package()

    assert additional_services_cost(package, ["Translator"]) == 0
    assert additional_services_cost(package, ["Translator", "PRP Session", "City Tour"]) == 25000


def test_additional_services_cost_unknown_service():
    """Test selecting a service the package does not offer."""
    package = make_package()

    with pytest.raises(ValidationError) as exc_info:
        additional_services_cost(package, ["Helicopter Ride"])

    assert exc_info.value.problem_details["errors"]["selected_services"] == "Helicopter Ride"


def test_quote_without_discount_or_tax():
    """Test a plain quote is the base price plus selected extras."""
    package = make_package()

    result = quote(package, ["PRP Session"], travelers=1, on=date(2025, 3, 1))

    assert result.base_price == 100000
    assert result.additional_services == 20000
    assert result.discounts == 0
    assert result.taxes == 0
    assert result.total_price == 120000
    assert result.currency == "EUR"


def test_quote_applies_active_discount_and_tax():
    """Test discount is a percentage of base and tax applies after discount."""
    package = make_package(discounts=[
        {"type": "early-bird", "percentage": 10, "valid_until": "2025-06-30", "min_travelers": None},
    ])

    result = quote(package, ["City Tour"], travelers=1, on=date(2025, 3, 1), tax_rate=0.2)

    assert result.discounts == 10000
    # (100000 + 5000 - 10000) * 0.2
    assert result.taxes == 19000
    assert result.total_price == 100000 + 5000 + 19000 - 10000


def test_quote_skips_expired_and_group_discounts():
    """Test expired discounts and unmet group minimums are ignored."""
    package = make_package(discounts=[
        {"type": "early-bird", "percentage": 10, "valid_until": "2025-01-31", "min_travelers": None},
        {"type": "group", "percentage": 15, "valid_until": None, "min_travelers": 4},
    ])

    solo = quote(package, travelers=2, on=date(2025, 3, 1))
    group = quote(package, travelers=4, on=date(2025, 3, 1))

    assert solo.discounts == 0
    assert group.discounts == 15000


def test_discount_rounds_half_up():
    """Test a fractional discount rounds half-up to whole minor units."""
    package = make_package(base_price=1005, discounts=[
        {"type": "seasonal", "percentage": 10, "valid_until": None, "min_travelers": None},
    ])

    # 100.5 rounds to 101
    assert quote(package, on=date(2025, 3, 1)).discounts == 101
    assert package.discounted_price(date(2025, 3, 1)) == 904


def test_overrides_replace_components_and_rederive_total():
    """Test caller overrides win and the total is recomputed."""
    base = PriceQuote(base_price=100000, additional_services=0, discounts=0, taxes=0, currency="EUR")

    result = base.with_overrides({"discounts": 5000, "taxes": 1000, "currency": "USD", "total_price": 1})

    assert result.discounts == 5000
    assert result.currency == "USD"
    assert result.total_price == 96000


def test_overrides_rejecting_negative_total():
    """Test a discount larger than the rest of the price is refused."""
    base = PriceQuote(base_price=1000, additional_services=0, discounts=0, taxes=0, currency="EUR")

    with pytest.raises(ValidationError):
        base.with_overrides({"discounts": 5000})


def test_payment_progress_counts_completed_only():
    """Test only completed transactions count towards progress."""
    transactions = [
        {"amount": 30000, "status": "completed"},
        {"amount": 50000, "status": "failed"},
        {"amount": 20000, "status": "pending"},
    ]

    assert payment_progress(100000, transactions) == 30


def test_payment_progress_is_clamped():
    """Test overpayment is reported as 100 percent."""
    transactions = [{"amount": 150000, "status": "completed"}]

    assert payment_progress(100000, transactions) == 100


def test_payment_progress_zero_total_is_paid():
    """Test a zero-priced booking is fully paid."""
    assert payment_progress(0, []) == 100


def test_payment_progress_rounds_half_up():
    """Test progress rounds half-up to an integer percent."""
    # 1 / 8 = 12.5 percent
    assert payment_progress(8, [{"amount": 1, "status": "completed"}]) == 13


def test_payment_status_for():
    """Test the payment status derived from progress."""
    assert payment_status_for(0, has_transactions=False) == PaymentStatus.PENDING
    assert payment_status_for(0, has_transactions=True) == PaymentStatus.PENDING
    assert payment_status_for(40, has_transactions=True) == PaymentStatus.PARTIAL
    assert payment_status_for(100, has_transactions=True) == PaymentStatus.COMPLETED
