"""Pricing ledger: booking price breakdown, totals and payment progress.

All amounts are integer minor units (e.g. cents). Rounding is half-up, so
0.5 always rounds away from zero for the non-negative amounts handled here.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import event

from ..core.exceptions import ValidationError
from ..models.booking import Booking, PaymentStatus, TransactionStatus
from ..models.package import Package

logger = logging.getLogger(__name__)


def round_half_up(value: Decimal | float | int, places: int = 0) -> Decimal:
    """Round ``value`` half-up to ``places`` decimal places."""
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def compute_total(base_price: int, additional_services: int, taxes: int, discounts: int) -> int:
    """Return ``base + additional + taxes - discounts``."""
    return base_price + additional_services + taxes - discounts


@dataclass(frozen=True)
class PriceQuote:
    """Priced breakdown for a prospective booking."""

    base_price: int
    additional_services: int
    discounts: int
    taxes: int
    currency: str

    @property
    def total_price(self) -> int:
        return compute_total(self.base_price, self.additional_services, self.taxes, self.discounts)

    def with_overrides(self, overrides: Optional[dict[str, Any]]) -> "PriceQuote":
        """
        Replace components supplied by the caller.

        Only ``base_price``, ``additional_services``, ``discounts``, ``taxes`` and
        ``currency`` may be overridden; the total is always derived.

        Raises:
            ValidationError: If the resulting total would be negative
        """
        values = {
            "base_price": self.base_price,
            "additional_services": self.additional_services,
            "discounts": self.discounts,
            "taxes": self.taxes,
            "currency": self.currency,
        }
        for key, value in (overrides or {}).items():
            if key in values and value is not None:
                values[key] = value

        quote = PriceQuote(**values)
        ensure_non_negative_total(quote.total_price)
        return quote


def ensure_non_negative_total(total_price: int) -> None:
    if total_price < 0:
        raise ValidationError(
            detail="Booking total price cannot be negative",
            errors={"total_price": total_price}
        )


def additional_services_cost(package: Package, selected_services: Iterable[str]) -> int:
    """Sum the additional cost of selected services the package does not include."""
    total = 0
    for name in selected_services:
        service = package.service_by_name(name)
        if service is None:
            raise ValidationError(
                detail=f"Service '{name}' is not offered by this package",
                errors={"selected_services": name}
            )
        if not service.included:
            total += service.additional_cost
    return total


def quote(
    package: Package,
    selected_services: Iterable[str] = (),
    travelers: int = 1,
    on: Optional[date] = None,
    tax_rate: float = 0.0
) -> PriceQuote:
    """
    Price a booking for ``package``.

    Args:
        package: Package being booked
        selected_services: Names of services the customer selected
        travelers: Total travellers, used for group discount minimums
        on: Date the discount validity is judged against (defaults to today)
        tax_rate: Fraction applied to ``base + additional - discounts``

    Returns:
        Price breakdown with derived total

    Raises:
        ValidationError: If a selected service is unknown or the total is negative
    """
    on = on or date.today()
    base_price = package.base_price
    additional = additional_services_cost(package, selected_services)

    discounts = 0
    discount = package.active_discount(on, travelers)
    if discount:
        percentage = Decimal(str(discount.get("percentage", 0)))
        discounts = int(round_half_up(Decimal(base_price) * percentage / 100))

    taxable = base_price + additional - discounts
    taxes = int(round_half_up(Decimal(str(tax_rate)) * taxable)) if taxable > 0 else 0

    result = PriceQuote(
        base_price=base_price,
        additional_services=additional,
        discounts=discounts,
        taxes=taxes,
        currency=package.currency
    )
    ensure_non_negative_total(result.total_price)
    return result


def completed_amount(transactions: Iterable[dict[str, Any]]) -> int:
    return sum(
        int(t.get("amount", 0))
        for t in transactions
        if t.get("status") == TransactionStatus.COMPLETED.value
    )


def payment_progress(total_price: int, transactions: Iterable[dict[str, Any]]) -> int:
    """
    Percentage of ``total_price`` covered by completed transactions.

    Rounded half-up to an integer and clamped to 0..100. A zero total is
    fully paid.
    """
    if total_price <= 0:
        return 100
    paid = completed_amount(transactions)
    progress = int(round_half_up(Decimal(paid) * 100 / Decimal(total_price)))
    return max(0, min(100, progress))


def payment_status_for(progress: int, has_transactions: bool) -> PaymentStatus:
    """Derive the payment sub-ledger status from progress."""
    if not has_transactions:
        return PaymentStatus.PENDING
    if progress >= 100:
        return PaymentStatus.COMPLETED
    if progress > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING


@event.listens_for(Booking, "before_insert")
@event.listens_for(Booking, "before_update")
def _recompute_booking_total(mapper, connection, target: Booking) -> None:
    """Keep the stored total equal to its components on every flush."""
    target.total_price = compute_total(
        target.base_price or 0,
        target.additional_services or 0,
        target.taxes or 0,
        target.discounts or 0
    )
