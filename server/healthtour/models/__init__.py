"""Models module exporting all database models."""

from .booking import (
    ALLOWED_PREDECESSORS,
    CAPACITY_RESERVING_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
    TransactionStatus,
    can_transition,
)
from .package import (
    ExperienceType,
    MealPlan,
    Package,
    PackageCategory,
    PackageExperienceType,
    PackageService,
    PackageTag,
)
from .review import Review
from .user import User

__all__ = [
    # Catalog entities
    "Package",
    "PackageService",
    "PackageExperienceType",
    "PackageTag",
    "PackageCategory",
    "ExperienceType",
    "MealPlan",

    # Booking entities
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "TransactionStatus",
    "ALLOWED_PREDECESSORS",
    "CAPACITY_RESERVING_STATUSES",
    "TERMINAL_STATUSES",
    "can_transition",

    # Review entity
    "Review",

    # Read-only collaborator
    "User",
]
