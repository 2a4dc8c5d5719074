"""Package (catalog item) model definitions."""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .booking import Booking
    from .review import Review


class PackageCategory(str, Enum):
    """Closed set of package categories."""
    WELLNESS_SPA = "wellness-spa"
    MEDICAL_TREATMENT = "medical-treatment"
    DENTAL_CARE = "dental-care"
    AESTHETIC_SURGERY = "aesthetic-surgery"
    HEALTH_CHECKUP = "health-checkup"
    REHABILITATION = "rehabilitation"
    FERTILITY_TREATMENT = "fertility-treatment"
    EYE_SURGERY = "eye-surgery"
    HAIR_TRANSPLANT = "hair-transplant"
    WEIGHT_LOSS = "weight-loss"


class ExperienceType(str, Enum):
    """Experience tags shown as search facets."""
    RELAXING = "Relaxing (Wellness)"
    TREATMENT_FOCUSED = "Treatment-Focused"
    CLOSE_TO_NATURE = "Close to Nature"
    FAMILY_FRIENDLY = "Family-Friendly"
    QUICK_CARE = "Quick Care"


class MealPlan(str, Enum):
    """Meal plan included in the package price."""
    NONE = "none"
    BREAKFAST = "breakfast"
    HALF_BOARD = "half-board"
    FULL_BOARD = "full-board"
    ALL_INCLUSIVE = "all-inclusive"


class Package(Base):
    """Purchasable travel and treatment bundle with finite capacity."""

    __tablename__ = "packages"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Catalog information
    title: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    facility_name: Mapped[str] = mapped_column(String(255), nullable=False)
    facility_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Location
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    country: Mapped[str] = mapped_column(String(120), nullable=False, default="Turkey")
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Duration
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_nights: Mapped[int] = mapped_column(Integer, nullable=False)

    # Pricing (stored as minor units, e.g., cents)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    includes_flights: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    includes_accommodation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    includes_transfers: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    meals: Mapped[str] = mapped_column(String(20), nullable=False, default=MealPlan.BREAKFAST.value)
    # [{"type", "percentage", "valid_until" (ISO date or null), "min_travelers"}]
    discounts: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # Availability
    available_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    available_until: Mapped[date | None] = mapped_column(Date, nullable=True)
    blackout_dates: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    current_bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Rating aggregate, owned by the rating recompute
    rating_average: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Flags
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("duration_days >= 1", name="ck_package_duration_days_min"),
        CheckConstraint("duration_nights >= 0", name="ck_package_duration_nights_non_negative"),
        CheckConstraint("base_price >= 0", name="ck_package_base_price_non_negative"),
        CheckConstraint("length(currency) = 3", name="ck_package_currency_length"),
        CheckConstraint("max_capacity >= 0", name="ck_package_max_capacity_non_negative"),
        CheckConstraint("current_bookings >= 0", name="ck_package_current_bookings_non_negative"),
        CheckConstraint(
            "rating_average >= 0 AND rating_average <= 5",
            name="ck_package_rating_average_range"
        ),
        CheckConstraint("rating_count >= 0", name="ck_package_rating_count_non_negative"),
        Index("ix_packages_category_active", "category", "is_active"),
        Index("ix_packages_city_country", "city", "country"),
        Index("ix_packages_base_price", "base_price"),
        Index("ix_packages_rating_average", "rating_average"),
    )

    # Relationships
    services: Mapped[list["PackageService"]] = relationship(
        "PackageService",
        back_populates="package",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PackageService.position"
    )
    experience_types: Mapped[list["PackageExperienceType"]] = relationship(
        "PackageExperienceType",
        back_populates="package",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    tags: Mapped[list["PackageTag"]] = relationship(
        "PackageTag",
        back_populates="package",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="package",
        passive_deletes=True
    )
    reviews: Mapped[list["Review"]] = relationship(
        "Review",
        back_populates="package",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    @property
    def duration_string(self) -> str:
        return f"{self.duration_days} days, {self.duration_nights} nights"

    def active_discount(self, on: date, travelers: int = 1) -> Optional[dict[str, Any]]:
        """Return the first discount still valid on ``on`` whose group minimum is met."""
        for discount in self.discounts or []:
            valid_until = discount.get("valid_until")
            if valid_until and date.fromisoformat(valid_until) < on:
                continue
            min_travelers = discount.get("min_travelers")
            if min_travelers and travelers < min_travelers:
                continue
            return discount
        return None

    def discounted_price(self, on: date, travelers: int = 1) -> int:
        """Base price less the active discount, in minor units."""
        discount = self.active_discount(on, travelers)
        if not discount:
            return self.base_price
        reduction = (Decimal(self.base_price) * Decimal(str(discount.get("percentage", 0))) / 100)
        return self.base_price - int(reduction.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def service_by_name(self, name: str) -> Optional["PackageService"]:
        for service in self.services:
            if service.name == name:
                return service
        return None

    def __repr__(self) -> str:
        return (
            f"<Package(id={self.id}, title='{self.title}', "
            f"capacity={self.current_bookings}/{self.max_capacity})>"
        )


class PackageService(Base):
    """Named service offered with a package, included or at additional cost."""

    __tablename__ = "package_services"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    package_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("packages.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    included: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    additional_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("additional_cost >= 0", name="ck_package_service_cost_non_negative"),
        UniqueConstraint("package_id", "name", name="uq_package_service_name"),
    )

    package: Mapped["Package"] = relationship("Package", back_populates="services")

    def __repr__(self) -> str:
        return f"<PackageService(name='{self.name}', included={self.included})>"


class PackageExperienceType(Base):
    """Experience type facet attached to a package."""

    __tablename__ = "package_experience_types"

    package_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("packages.id", ondelete="CASCADE"),
        primary_key=True
    )
    name: Mapped[str] = mapped_column(String(64), primary_key=True)

    package: Mapped["Package"] = relationship("Package", back_populates="experience_types")


class PackageTag(Base):
    """Free-form search tag attached to a package."""

    __tablename__ = "package_tags"

    package_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("packages.id", ondelete="CASCADE"),
        primary_key=True
    )
    name: Mapped[str] = mapped_column(String(64), primary_key=True)

    package: Mapped["Package"] = relationship("Package", back_populates="tags")
