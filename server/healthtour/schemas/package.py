"""Package-related Pydantic schemas."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from ..models.package import ExperienceType, MealPlan, PackageCategory
from .common import Pagination


class DiscountType(str, Enum):
    """Kinds of package discount."""
    EARLY_BIRD = "early-bird"
    GROUP = "group"
    SEASONAL = "seasonal"
    LOYALTY = "loyalty"


class DurationBucket(str, Enum):
    """Duration ranges offered as a search facet."""
    SHORT = "1-3"
    WEEK = "4-7"
    TWO_WEEKS = "8-14"
    LONG = "15+"


class Discount(BaseModel):
    """Percentage discount on the package base price."""

    type: DiscountType = Field(..., description="Discount kind")
    percentage: float = Field(..., ge=0, le=100, description="Percentage off the base price")
    valid_until: Optional[date] = Field(None, description="Last day the discount applies")
    min_travelers: Optional[int] = Field(None, ge=1, description="Minimum travellers for group discounts")


class PackageServiceItem(BaseModel):
    """Service offered with a package."""

    name: str = Field(..., min_length=1, max_length=64, description="Service name")
    description: Optional[str] = Field(None, max_length=500, description="Service description")
    included: bool = Field(True, description="Whether the service is part of the base price")
    additional_cost: int = Field(0, ge=0, description="Cost in minor units when not included")

    class Config:
        from_attributes = True


class Location(BaseModel):
    """Package location."""

    city: str = Field(..., min_length=1, max_length=120, description="City")
    country: str = Field("Turkey", min_length=1, max_length=120, description="Country")
    address: Optional[str] = Field(None, max_length=255, description="Street address")
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="Latitude")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="Longitude")


class CreatePackageRequest(BaseModel):
    """Request schema for creating a package."""

    title: str = Field(..., min_length=1, max_length=100, description="Package title")
    description: str = Field(..., min_length=1, max_length=1000, description="Package description")
    category: PackageCategory = Field(..., description="Package category")
    facility_name: str = Field(..., min_length=1, max_length=255, description="Medical facility name")
    facility_type: Optional[str] = Field(None, max_length=32, description="Facility type")
    location: Location = Field(..., description="Package location")
    duration_days: int = Field(..., ge=1, description="Duration in days")
    duration_nights: int = Field(..., ge=0, description="Duration in nights")
    base_price: int = Field(..., ge=0, description="Base price in minor units")
    currency: str = Field("EUR", pattern=r"^(EUR|USD|TRY|GBP)$", description="ISO 4217 currency code")
    includes_flights: bool = Field(False, description="Flights included")
    includes_accommodation: bool = Field(True, description="Accommodation included")
    includes_transfers: bool = Field(True, description="Transfers included")
    meals: MealPlan = Field(MealPlan.BREAKFAST, description="Meal plan")
    discounts: List[Discount] = Field(default_factory=list, description="Percentage discounts")
    experience_types: List[ExperienceType] = Field(default_factory=list, description="Experience facets")
    services: List[PackageServiceItem] = Field(default_factory=list, description="Offered services")
    tags: List[str] = Field(default_factory=list, description="Search tags")
    available_from: Optional[date] = Field(None, description="First bookable day")
    available_until: Optional[date] = Field(None, description="Last bookable day")
    blackout_dates: List[date] = Field(default_factory=list, description="Days that cannot be booked")
    max_capacity: int = Field(10, ge=0, description="Maximum concurrent active bookings")
    is_active: bool = Field(True, description="Visible in the public catalog")
    is_featured: bool = Field(False, description="Shown on the featured list")

    @model_validator(mode="after")
    def check_availability_window(self) -> "CreatePackageRequest":
        if self.available_from and self.available_until and self.available_until < self.available_from:
            raise ValueError("available_until must not be before available_from")
        return self


class UpdatePackageRequest(BaseModel):
    """Partial package edit; omitted fields are unchanged.

    Booking counters and rating aggregates are maintained by the service and
    cannot be set here.
    """

    package_id: str = Field(..., description="Package to update")
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    category: Optional[PackageCategory] = None
    facility_name: Optional[str] = Field(None, min_length=1, max_length=255)
    facility_type: Optional[str] = Field(None, max_length=32)
    location: Optional[Location] = None
    duration_days: Optional[int] = Field(None, ge=1)
    duration_nights: Optional[int] = Field(None, ge=0)
    base_price: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = Field(None, pattern=r"^(EUR|USD|TRY|GBP)$")
    includes_flights: Optional[bool] = None
    includes_accommodation: Optional[bool] = None
    includes_transfers: Optional[bool] = None
    meals: Optional[MealPlan] = None
    discounts: Optional[List[Discount]] = None
    experience_types: Optional[List[ExperienceType]] = None
    services: Optional[List[PackageServiceItem]] = None
    tags: Optional[List[str]] = None
    available_from: Optional[date] = None
    available_until: Optional[date] = None
    blackout_dates: Optional[List[date]] = None
    max_capacity: Optional[int] = Field(None, ge=0)
    is_featured: Optional[bool] = None


class GetPackageRequest(BaseModel):
    """Request schema for getting a package."""

    package_id: str = Field(..., description="Package to retrieve")


class SetPackageActiveRequest(BaseModel):
    """Request schema for retiring or re-activating a package."""

    package_id: str = Field(..., description="Package to update")
    is_active: bool = Field(..., description="New active flag")


class DeletePackageRequest(BaseModel):
    """Request schema for deleting a package."""

    package_id: str = Field(..., description="Package to delete")


class SearchPackagesRequest(BaseModel):
    """Catalog search criteria; all supplied criteria must match."""

    search: Optional[str] = Field(None, max_length=200, description="Case-insensitive text search")
    category: Optional[PackageCategory] = Field(None, description="Exact category")
    location: Optional[str] = Field(None, max_length=200, description="'City, Country' or a single city/country")
    min_price: Optional[int] = Field(None, ge=0, description="Minimum base price (inclusive)")
    max_price: Optional[int] = Field(None, ge=0, description="Maximum base price (inclusive)")
    duration: Optional[DurationBucket] = Field(None, description="Duration bucket in days")
    experience_types: List[ExperienceType] = Field(default_factory=list, description="Any of these experience types")
    services: List[str] = Field(default_factory=list, description="Any of these service names")
    sort: str = Field("-created_at", description="Sort key, '-' prefix for descending")
    page: int = Field(1, ge=1, description="Page number (1-based)")
    limit: Optional[int] = Field(None, ge=1, description="Items per page")


class AdminSearchPackagesRequest(SearchPackagesRequest):
    """Catalog search that may include inactive packages."""

    include_inactive: bool = Field(True, description="Include retired packages")


class Package(BaseModel):
    """Package response schema."""

    id: str = Field(..., description="Unique package ID")
    title: str = Field(..., description="Package title")
    description: str = Field(..., description="Package description")
    category: str = Field(..., description="Package category")
    facility_name: str = Field(..., description="Medical facility name")
    facility_type: Optional[str] = Field(None, description="Facility type")
    location: Location = Field(..., description="Package location")
    duration_days: int = Field(..., description="Duration in days")
    duration_nights: int = Field(..., description="Duration in nights")
    duration_string: str = Field(..., description="Human-readable duration")
    base_price: int = Field(..., description="Base price in minor units")
    discounted_price: int = Field(..., description="Base price after the active discount")
    currency: str = Field(..., description="ISO 4217 currency code")
    includes_flights: bool
    includes_accommodation: bool
    includes_transfers: bool
    meals: str
    discounts: List[Discount] = Field(default_factory=list)
    experience_types: List[str] = Field(default_factory=list)
    services: List[PackageServiceItem] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    available_from: Optional[date] = None
    available_until: Optional[date] = None
    blackout_dates: List[date] = Field(default_factory=list)
    max_capacity: int = Field(..., description="Maximum concurrent active bookings")
    current_bookings: int = Field(..., description="Active bookings holding capacity")
    rating_average: float = Field(..., description="Mean review rating, one decimal")
    rating_count: int = Field(..., description="Number of reviews")
    is_active: bool
    is_featured: bool
    created_at: datetime
    updated_at: datetime


class PackageListResponse(BaseModel):
    """Paginated package list."""

    items: List[Package] = Field(..., description="Packages on this page")
    pagination: Pagination = Field(..., description="Pagination metadata")
