"""Service layer package."""

from . import pricing  # noqa: F401  registers the booking total listener
from .booking_service import BookingService
from .catalog_query import CatalogQuery, build_admin_catalog_query, build_catalog_query
from .inventory_service import InventoryService
from .package_service import PackageCatalogService
from .rating_service import RatingService
from .review_service import ReviewService

__all__ = [
    "BookingService",
    "CatalogQuery",
    "InventoryService",
    "PackageCatalogService",
    "RatingService",
    "ReviewService",
    "build_admin_catalog_query",
    "build_catalog_query",
]
