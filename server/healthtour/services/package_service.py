"""Package catalog service."""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..models.booking import Booking
from ..models.package import Package, PackageExperienceType, PackageService, PackageTag
from ..models.review import Review
from ..schemas.package import (
    AdminSearchPackagesRequest,
    CreatePackageRequest,
    Discount,
    PackageServiceItem,
    SearchPackagesRequest,
    UpdatePackageRequest,
)
from .catalog_query import CatalogQuery, build_admin_catalog_query, build_catalog_query

logger = logging.getLogger(__name__)

# Optional columns an update may reset to null
CLEARABLE_PACKAGE_FIELDS = frozenset({"facility_type", "available_from", "available_until"})


def parse_uuid(value: str, resource_type: str) -> UUID:
    """Parse an identifier, treating a malformed one as not found."""
    try:
        return UUID(str(value))
    except (ValueError, TypeError) as e:
        raise NotFoundError(resource_type=resource_type, resource_id=str(value)) from e


def _discount_rows(discounts: list[Discount]) -> list[dict[str, Any]]:
    return [
        {
            "type": d.type.value,
            "percentage": d.percentage,
            "valid_until": d.valid_until.isoformat() if d.valid_until else None,
            "min_travelers": d.min_travelers,
        }
        for d in discounts
    ]


def _ensure_unique_service_names(services: list[PackageServiceItem]) -> None:
    names = [service.name for service in services]
    if len(names) != len(set(names)):
        raise ValidationError(
            detail="Service names must be unique within a package",
            errors={"services": names}
        )


class PackageCatalogService:
    """Service for package catalog operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_package(self, request: CreatePackageRequest) -> Package:
        """
        Create a new package.

        Args:
            request: Package creation request

        Returns:
            Created package entity

        Raises:
            ValidationError: If service names repeat
        """
        _ensure_unique_service_names(request.services)

        package = Package(
            title=request.title,
            description=request.description,
            category=request.category.value,
            facility_name=request.facility_name,
            facility_type=request.facility_type,
            city=request.location.city,
            country=request.location.country,
            address=request.location.address,
            latitude=request.location.latitude,
            longitude=request.location.longitude,
            duration_days=request.duration_days,
            duration_nights=request.duration_nights,
            base_price=request.base_price,
            currency=request.currency,
            includes_flights=request.includes_flights,
            includes_accommodation=request.includes_accommodation,
            includes_transfers=request.includes_transfers,
            meals=request.meals.value,
            discounts=_discount_rows(request.discounts),
            available_from=request.available_from,
            available_until=request.available_until,
            blackout_dates=[d.isoformat() for d in request.blackout_dates],
            max_capacity=request.max_capacity,
            current_bookings=0,
            is_active=request.is_active,
            is_featured=request.is_featured,
            services=[
                PackageService(
                    name=service.name,
                    description=service.description,
                    included=service.included,
                    additional_cost=0 if service.included else service.additional_cost,
                    position=position
                )
                for position, service in enumerate(request.services)
            ],
            experience_types=[
                PackageExperienceType(name=e.value) for e in dict.fromkeys(request.experience_types)
            ],
            tags=[PackageTag(name=tag) for tag in dict.fromkeys(request.tags)],
        )

        try:
            self.db.add(package)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Package creation failed due to integrity constraint",
                extra={"title": request.title, "error": str(e)}
            )
            raise ConflictError(detail="Package creation failed due to constraint violation") from e

        logger.info(
            "Package created successfully",
            extra={
                "package_id": str(package.id),
                "title": package.title,
                "category": package.category,
                "max_capacity": package.max_capacity
            }
        )

        return await self.get_package_by_id_or_raise(package.id)

    async def get_package_by_id(self, package_id: UUID) -> Optional[Package]:
        """Get package by ID."""
        stmt = (
            select(Package)
            .where(Package.id == package_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_package_by_id_or_raise(self, package_id: UUID) -> Package:
        """Get package by ID or raise NotFoundError."""
        package = await self.get_package_by_id(package_id)
        if not package:
            logger.warning(
                "Package not found",
                extra={"package_id": str(package_id)}
            )
            raise NotFoundError(
                resource_type="package",
                resource_id=str(package_id)
            )
        return package

    async def get_public_package(self, package_id: str) -> Package:
        """Get an active package; retired packages are hidden from the public catalog."""
        package = await self.get_package_by_id_or_raise(parse_uuid(package_id, "package"))
        if not package.is_active:
            raise NotFoundError(resource_type="package", resource_id=package_id)
        return package

    async def run_query(self, query: CatalogQuery) -> tuple[list[Package], int]:
        """Execute a compiled catalog query, returning the page and the total count."""
        total = (await self.db.execute(query.count_statement())).scalar_one()
        result = await self.db.execute(query.statement())
        return list(result.scalars().unique()), total

    async def search_packages(self, request: SearchPackagesRequest) -> tuple[list[Package], int, CatalogQuery]:
        """Search the public catalog (active packages only)."""
        query = build_catalog_query(request)
        packages, total = await self.run_query(query)

        logger.info(
            "Package search completed",
            extra={
                "total_found": total,
                "page": query.page,
                "limit": query.limit,
                "search": request.search,
                "location": request.location
            }
        )

        return packages, total, query

    async def admin_search_packages(
        self, request: AdminSearchPackagesRequest
    ) -> tuple[list[Package], int, CatalogQuery]:
        """Search the whole catalog, including retired packages unless excluded."""
        query = build_admin_catalog_query(request)
        packages, total = await self.run_query(query)
        return packages, total, query

    async def list_featured(self, limit: int = 6) -> list[Package]:
        """Active featured packages, best rated first."""
        stmt = (
            select(Package)
            .where(Package.is_active.is_(True), Package.is_featured.is_(True))
            .order_by(Package.rating_average.desc(), Package.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def update_package(self, request: UpdatePackageRequest) -> Package:
        """
        Apply a partial edit to a package.

        Services, experience types and tags, when given, replace the current
        set. Capacity may only be lowered to the number of bookings already
        holding it.

        Raises:
            NotFoundError: If package not found
            ValidationError: If the edit leaves the package inconsistent
            ConflictError: If the new capacity is below current bookings
        """
        package = await self.get_package_by_id_or_raise(parse_uuid(request.package_id, "package"))
        if request.services is not None:
            _ensure_unique_service_names(request.services)
        package_id = package.id
        changes = request.model_dump(exclude_unset=True, exclude={"package_id"})

        available_from = changes.get("available_from", package.available_from)
        available_until = changes.get("available_until", package.available_until)
        if available_from and available_until and available_until < available_from:
            raise ValidationError(
                detail="available_until must not be before available_from",
                errors={"available_until": available_until.isoformat()}
            )

        for name in (
            "title", "description", "facility_name", "facility_type", "duration_days",
            "duration_nights", "base_price", "currency", "includes_flights",
            "includes_accommodation", "includes_transfers", "available_from",
            "available_until", "is_featured",
        ):
            if name in changes and (changes[name] is not None or name in CLEARABLE_PACKAGE_FIELDS):
                setattr(package, name, changes[name])

        if request.category is not None:
            package.category = request.category.value
        if request.meals is not None:
            package.meals = request.meals.value
        if request.location is not None:
            package.city = request.location.city
            package.country = request.location.country
            package.address = request.location.address
            package.latitude = request.location.latitude
            package.longitude = request.location.longitude
        if request.discounts is not None:
            package.discounts = _discount_rows(request.discounts)
        if request.blackout_dates is not None:
            package.blackout_dates = [d.isoformat() for d in request.blackout_dates]
        if request.services is not None:
            self._replace_services(package, request.services)
        if request.experience_types is not None:
            names = [e.value for e in dict.fromkeys(request.experience_types)]
            kept = [e for e in package.experience_types if e.name in names]
            kept_names = {e.name for e in kept}
            package.experience_types = kept + [
                PackageExperienceType(name=n) for n in names if n not in kept_names
            ]
        if request.tags is not None:
            names = list(dict.fromkeys(request.tags))
            kept = [t for t in package.tags if t.name in names]
            kept_names = {t.name for t in kept}
            package.tags = kept + [PackageTag(name=n) for n in names if n not in kept_names]

        self.db.add(package)

        if request.max_capacity is not None:
            # Conditional so a concurrent reservation cannot slip under the new limit
            result = await self.db.execute(
                update(Package)
                .where(Package.id == package_id, Package.current_bookings <= request.max_capacity)
                .values(max_capacity=request.max_capacity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = (await self.db.execute(
                    select(Package.current_bookings).where(Package.id == package_id)
                )).scalar_one()
                await self.db.rollback()
                logger.warning(
                    "Package update refused - capacity below current bookings",
                    extra={
                        "package_id": request.package_id,
                        "current_bookings": current,
                        "max_capacity": request.max_capacity
                    }
                )
                raise ConflictError(
                    detail=(
                        f"Package {request.package_id} has {current} active bookings; "
                        f"capacity cannot be lowered to {request.max_capacity}"
                    ),
                    conflicting_resource={
                        "package_id": request.package_id,
                        "current_bookings": current,
                        "max_capacity": request.max_capacity
                    }
                )

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Package update failed due to integrity constraint",
                extra={"package_id": request.package_id, "error": str(e)}
            )
            raise ConflictError(detail="Package update failed due to constraint violation") from e

        logger.info(
            "Package updated",
            extra={"package_id": request.package_id, "fields": sorted(changes)}
        )

        return await self.get_package_by_id_or_raise(package_id)

    def _replace_services(self, package: Package, services: list[PackageServiceItem]) -> None:
        """Update services in place by name so the (package, name) key never collides."""
        existing = {s.name: s for s in package.services}
        replacement = []
        for position, item in enumerate(services):
            service = existing.get(item.name) or PackageService(name=item.name)
            service.description = item.description
            service.included = item.included
            service.additional_cost = 0 if item.included else item.additional_cost
            service.position = position
            replacement.append(service)
        package.services = replacement

    async def set_active(self, package_id: str, is_active: bool) -> Package:
        """Retire or re-activate a package."""
        package = await self.get_package_by_id_or_raise(parse_uuid(package_id, "package"))
        package.is_active = is_active

        self.db.add(package)
        await self.db.commit()

        logger.info(
            "Package active flag updated",
            extra={"package_id": package_id, "is_active": is_active}
        )

        return await self.get_package_by_id_or_raise(package.id)

    async def delete_package(self, package_id: str) -> None:
        """
        Permanently delete a package and its reviews.

        Raises:
            NotFoundError: If package not found
            ConflictError: If bookings still reference the package
        """
        package = await self.get_package_by_id_or_raise(parse_uuid(package_id, "package"))

        booking_count = (await self.db.execute(
            select(func.count(Booking.id)).where(Booking.package_id == package.id)
        )).scalar_one()
        if booking_count:
            logger.warning(
                "Package deletion refused - bookings exist",
                extra={"package_id": package_id, "booking_count": booking_count}
            )
            raise ConflictError(
                detail=f"Package {package_id} has {booking_count} bookings; retire it instead",
                conflicting_resource={"package_id": package_id, "booking_count": booking_count}
            )

        await self.db.execute(delete(Review).where(Review.package_id == package.id))
        await self.db.delete(package)
        await self.db.commit()

        logger.info("Package deleted", extra={"package_id": package_id})
