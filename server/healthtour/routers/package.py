"""Package router for catalog operations."""

import logging
from datetime import date

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession
from ..models.package import Package as PackageModel
from ..schemas.common import Pagination
from ..schemas.package import (
    AdminSearchPackagesRequest,
    CreatePackageRequest,
    DeletePackageRequest,
    Discount,
    GetPackageRequest,
    Location,
    Package,
    PackageListResponse,
    PackageServiceItem,
    SearchPackagesRequest,
    SetPackageActiveRequest,
    UpdatePackageRequest,
)
from ..services.catalog_query import CatalogQuery
from ..services.inventory_service import is_available
from ..services.package_service import PackageCatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/package", tags=["package"])


def _convert_package_to_schema(package_model: PackageModel) -> Package:
    """Convert package model to schema."""
    return Package(
        id=str(package_model.id),
        title=package_model.title,
        description=package_model.description,
        category=package_model.category,
        facility_name=package_model.facility_name,
        facility_type=package_model.facility_type,
        location=Location(
            city=package_model.city,
            country=package_model.country,
            address=package_model.address,
            latitude=package_model.latitude,
            longitude=package_model.longitude
        ),
        duration_days=package_model.duration_days,
        duration_nights=package_model.duration_nights,
        duration_string=package_model.duration_string,
        base_price=package_model.base_price,
        discounted_price=package_model.discounted_price(date.today()),
        currency=package_model.currency,
        includes_flights=package_model.includes_flights,
        includes_accommodation=package_model.includes_accommodation,
        includes_transfers=package_model.includes_transfers,
        meals=package_model.meals,
        discounts=[Discount(**d) for d in package_model.discounts or []],
        experience_types=[e.name for e in package_model.experience_types],
        services=[PackageServiceItem.model_validate(s) for s in package_model.services],
        tags=[t.name for t in package_model.tags],
        available_from=package_model.available_from,
        available_until=package_model.available_until,
        blackout_dates=package_model.blackout_dates or [],
        max_capacity=package_model.max_capacity,
        current_bookings=package_model.current_bookings,
        rating_average=package_model.rating_average,
        rating_count=package_model.rating_count,
        is_active=package_model.is_active,
        is_featured=package_model.is_featured,
        created_at=package_model.created_at,
        updated_at=package_model.updated_at
    )


def _list_response(packages: list[PackageModel], total: int, query: CatalogQuery) -> JSONResponse:
    response_data = PackageListResponse(
        items=[_convert_package_to_schema(p) for p in packages],
        pagination=Pagination.build(query.page, query.limit, total)
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/search", response_model=PackageListResponse)
async def search_packages(
    request: SearchPackagesRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """
    Search the public catalog.

    All supplied criteria must match. Only active packages are returned.
    """
    packages, total, query = await PackageCatalogService(db).search_packages(request)
    return _list_response(packages, total, query)


@router.post("/get", response_model=Package)
async def get_package(
    request: GetPackageRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get an active package."""
    package = await PackageCatalogService(db).get_public_package(request.package_id)
    return JSONResponse(
        status_code=200,
        content=_convert_package_to_schema(package).model_dump(mode="json")
    )


@router.post("/featured", response_model=list[Package])
async def featured_packages(db: AsyncSession = DatabaseSession) -> JSONResponse:
    """Active featured packages, best rated first."""
    packages = await PackageCatalogService(db).list_featured()
    return JSONResponse(
        status_code=200,
        content=[_convert_package_to_schema(p).model_dump(mode="json") for p in packages]
    )


@router.post("/availability")
async def package_availability(
    request: GetPackageRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Report whether a package can take another booking today."""
    package = await PackageCatalogService(db).get_public_package(request.package_id)
    return JSONResponse(
        status_code=200,
        content={
            "package_id": str(package.id),
            "available": is_available(package),
            "current_bookings": package.current_bookings,
            "max_capacity": package.max_capacity
        }
    )


@router.post("/create", response_model=Package)
async def create_package(
    request: CreatePackageRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Create a new package (administrators only)."""
    package = await PackageCatalogService(db).create_package(request)

    logger.info(
        "Package created via API",
        extra={"package_id": str(package.id), "actor": user["user_id"]}
    )

    return JSONResponse(
        status_code=201,
        content=_convert_package_to_schema(package).model_dump(mode="json")
    )


@router.post("/admin-search", response_model=PackageListResponse)
async def admin_search_packages(
    request: AdminSearchPackagesRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Search the whole catalog including retired packages (administrators only)."""
    packages, total, query = await PackageCatalogService(db).admin_search_packages(request)
    return _list_response(packages, total, query)


@router.post("/update", response_model=Package)
async def update_package(
    request: UpdatePackageRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Edit a package's details, pricing, capacity or services (administrators only)."""
    package = await PackageCatalogService(db).update_package(request)

    logger.info(
        "Package updated via API",
        extra={"package_id": request.package_id, "actor": user["user_id"]}
    )

    return JSONResponse(
        status_code=200,
        content=_convert_package_to_schema(package).model_dump(mode="json")
    )


@router.post("/set-active", response_model=Package)
async def set_package_active(
    request: SetPackageActiveRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Retire or re-activate a package (administrators only)."""
    package = await PackageCatalogService(db).set_active(request.package_id, request.is_active)
    return JSONResponse(
        status_code=200,
        content=_convert_package_to_schema(package).model_dump(mode="json")
    )


@router.post("/delete")
async def delete_package(
    request: DeletePackageRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Permanently delete a package without bookings (administrators only)."""
    await PackageCatalogService(db).delete_package(request.package_id)

    logger.info(
        "Package deleted via API",
        extra={"package_id": request.package_id, "actor": user["user_id"]}
    )

    return JSONResponse(status_code=200, content={"deleted": True, "package_id": request.package_id})
