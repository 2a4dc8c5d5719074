"""Unit tests for the package catalog and its query builder."""

import pytest
import pytest_asyncio

from healthtour.core.exceptions import ConflictError, NotFoundError, ValidationError
from healthtour.schemas.booking import TransitionBookingRequest
from healthtour.schemas.package import (
    AdminSearchPackagesRequest,
    CreatePackageRequest,
    SearchPackagesRequest,
    UpdatePackageRequest,
)
from healthtour.services.booking_service import BookingService
from healthtour.services.catalog_query import LocationMatch, build_catalog_query, parse_sort
from healthtour.services.package_service import PackageCatalogService


@pytest_asyncio.fixture
async def catalog(package_factory):
    """Seed a small catalog across cities, prices and durations."""

    async def seed():
        return {
            "antalya": await package_factory(
                title="Antalya Dental Makeover",
                location={"city": "Antalya", "country": "Turkey"},
                base_price=100000,
                duration_days=7,
                tags=["veneers"],
                is_featured=True,
            ),
            "istanbul": await package_factory(
                title="Istanbul Hair Transplant",
                description="FUE hair transplant with PRP",
                category="hair-transplant",
                location={"city": "Istanbul", "country": "Turkey"},
                base_price=180000,
                duration_days=3,
                duration_nights=2,
                experience_types=["Quick Care"],
                services=[{"name": "PRP Session", "included": False, "additional_cost": 20000}],
                tags=["fue"],
            ),
            "budapest": await package_factory(
                title="Budapest Thermal Week",
                description="Thermal baths and physiotherapy",
                category="wellness-spa",
                facility_name="Szechenyi Spa Clinic",
                location={"city": "Budapest", "country": "Hungary"},
                base_price=90000,
                duration_days=16,
                duration_nights=15,
                experience_types=["Relaxing (Wellness)"],
                services=[{"name": "Physiotherapy", "included": True}],
                tags=["thermal"],
            ),
            "retired": await package_factory(
                title="Retired Antalya Package",
                location={"city": "Antalya", "country": "Turkey"},
                is_active=False,
            ),
        }

    return seed


async def search_titles(test_session, **criteria) -> list[str]:
    packages, _, _ = await PackageCatalogService(test_session).search_packages(
        SearchPackagesRequest(sort="title", **criteria)
    )
    return [p.title for p in packages]


@pytest.mark.asyncio
async def test_create_package(test_session, sample_package_data):
    """Test creating a package with its services, facets and tags."""
    package = await PackageCatalogService(test_session).create_package(
        CreatePackageRequest(**sample_package_data)
    )

    assert package.id is not None
    assert package.current_bookings == 0
    assert package.rating_average == 0.0
    assert package.duration_string == "7 days, 6 nights"
    assert [s.name for s in package.services] == ["Airport Transfer", "Teeth Whitening"]
    assert package.services[0].additional_cost == 0
    assert [e.name for e in package.experience_types] == ["Treatment-Focused"]
    assert [t.name for t in package.tags] == ["veneers"]


@pytest.mark.asyncio
async def test_create_package_duplicate_service_names(test_session, sample_package_data):
    """Test service names must be unique within a package."""
    data = {**sample_package_data, "services": [{"name": "Translator"}, {"name": "Translator"}]}

    with pytest.raises(ValidationError):
        await PackageCatalogService(test_session).create_package(CreatePackageRequest(**data))


def test_create_package_availability_window():
    """Test the availability window must be ordered."""
    with pytest.raises(ValueError):
        CreatePackageRequest(
            title="Backwards",
            description="Window ends before it starts",
            category="dental-care",
            facility_name="Clinic",
            location={"city": "Izmir"},
            duration_days=2,
            duration_nights=1,
            base_price=1000,
            available_from="2025-06-10",
            available_until="2025-06-01",
        )


@pytest.mark.asyncio
async def test_search_excludes_inactive(test_session, catalog):
    """Test retired packages never appear in the public catalog."""
    await catalog()

    titles = await search_titles(test_session, location="Antalya")

    assert titles == ["Antalya Dental Makeover"]


@pytest.mark.asyncio
async def test_search_text_matches_any_field(test_session, catalog):
    """Test text search covers title, description, facility and tags."""
    await catalog()

    assert await search_titles(test_session, search="thermal") == ["Budapest Thermal Week"]
    assert await search_titles(test_session, search="FUE") == ["Istanbul Hair Transplant"]
    assert await search_titles(test_session, search="szechenyi") == ["Budapest Thermal Week"]
    assert await search_titles(test_session, search="veneers") == ["Antalya Dental Makeover"]


@pytest.mark.asyncio
async def test_search_text_escapes_wildcards(test_session, catalog):
    """Test LIKE wildcards in the search term are matched literally."""
    await catalog()

    assert await search_titles(test_session, search="%") == []


@pytest.mark.asyncio
async def test_search_location(test_session, catalog):
    """Test 'City, Country' requires both parts; a single token matches either."""
    await catalog()

    assert await search_titles(test_session, location="Istanbul, Turkey") == ["Istanbul Hair Transplant"]
    assert await search_titles(test_session, location="Istanbul, Hungary") == []
    assert await search_titles(test_session, location="Turkey") == [
        "Antalya Dental Makeover",
        "Istanbul Hair Transplant",
    ]


@pytest.mark.asyncio
async def test_search_price_and_duration(test_session, catalog):
    """Test price range and duration bucket filters."""
    await catalog()

    assert await search_titles(test_session, min_price=95000, max_price=180000) == [
        "Antalya Dental Makeover",
        "Istanbul Hair Transplant",
    ]
    assert await search_titles(test_session, duration="1-3") == ["Istanbul Hair Transplant"]
    assert await search_titles(test_session, duration="4-7") == ["Antalya Dental Makeover"]
    assert await search_titles(test_session, duration="8-14") == []
    assert await search_titles(test_session, duration="15+") == ["Budapest Thermal Week"]


@pytest.mark.asyncio
async def test_search_facets(test_session, catalog):
    """Test experience type and service filters match any listed value."""
    await catalog()

    assert await search_titles(test_session, experience_types=["Quick Care"]) == ["Istanbul Hair Transplant"]
    assert await search_titles(test_session, services=["Physiotherapy", "PRP Session"]) == [
        "Budapest Thermal Week",
        "Istanbul Hair Transplant",
    ]
    assert await search_titles(test_session, category="wellness-spa") == ["Budapest Thermal Week"]


@pytest.mark.asyncio
async def test_search_criteria_are_combined(test_session, catalog):
    """Test every supplied criterion must hold."""
    await catalog()

    assert await search_titles(test_session, location="Turkey", max_price=150000) == [
        "Antalya Dental Makeover"
    ]


@pytest.mark.asyncio
async def test_search_sort_and_pagination(test_session, catalog):
    """Test sorting by price and paging through results."""
    await catalog()
    service = PackageCatalogService(test_session)

    packages, total, query = await service.search_packages(
        SearchPackagesRequest(sort="-price", page=2, limit=2)
    )

    assert total == 3
    assert query.offset == 2
    assert [p.title for p in packages] == ["Budapest Thermal Week"]


def test_parse_sort_unknown_key():
    """Test sorting by an unknown field is refused."""
    with pytest.raises(ValidationError):
        parse_sort("-popularity")


def test_location_parse():
    """Test location strings are split into city and country."""
    assert LocationMatch.parse("Antalya, Turkey") == LocationMatch(city="Antalya", country="Turkey")
    assert LocationMatch.parse("Turkey") == LocationMatch(either="Turkey")


def test_public_query_always_filters_active():
    """Test the public query carries the active filter without criteria."""
    query = build_catalog_query(SearchPackagesRequest())

    assert len(query.fragments) == 1
    assert "is_active" in str(query.predicate)


@pytest.mark.asyncio
async def test_admin_search_includes_inactive(test_session, catalog):
    """Test administrative search sees retired packages unless excluded."""
    await catalog()
    service = PackageCatalogService(test_session)

    _, total, _ = await service.admin_search_packages(AdminSearchPackagesRequest(location="Antalya"))
    assert total == 2

    _, total, _ = await service.admin_search_packages(
        AdminSearchPackagesRequest(location="Antalya", include_inactive=False)
    )
    assert total == 1


@pytest.mark.asyncio
async def test_get_public_package_hides_retired(test_session, catalog):
    """Test retired packages are not found through the public lookup."""
    packages = await catalog()
    service = PackageCatalogService(test_session)

    with pytest.raises(NotFoundError):
        await service.get_public_package(str(packages["retired"].id))

    with pytest.raises(NotFoundError):
        await service.get_public_package("not-a-uuid")


@pytest.mark.asyncio
async def test_list_featured(test_session, catalog):
    """Test only active featured packages are listed."""
    await catalog()

    featured = await PackageCatalogService(test_session).list_featured()

    assert [p.title for p in featured] == ["Antalya Dental Makeover"]


@pytest.mark.asyncio
async def test_set_active(test_session, sample_package):
    """Test retiring a package."""
    package = await PackageCatalogService(test_session).set_active(str(sample_package.id), False)

    assert package.is_active is False


@pytest.mark.asyncio
async def test_delete_package(test_session, sample_package):
    """Test deleting a package without bookings."""
    service = PackageCatalogService(test_session)
    package_id = sample_package.id

    await service.delete_package(str(package_id))

    assert await service.get_package_by_id(package_id) is None


@pytest.mark.asyncio
async def test_delete_package_with_bookings(test_session, sample_package, booking_request):
    """Test a booked package must be retired rather than deleted."""
    await BookingService(test_session).create_booking(booking_request(sample_package))

    with pytest.raises(ConflictError):
        await PackageCatalogService(test_session).delete_package(str(sample_package.id))


@pytest.mark.asyncio
async def test_update_package_fields(test_session, sample_package):
    """Test editing price, discounts, window and blackout dates."""
    service = PackageCatalogService(test_session)
    package_id = sample_package.id

    package = await service.update_package(UpdatePackageRequest(
        package_id=str(package_id),
        title="Antalya Smile Week",
        base_price=120000,
        discounts=[{"type": "early-bird", "percentage": 10}],
        available_from="2030-01-01",
        available_until="2030-12-31",
        blackout_dates=["2030-06-01"],
        location={"city": "Alanya", "country": "Turkey"},
    ))

    assert package.title == "Antalya Smile Week"
    assert package.base_price == 120000
    assert package.discounts[0]["percentage"] == 10
    assert package.blackout_dates == ["2030-06-01"]
    assert package.city == "Alanya"
    assert package.description == sample_package.description
    assert package.max_capacity == 5


@pytest.mark.asyncio
async def test_update_package_replaces_services_and_tags(test_session, sample_package):
    """Test services and tags given in an edit replace the current set."""
    service = PackageCatalogService(test_session)

    package = await service.update_package(UpdatePackageRequest(
        package_id=str(sample_package.id),
        services=[
            {"name": "Teeth Whitening", "included": True},
            {"name": "Translator", "included": False, "additional_cost": 5000},
        ],
        tags=["veneers", "smile"],
    ))

    assert [(s.name, s.included, s.additional_cost) for s in package.services] == [
        ("Teeth Whitening", True, 0),
        ("Translator", False, 5000),
    ]
    assert sorted(t.name for t in package.tags) == ["smile", "veneers"]


@pytest.mark.asyncio
async def test_update_package_ignores_counters(test_session, sample_package):
    """Test booking counters and ratings cannot be set through an edit."""
    request = UpdatePackageRequest(
        package_id=str(sample_package.id),
        current_bookings=4,
        rating_average=5.0,
        rating_count=99,
    )

    package = await PackageCatalogService(test_session).update_package(request)

    assert package.current_bookings == 0
    assert package.rating_average == 0.0
    assert package.rating_count == 0


@pytest.mark.asyncio
async def test_update_package_capacity_below_bookings(test_session, package_factory, booking_request):
    """Test capacity cannot drop below the bookings already holding it."""
    package = await package_factory(max_capacity=3)
    package_id = package.id
    booking_service = BookingService(test_session)
    for _ in range(2):
        booking = await booking_service.create_booking(booking_request(package))
        await booking_service.transition_booking(
            TransitionBookingRequest(booking_id=str(booking.id), status="confirmed")
        )
        package = await booking_service.package_service.get_package_by_id_or_raise(package_id)

    service = PackageCatalogService(test_session)
    with pytest.raises(ConflictError):
        await service.update_package(UpdatePackageRequest(package_id=str(package_id), max_capacity=1))

    package = await service.update_package(UpdatePackageRequest(package_id=str(package_id), max_capacity=2))
    assert package.max_capacity == 2
    assert package.current_bookings == 2


@pytest.mark.asyncio
async def test_update_package_invalid_window(test_session, sample_package):
    """Test an edit cannot leave the availability window reversed."""
    service = PackageCatalogService(test_session)
    await service.update_package(UpdatePackageRequest(
        package_id=str(sample_package.id), available_until="2030-01-31"
    ))

    with pytest.raises(ValidationError):
        await service.update_package(UpdatePackageRequest(
            package_id=str(sample_package.id), available_from="2030-02-01"
        ))


@pytest.mark.asyncio
async def test_update_package_duplicate_service_names(test_session, sample_package):
    """Test duplicate service names are refused before anything changes."""
    service = PackageCatalogService(test_session)

    with pytest.raises(ValidationError):
        await service.update_package(UpdatePackageRequest(
            package_id=str(sample_package.id),
            title="Should not stick",
            services=[{"name": "Translator"}, {"name": "Translator"}],
        ))

    package = await service.get_package_by_id_or_raise(sample_package.id)
    assert package.title == "Antalya Dental Makeover"
