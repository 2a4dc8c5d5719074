"""Unit tests for package capacity tracking."""

from datetime import date, timedelta
from uuid import uuid4

import pytest

from healthtour.core.exceptions import CapacityFullError, NotFoundError
from healthtour.models.package import Package
from healthtour.services.inventory_service import InventoryService, is_available


@pytest.mark.asyncio
async def test_reserve_and_release(test_session, package_factory):
    """Test reserve and release move the counter by one."""
    package = await package_factory(max_capacity=2)
    service = InventoryService(test_session)

    reserved = await service.reserve(package.id)
    assert reserved.current_bookings == 1

    released = await service.release(package.id)
    assert released.current_bookings == 0


@pytest.mark.asyncio
async def test_reserve_refuses_beyond_capacity(test_session, package_factory):
    """Test the last unit can only be taken once."""
    package = await package_factory(max_capacity=1)
    package_id = package.id
    service = InventoryService(test_session)

    await service.reserve(package_id)

    with pytest.raises(CapacityFullError) as exc_info:
        await service.reserve(package_id)

    assert exc_info.value.problem_details["code"] == "FULL"
    package = await service.get_package(package_id)
    assert package.current_bookings == 1


@pytest.mark.asyncio
async def test_zero_capacity_package_is_always_full(test_session, package_factory):
    """Test a package without capacity cannot be reserved."""
    package = await package_factory(max_capacity=0)

    with pytest.raises(CapacityFullError):
        await InventoryService(test_session).reserve(package.id)


@pytest.mark.asyncio
async def test_release_never_goes_negative(test_session, sample_package):
    """Test releasing an empty package leaves the counter at zero."""
    released = await InventoryService(test_session).release(sample_package.id)

    assert released.current_bookings == 0


@pytest.mark.asyncio
async def test_release_missing_package(test_session):
    """Test releasing capacity on a deleted package is a no-op."""
    assert await InventoryService(test_session).release(uuid4()) is None


@pytest.mark.asyncio
async def test_reserve_missing_package(test_session):
    """Test reserving capacity on an unknown package."""
    with pytest.raises(NotFoundError):
        await InventoryService(test_session).reserve(uuid4())


@pytest.mark.asyncio
async def test_check_availability(test_session, sample_package):
    """Test availability of an open package."""
    assert await InventoryService(test_session).check_availability(sample_package.id) is True


def test_is_available_rules():
    """Test each availability rule on its own."""
    today = date(2025, 6, 15)

    def package(**overrides) -> Package:
        fields = {
            "is_active": True,
            "current_bookings": 0,
            "max_capacity": 3,
            "available_from": None,
            "available_until": None,
            "blackout_dates": [],
        }
        fields.update(overrides)
        return Package(**fields)

    assert is_available(package(), today)
    assert not is_available(package(is_active=False), today)
    assert not is_available(package(current_bookings=3), today)
    assert not is_available(package(available_from=today + timedelta(days=1)), today)
    assert not is_available(package(available_until=today - timedelta(days=1)), today)
    assert not is_available(package(blackout_dates=["2025-06-15"]), today)
    assert is_available(package(available_from=today, available_until=today), today)
