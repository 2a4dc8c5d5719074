"""Concurrency tests for package capacity."""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from healthtour.core.database import Base
from healthtour.core.exceptions import CapacityFullError
from healthtour.models import *  # noqa: F403 - Import all models
from healthtour.models.booking import Booking, BookingStatus
from healthtour.schemas.booking import CreateBookingRequest, TransitionBookingRequest
from healthtour.schemas.package import CreatePackageRequest
from healthtour.services.booking_service import BookingService
from healthtour.services.inventory_service import InventoryService
from healthtour.services.package_service import PackageCatalogService


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Sessions on a file database so each task gets its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


async def seed(session_factory, sample_package_data, sample_booking_data, capacity: int, bookings: int):
    """Create a package and pending bookings; return their ids."""
    async with session_factory() as db:
        package = await PackageCatalogService(db).create_package(
            CreatePackageRequest(**{**sample_package_data, "max_capacity": capacity})
        )
        package_id = package.id

        booking_ids = []
        for _ in range(bookings):
            booking = await BookingService(db).create_booking(
                CreateBookingRequest(**{**sample_booking_data, "package_id": str(package_id)})
            )
            booking_ids.append(booking.id)

    return package_id, booking_ids


@pytest.mark.asyncio
async def test_concurrent_confirmations_no_overbooking(session_factory, sample_package_data, sample_booking_data):
    """Test that concurrent confirmations never take more than the package capacity."""
    capacity = 3
    package_id, booking_ids = await seed(
        session_factory, sample_package_data, sample_booking_data, capacity=capacity, bookings=10
    )

    async def confirm(booking_id):
        """Confirm a booking in its own session, like a separate request."""
        async with session_factory() as db:
            booking = await BookingService(db).transition_booking(
                TransitionBookingRequest(booking_id=str(booking_id), status="confirmed")
            )
            return booking.id

    results = await asyncio.gather(*(confirm(b) for b in booking_ids), return_exceptions=True)
    confirmed = [r for r in results if not isinstance(r, Exception)]

    assert 1 <= len(confirmed) <= capacity

    async with session_factory() as db:
        package = await InventoryService(db).get_package(package_id)
        reserved = (await db.execute(
            select(func.count(Booking.id)).where(
                Booking.package_id == package_id,
                Booking.inventory_reserved.is_(True)
            )
        )).scalar_one()
        confirmed_count = (await db.execute(
            select(func.count(Booking.id)).where(
                Booking.package_id == package_id,
                Booking.status == BookingStatus.CONFIRMED.value
            )
        )).scalar_one()

    # The counter always equals the number of bookings holding capacity
    assert package.current_bookings == reserved == confirmed_count == len(confirmed)
    assert package.current_bookings <= package.max_capacity


@pytest.mark.asyncio
async def test_sequential_confirmations_fill_capacity(test_session, package_factory, booking_request):
    """Test that confirmations past capacity fail and leave the counter at capacity."""
    package = await package_factory(max_capacity=2)
    package_id = package.id
    service = BookingService(test_session)

    booking_ids = []
    for _ in range(5):
        booking = await service.create_booking(booking_request(package))
        booking_ids.append(booking.id)

    outcomes = []
    for booking_id in booking_ids:
        try:
            await service.transition_booking(
                TransitionBookingRequest(booking_id=str(booking_id), status="confirmed")
            )
            outcomes.append("confirmed")
        except CapacityFullError:
            outcomes.append("full")

    assert outcomes == ["confirmed", "confirmed", "full", "full", "full"]
    package = await InventoryService(test_session).get_package(package_id)
    assert package.current_bookings == 2


@pytest.mark.asyncio
async def test_cancel_and_reconfirm_keeps_counter_consistent(test_session, package_factory, booking_request):
    """Test repeated cancel/confirm cycles never drift the counter."""
    package = await package_factory(max_capacity=1)
    package_id = package.id
    service = BookingService(test_session)

    booking_ids = []
    for _ in range(4):
        booking = await service.create_booking(booking_request(package))
        booking_ids.append(booking.id)

    for booking_id in booking_ids:
        await service.transition_booking(
            TransitionBookingRequest(booking_id=str(booking_id), status="confirmed")
        )
        await service.transition_booking(
            TransitionBookingRequest(booking_id=str(booking_id), status="cancelled")
        )

    package = await InventoryService(test_session).get_package(package_id)
    assert package.current_bookings == 0
