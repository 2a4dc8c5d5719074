"""Inventory service for package capacity counters."""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import is_postgresql
from ..core.exceptions import CapacityFullError, NotFoundError
from ..core.observability import metrics_collector
from ..models.package import Package

logger = logging.getLogger(__name__)


def is_available(package: Package, on: Optional[date] = None) -> bool:
    """
    Check whether a package can take another booking on ``on``.

    A package is available when it is active, has spare capacity, ``on`` falls
    inside its optional availability window and is not a blackout date.
    """
    on = on or date.today()

    if not package.is_active:
        return False
    if package.current_bookings >= package.max_capacity:
        return False
    if package.available_from and on < package.available_from:
        return False
    if package.available_until and on > package.available_until:
        return False
    if on.isoformat() in (package.blackout_dates or []):
        return False
    return True


class InventoryService:
    """
    Service for package capacity operations.

    ``reserve`` and ``release`` flush their change through a single conditional
    UPDATE but leave the commit to the caller, so the counter change lands in the
    same transaction as the booking status change that caused it.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lock_package(self, package_id: UUID) -> None:
        """
        Serialize capacity modifications on a package.

        Uses a transaction-scoped PostgreSQL advisory lock; released automatically
        at commit or rollback. Skipped for SQLite (used in tests).
        """
        if is_postgresql(self.db):
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:package_id))"),
                {"package_id": str(package_id)}
            )
            logger.debug(
                "Acquired advisory lock for package",
                extra={"package_id": str(package_id)}
            )

    async def get_package(self, package_id: UUID) -> Package:
        """Load a package bypassing the identity map's cached counters."""
        stmt = (
            select(Package)
            .where(Package.id == package_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        package = result.scalar_one_or_none()
        if not package:
            logger.warning(
                "Package not found for inventory operation",
                extra={"package_id": str(package_id)}
            )
            raise NotFoundError(
                resource_type="package",
                resource_id=str(package_id)
            )
        return package

    async def reserve(self, package_id: UUID) -> Package:
        """
        Take one unit of capacity from a package.

        The increment only applies while ``current_bookings < max_capacity``, so two
        concurrent reservations can never both take the last unit.

        Returns:
            Package with refreshed counters

        Raises:
            NotFoundError: If the package does not exist
            CapacityFullError: If the package is already at capacity
        """
        await self.lock_package(package_id)

        stmt = (
            update(Package)
            .where(
                Package.id == package_id,
                Package.current_bookings < Package.max_capacity
            )
            .values(current_bookings=Package.current_bookings + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        package = await self.get_package(package_id)

        if result.rowcount == 0:
            logger.warning(
                "Capacity reservation failed - package full",
                extra={
                    "package_id": str(package_id),
                    "current_bookings": package.current_bookings,
                    "max_capacity": package.max_capacity
                }
            )
            raise CapacityFullError(
                package_id=str(package_id),
                current_bookings=package.current_bookings,
                max_capacity=package.max_capacity
            )

        metrics_collector.set_capacity_utilization(
            str(package_id), package.current_bookings, package.max_capacity
        )
        logger.info(
            "Package capacity reserved",
            extra={
                "package_id": str(package_id),
                "current_bookings": package.current_bookings,
                "max_capacity": package.max_capacity
            }
        )

        return package

    async def release(self, package_id: UUID) -> Optional[Package]:
        """
        Give one unit of capacity back to a package.

        The counter never drops below zero; releasing an empty package is a no-op.
        Returns None if the package no longer exists.
        """
        await self.lock_package(package_id)

        stmt = (
            update(Package)
            .where(
                Package.id == package_id,
                Package.current_bookings > 0
            )
            .values(current_bookings=Package.current_bookings - 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        try:
            package = await self.get_package(package_id)
        except NotFoundError:
            return None

        if result.rowcount == 0:
            logger.warning(
                "Capacity release skipped - counter already at zero",
                extra={"package_id": str(package_id)}
            )
        else:
            metrics_collector.set_capacity_utilization(
                str(package_id), package.current_bookings, package.max_capacity
            )
            logger.info(
                "Package capacity released",
                extra={
                    "package_id": str(package_id),
                    "current_bookings": package.current_bookings,
                    "max_capacity": package.max_capacity
                }
            )

        return package

    async def check_availability(self, package_id: UUID, on: Optional[date] = None) -> bool:
        """Load a package and report whether it can take another booking."""
        package = await self.get_package(package_id)
        return is_available(package, on)
