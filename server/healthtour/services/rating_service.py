"""Rating aggregate maintenance for packages."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.package import Package
from ..models.review import Review
from .pricing import round_half_up

logger = logging.getLogger(__name__)


def rounded_average(average: Optional[float]) -> float:
    """Round a mean rating half-up to one decimal; no reviews is 0."""
    if average is None:
        return 0.0
    return float(round_half_up(average, 1))


class RatingService:
    """Recomputes a package's rating average and count from its reviews."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def recompute(self, package_id: UUID) -> tuple[float, int]:
        """
        Recompute and store the rating aggregate for a package.

        Returns:
            (average, count) written onto the package
        """
        stmt = select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.package_id == package_id
        )
        result = await self.db.execute(stmt)
        average, count = result.one()

        rating_average = rounded_average(average) if count else 0.0
        rating_count = int(count or 0)

        await self.db.execute(
            update(Package)
            .where(Package.id == package_id)
            .values(rating_average=rating_average, rating_count=rating_count)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        logger.info(
            "Package rating recomputed",
            extra={
                "package_id": str(package_id),
                "rating_average": rating_average,
                "rating_count": rating_count
            }
        )

        return rating_average, rating_count

    async def recompute_safely(self, package_id: UUID) -> Optional[tuple[float, int]]:
        """
        Recompute the aggregate after a review write.

        A failure here is logged and swallowed; the review write has already
        been committed and stays in place.
        """
        try:
            return await self.recompute(package_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to recompute package rating",
                extra={
                    "package_id": str(package_id),
                    "error": str(e)
                },
                exc_info=True
            )
            return None
