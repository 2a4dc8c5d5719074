"""Review service for package reviews and helpful votes."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import AuthorizationError, DuplicateReviewError, NotFoundError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from ..models.review import Review
from ..schemas.review import CreateReviewRequest, ListReviewsRequest, UpdateReviewRequest
from .package_service import PackageCatalogService, parse_uuid
from .rating_service import RatingService

logger = logging.getLogger(__name__)

VERIFYING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)


class ReviewService:
    """Service for review operations. Every write refreshes the package rating."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.package_service = PackageCatalogService(db)
        self.rating_service = RatingService(db)

    async def create_review(self, user_id: str, request: CreateReviewRequest) -> Review:
        """
        Create a review for a package.

        Args:
            user_id: Reviewing user
            request: Review content

        Returns:
            Created review entity

        Raises:
            NotFoundError: If package not found
            DuplicateReviewError: If the user already reviewed the package
        """
        package_id = parse_uuid(request.package_id, "package")
        user_uuid = parse_uuid(user_id, "user")
        await self.package_service.get_package_by_id_or_raise(package_id)

        existing = await self.get_review_for_user(package_id, user_uuid)
        if existing:
            logger.warning(
                "Review creation failed - already reviewed",
                extra={"package_id": str(package_id), "user_id": user_id, "review_id": str(existing.id)}
            )
            raise DuplicateReviewError(str(package_id), user_id, str(existing.id))

        review = Review(
            package_id=package_id,
            user_id=user_uuid,
            rating=request.rating,
            title=request.title,
            comment=request.comment,
            is_verified=await self.has_verifying_booking(package_id, user_uuid),
            helpful_votes=0,
            voted_users=[]
        )

        try:
            self.db.add(review)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            existing = await self.get_review_for_user(package_id, user_uuid)
            if existing:
                raise DuplicateReviewError(str(package_id), user_id, str(existing.id)) from e
            raise

        metrics_collector.record_review_written("create")
        logger.info(
            "Review created successfully",
            extra={
                "review_id": str(review.id),
                "package_id": str(package_id),
                "user_id": user_id,
                "rating": review.rating,
                "is_verified": review.is_verified
            }
        )

        await self.rating_service.recompute_safely(package_id)
        return review

    async def update_review(self, user_id: str, request: UpdateReviewRequest) -> Review:
        """
        Update the caller's own review.

        Raises:
            NotFoundError: If review not found
            AuthorizationError: If the caller does not own the review
        """
        review = await self.get_review_by_id_or_raise(parse_uuid(request.review_id, "review"))
        self._ensure_owner(review, user_id)

        if request.rating is not None:
            review.rating = request.rating
        if request.title is not None:
            review.title = request.title
        if request.comment is not None:
            review.comment = request.comment

        self.db.add(review)
        await self.db.commit()

        metrics_collector.record_review_written("update")
        logger.info(
            "Review updated successfully",
            extra={"review_id": str(review.id), "user_id": user_id, "rating": review.rating}
        )

        await self.rating_service.recompute_safely(review.package_id)
        return review

    async def delete_review(self, user_id: str, review_id: str) -> None:
        """
        Delete the caller's own review.

        Raises:
            NotFoundError: If review not found
            AuthorizationError: If the caller does not own the review
        """
        review = await self.get_review_by_id_or_raise(parse_uuid(review_id, "review"))
        self._ensure_owner(review, user_id)
        package_id = review.package_id

        await self.db.delete(review)
        await self.db.commit()

        metrics_collector.record_review_written("delete")
        logger.info(
            "Review deleted successfully",
            extra={"review_id": review_id, "package_id": str(package_id), "user_id": user_id}
        )

        await self.rating_service.recompute_safely(package_id)

    async def vote_helpful(self, user_id: str, review_id: str) -> Review:
        """Count the caller's helpful vote once; repeated votes change nothing."""
        review = await self.get_review_by_id_or_raise(parse_uuid(review_id, "review"))

        voter = str(parse_uuid(user_id, "user"))
        voters = list(review.voted_users or [])
        if voter in voters:
            logger.info(
                "Helpful vote already recorded",
                extra={"review_id": review_id, "user_id": user_id}
            )
            return review

        review.voted_users = voters + [voter]
        review.helpful_votes = len(review.voted_users)

        self.db.add(review)
        await self.db.commit()

        logger.info(
            "Helpful vote recorded",
            extra={"review_id": review_id, "user_id": user_id, "helpful_votes": review.helpful_votes}
        )

        return review

    async def list_reviews(self, request: ListReviewsRequest) -> tuple[list[Review], int, int, int]:
        """
        List a package's reviews, newest first.

        Returns:
            (reviews, total, page, limit)
        """
        package_id = parse_uuid(request.package_id, "package")
        limit = min(request.limit or settings.default_page_size, settings.max_page_size)

        conditions = [Review.package_id == package_id]
        if request.rating:
            conditions.append(Review.rating == request.rating)

        total = (await self.db.execute(
            select(func.count(Review.id)).where(*conditions)
        )).scalar_one()

        stmt = (
            select(Review)
            .where(*conditions)
            .order_by(Review.created_at.desc(), Review.id)
            .offset((request.page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars()), total, request.page, limit

    async def get_review_by_id(self, review_id: UUID) -> Optional[Review]:
        """Get review by ID."""
        stmt = select(Review).where(Review.id == review_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_review_by_id_or_raise(self, review_id: UUID) -> Review:
        """Get review by ID or raise NotFoundError."""
        review = await self.get_review_by_id(review_id)
        if not review:
            logger.warning("Review not found", extra={"review_id": str(review_id)})
            raise NotFoundError(resource_type="review", resource_id=str(review_id))
        return review

    async def get_review_for_user(self, package_id: UUID, user_id: UUID) -> Optional[Review]:
        stmt = select(Review).where(Review.package_id == package_id, Review.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def has_verifying_booking(self, package_id: UUID, user_id: UUID) -> bool:
        """True when the user holds a confirmed or completed booking for the package."""
        stmt = select(func.count(Booking.id)).where(
            Booking.package_id == package_id,
            Booking.user_id == user_id,
            Booking.status.in_(VERIFYING_STATUSES)
        )
        return bool((await self.db.execute(stmt)).scalar_one())

    def _ensure_owner(self, review: Review, user_id: str) -> None:
        if review.user_id != parse_uuid(user_id, "user"):
            logger.warning(
                "Review modification refused - not the author",
                extra={"review_id": str(review.id), "user_id": user_id}
            )
            raise AuthorizationError(detail="Only the author may modify this review")
