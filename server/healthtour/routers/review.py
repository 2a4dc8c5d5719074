"""Review router for package reviews."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, RequiredAuth
from ..models.review import Review as ReviewModel
from ..schemas.common import Pagination
from ..schemas.review import (
    CreateReviewRequest,
    ListReviewsRequest,
    Review,
    ReviewIdRequest,
    ReviewListResponse,
    UpdateReviewRequest,
)
from ..services.review_service import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/review", tags=["review"])


def _convert_review_to_schema(review_model: ReviewModel) -> Review:
    """Convert review model to schema."""
    return Review(
        id=str(review_model.id),
        package_id=str(review_model.package_id),
        user_id=str(review_model.user_id),
        rating=review_model.rating,
        title=review_model.title,
        comment=review_model.comment,
        is_verified=review_model.is_verified,
        helpful_votes=review_model.helpful_votes,
        created_at=review_model.created_at,
        updated_at=review_model.updated_at
    )


def _review_response(review_model: ReviewModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_convert_review_to_schema(review_model).model_dump(mode="json")
    )


@router.post("/list", response_model=ReviewListResponse)
async def list_reviews(
    request: ListReviewsRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """List a package's reviews, newest first."""
    reviews, total, page, limit = await ReviewService(db).list_reviews(request)
    response_data = ReviewListResponse(
        items=[_convert_review_to_schema(r) for r in reviews],
        pagination=Pagination.build(page, limit, total)
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/create", response_model=Review)
async def create_review(
    request: CreateReviewRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """Review a package. Each user may review a package once."""
    review = await ReviewService(db).create_review(str(user["user_id"]), request)
    return _review_response(review, status_code=201)


@router.post("/update", response_model=Review)
async def update_review(
    request: UpdateReviewRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """Edit one's own review."""
    review = await ReviewService(db).update_review(str(user["user_id"]), request)
    return _review_response(review)


@router.post("/delete")
async def delete_review(
    request: ReviewIdRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """Delete one's own review."""
    await ReviewService(db).delete_review(str(user["user_id"]), request.review_id)
    return JSONResponse(status_code=200, content={"deleted": True, "review_id": request.review_id})


@router.post("/helpful", response_model=Review)
async def vote_helpful(
    request: ReviewIdRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """Mark a review as helpful; repeated votes by the same user count once."""
    review = await ReviewService(db).vote_helpful(str(user["user_id"]), request.review_id)

    logger.debug(
        "Helpful vote via API",
        extra={"review_id": request.review_id, "helpful_votes": review.helpful_votes}
    )

    return _review_response(review)
