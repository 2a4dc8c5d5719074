"""Review-related Pydantic schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .common import Pagination


class CreateReviewRequest(BaseModel):
    """Request schema for reviewing a package."""

    package_id: str = Field(..., description="Package being reviewed")
    rating: int = Field(..., ge=1, le=5, description="Star rating 1-5")
    title: str = Field(..., min_length=1, max_length=100, description="Review title")
    comment: str = Field(..., min_length=1, max_length=1000, description="Review text")


class UpdateReviewRequest(BaseModel):
    """Request schema for editing one's own review."""

    review_id: str = Field(..., description="Review to update")
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    comment: Optional[str] = Field(None, min_length=1, max_length=1000)


class ReviewIdRequest(BaseModel):
    """Request schema addressing a single review."""

    review_id: str = Field(..., description="Review ID")


class ListReviewsRequest(BaseModel):
    """Review list filters."""

    package_id: str = Field(..., description="Package whose reviews to list")
    rating: Optional[int] = Field(None, ge=1, le=5, description="Only this star rating")
    page: int = Field(1, ge=1)
    limit: Optional[int] = Field(None, ge=1)


class Review(BaseModel):
    """Review response schema."""

    id: str
    package_id: str
    user_id: str
    rating: int
    title: str
    comment: str
    is_verified: bool
    helpful_votes: int
    created_at: datetime
    updated_at: datetime


class ReviewListResponse(BaseModel):
    """Paginated review list."""

    items: List[Review]
    pagination: Pagination
