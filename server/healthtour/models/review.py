"""Review model definition."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .package import Package
    from .user import User


class Review(Base):
    """A user's rating and comment for a package."""

    __tablename__ = "reviews"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # References
    package_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("packages.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Review content
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)

    # True when the author held a confirmed or completed booking at review time
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Helpful votes, one per user
    helpful_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    voted_users: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        CheckConstraint("helpful_votes >= 0", name="ck_review_helpful_votes_non_negative"),
        CheckConstraint("length(title) > 0", name="ck_review_title_not_empty"),
        UniqueConstraint("package_id", "user_id", name="uq_review_package_user"),
        Index("ix_reviews_package_created", "package_id", "created_at"),
    )

    # Relationships
    package: Mapped["Package"] = relationship("Package", back_populates="reviews")
    user: Mapped["User"] = relationship("User", back_populates="reviews")

    def __repr__(self) -> str:
        return (
            f"<Review(id={self.id}, package_id={self.package_id}, "
            f"user_id={self.user_id}, rating={self.rating})>"
        )
