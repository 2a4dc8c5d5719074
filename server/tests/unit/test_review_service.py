"""Unit tests for reviews and the rating aggregate."""

from uuid import uuid4

import pytest

from healthtour.core.exceptions import AuthorizationError, DuplicateReviewError, NotFoundError
from healthtour.schemas.booking import TransitionBookingRequest
from healthtour.schemas.review import CreateReviewRequest, ListReviewsRequest, UpdateReviewRequest
from healthtour.services.booking_service import BookingService
from healthtour.services.package_service import PackageCatalogService
from healthtour.services.rating_service import RatingService, rounded_average
from healthtour.services.review_service import ReviewService


def review_request(package, rating: int = 5, title: str = "Great care") -> CreateReviewRequest:
    return CreateReviewRequest(
        package_id=str(package.id),
        rating=rating,
        title=title,
        comment="Friendly staff and a smooth recovery"
    )


async def rating_of(test_session, package_id) -> tuple[float, int]:
    package = await PackageCatalogService(test_session).get_package_by_id_or_raise(package_id)
    return package.rating_average, package.rating_count


@pytest.mark.asyncio
async def test_reviews_update_package_rating(test_session, sample_package):
    """Test the aggregate is the rounded mean of all reviews."""
    service = ReviewService(test_session)

    await service.create_review(str(uuid4()), review_request(sample_package, rating=5))
    await service.create_review(str(uuid4()), review_request(sample_package, rating=3))

    assert await rating_of(test_session, sample_package.id) == (4.0, 2)


@pytest.mark.asyncio
async def test_rating_rounds_to_one_decimal(test_session, sample_package):
    """Test 5, 4 and 4 average to 4.3."""
    service = ReviewService(test_session)

    for rating in (5, 4, 4):
        await service.create_review(str(uuid4()), review_request(sample_package, rating=rating))

    assert await rating_of(test_session, sample_package.id) == (4.3, 3)


@pytest.mark.asyncio
async def test_duplicate_review(test_session, sample_package):
    """Test a user can review a package only once."""
    service = ReviewService(test_session)
    user_id = str(uuid4())
    await service.create_review(user_id, review_request(sample_package))

    with pytest.raises(DuplicateReviewError) as exc_info:
        await service.create_review(user_id, review_request(sample_package, rating=1))

    assert exc_info.value.problem_details["code"] == "DUPLICATE_REVIEW"
    assert await rating_of(test_session, sample_package.id) == (5.0, 1)


@pytest.mark.asyncio
async def test_review_unknown_package(test_session):
    """Test reviewing a package that does not exist."""
    request = CreateReviewRequest(
        package_id=str(uuid4()), rating=4, title="Hmm", comment="Where did it go?"
    )

    with pytest.raises(NotFoundError):
        await ReviewService(test_session).create_review(str(uuid4()), request)


@pytest.mark.asyncio
async def test_review_verified_by_confirmed_booking(test_session, sample_package, booking_request, customer):
    """Test reviews from customers with a confirmed booking are verified."""
    booking_service = BookingService(test_session)
    booking = await booking_service.create_booking(booking_request(sample_package, user_id=str(customer.id)))
    await booking_service.transition_booking(
        TransitionBookingRequest(booking_id=str(booking.id), status="confirmed")
    )

    review = await ReviewService(test_session).create_review(str(customer.id), review_request(sample_package))
    unverified = await ReviewService(test_session).create_review(str(uuid4()), review_request(sample_package))

    assert review.is_verified is True
    assert unverified.is_verified is False


@pytest.mark.asyncio
async def test_update_review_recomputes(test_session, sample_package):
    """Test editing a rating refreshes the aggregate."""
    service = ReviewService(test_session)
    user_id = str(uuid4())
    review = await service.create_review(user_id, review_request(sample_package, rating=2))

    updated = await service.update_review(user_id, UpdateReviewRequest(review_id=str(review.id), rating=4))

    assert updated.rating == 4
    assert await rating_of(test_session, sample_package.id) == (4.0, 1)


@pytest.mark.asyncio
async def test_update_review_not_owner(test_session, sample_package):
    """Test only the author may edit a review."""
    service = ReviewService(test_session)
    review = await service.create_review(str(uuid4()), review_request(sample_package))

    with pytest.raises(AuthorizationError):
        await service.update_review(str(uuid4()), UpdateReviewRequest(review_id=str(review.id), rating=1))


@pytest.mark.asyncio
async def test_delete_review_recomputes(test_session, sample_package):
    """Test deleting the only review resets the aggregate."""
    service = ReviewService(test_session)
    user_id = str(uuid4())
    review = await service.create_review(user_id, review_request(sample_package, rating=4))

    await service.delete_review(user_id, str(review.id))

    assert await service.get_review_by_id(review.id) is None
    assert await rating_of(test_session, sample_package.id) == (0.0, 0)


@pytest.mark.asyncio
async def test_helpful_vote_counted_once(test_session, sample_package):
    """Test repeated helpful votes from one user count once."""
    service = ReviewService(test_session)
    review = await service.create_review(str(uuid4()), review_request(sample_package))
    voter = str(uuid4())

    await service.vote_helpful(voter, str(review.id))
    review = await service.vote_helpful(voter, str(review.id))
    assert review.helpful_votes == 1

    review = await service.vote_helpful(str(uuid4()), str(review.id))
    assert review.helpful_votes == 2


@pytest.mark.asyncio
async def test_list_reviews(test_session, sample_package):
    """Test listing and filtering a package's reviews."""
    service = ReviewService(test_session)
    for rating in (5, 3, 5):
        await service.create_review(str(uuid4()), review_request(sample_package, rating=rating))

    reviews, total, page, limit = await service.list_reviews(
        ListReviewsRequest(package_id=str(sample_package.id), rating=5, limit=1)
    )

    assert total == 2
    assert len(reviews) == 1
    assert reviews[0].rating == 5
    assert (page, limit) == (1, 1)


@pytest.mark.asyncio
async def test_recompute_without_reviews(test_session, sample_package):
    """Test a package with no reviews has a zero aggregate."""
    assert await RatingService(test_session).recompute(sample_package.id) == (0.0, 0)


def test_rounded_average():
    """Test half-up rounding of the mean rating."""
    assert rounded_average(None) == 0.0
    assert rounded_average(4.25) == 4.3
    assert rounded_average(4.0) == 4.0
    assert rounded_average(11 / 3) == 3.7
