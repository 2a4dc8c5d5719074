"""Booking router for booking lifecycle operations."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession, RequiredAuth
from ..core.exceptions import AuthorizationError
from ..models.booking import Booking as BookingModel
from ..schemas.booking import (
    AddCommunicationRequest,
    AddDocumentRequest,
    AddMedicalAppointmentRequest,
    AddNoteRequest,
    Booking,
    BookingListResponse,
    CancelBookingRequest,
    CreateBookingRequest,
    DeleteBookingRequest,
    GetBookingRequest,
    ListBookingsRequest,
    PaymentLedger,
    PricingBreakdown,
    RecordTransactionRequest,
    SetItineraryRequest,
    SubmitFeedbackRequest,
    TransitionBookingRequest,
    TravelDates,
    Travelers,
    UpdateBookingRequest,
)
from ..schemas.common import Pagination
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])


def _is_admin(user: dict) -> bool:
    return "admin" in user.get("roles", [])


def _ensure_can_access(booking_model: BookingModel, user: dict) -> None:
    """Customers may only act on their own bookings."""
    if _is_admin(user):
        return
    if booking_model.user_id is None or str(booking_model.user_id) != str(user["user_id"]):
        raise AuthorizationError("You do not have access to this booking")


def _convert_booking_to_schema(booking_model: BookingModel) -> Booking:
    """Convert booking model to schema."""
    return Booking(
        id=str(booking_model.id),
        booking_number=booking_model.booking_number,
        package_id=str(booking_model.package_id),
        user_id=str(booking_model.user_id) if booking_model.user_id else None,
        status=booking_model.status,
        personal_info=booking_model.personal_info,
        health_info=booking_model.health_info,
        travel_dates=TravelDates(
            start_date=booking_model.travel_start,
            end_date=booking_model.travel_end,
            flexibility=booking_model.flexibility
        ),
        travelers=Travelers(
            adults=booking_model.adults,
            children=booking_model.children,
            infants=booking_model.infants
        ),
        total_travelers=booking_model.total_travelers,
        duration_days=booking_model.duration_days,
        selected_services=booking_model.selected_services,
        accommodation=booking_model.accommodation,
        pricing=PricingBreakdown(
            base_price=booking_model.base_price,
            additional_services=booking_model.additional_services,
            discounts=booking_model.discounts,
            taxes=booking_model.taxes,
            total_price=booking_model.total_price,
            currency=booking_model.currency,
            payment_plan=booking_model.payment_plan
        ),
        payment=PaymentLedger(
            status=booking_model.payment_status,
            method=booking_model.payment_method,
            progress=booking_model.payment_progress,
            transactions=booking_model.transactions
        ),
        documents=booking_model.documents,
        communications=booking_model.communications,
        medical_appointments=booking_model.medical_appointments or [],
        itinerary=booking_model.itinerary or [],
        notes=booking_model.notes,
        feedback=booking_model.feedback,
        cancellation=booking_model.cancellation,
        created_at=booking_model.created_at,
        updated_at=booking_model.updated_at
    )


def _booking_response(booking_model: BookingModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_convert_booking_to_schema(booking_model).model_dump(mode="json")
    )


@router.post("/create", response_model=Booking)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """
    Create a booking in pending-confirmation.

    Customers always book for themselves at the computed price with a
    generated booking number; administrators may book on behalf of any user or
    an unregistered guest and may override price components or the number.
    """
    if not _is_admin(user):
        request = request.model_copy(update={
            "user_id": str(user["user_id"]),
            "pricing": None,
            "booking_number": None,
        })

    booking = await BookingService(db).create_booking(request)

    logger.info(
        "Booking created via API",
        extra={"booking_id": str(booking.id), "booking_number": booking.booking_number}
    )

    return _booking_response(booking, status_code=201)


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """Get booking details by ID or booking number."""
    booking = await BookingService(db).get_booking(request)
    _ensure_can_access(booking, user)
    return _booking_response(booking)


@router.post("/list", response_model=BookingListResponse)
async def list_bookings(
    request: ListBookingsRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """List bookings, newest first. Customers only see their own."""
    if not _is_admin(user):
        request = request.model_copy(update={"user_id": str(user["user_id"])})

    bookings, total, page, limit = await BookingService(db).list_bookings(request)
    response_data = BookingListResponse(
        items=[_convert_booking_to_schema(b) for b in bookings],
        pagination=Pagination.build(page, limit, total)
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/transition", response_model=Booking)
async def transition_booking(
    request: TransitionBookingRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Change a booking's status (administrators only)."""
    booking = await BookingService(db).transition_booking(request)

    logger.info(
        "Booking status changed via API",
        extra={
            "booking_id": request.booking_id,
            "status": booking.status,
            "forced": request.force,
            "actor": user["user_id"]
        }
    )

    return _booking_response(booking)


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """Cancel a booking and release the capacity it holds."""
    booking_service = BookingService(db)
    existing = await booking_service.get_booking(GetBookingRequest(booking_id=request.booking_id))
    _ensure_can_access(existing, user)

    booking = await booking_service.cancel_booking(request)
    return _booking_response(booking)


@router.post("/record-transaction", response_model=Booking)
async def record_transaction(
    request: RecordTransactionRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Record a payment transaction against a booking (administrators only)."""
    booking = await BookingService(db).record_transaction(request)
    return _booking_response(booking)


@router.post("/update", response_model=Booking)
async def update_booking(
    request: UpdateBookingRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Edit travel details and price components (administrators only)."""
    booking = await BookingService(db).update_booking(request)
    return _booking_response(booking)


@router.post("/delete")
async def delete_booking(
    request: DeleteBookingRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Permanently delete a booking (administrators only)."""
    await BookingService(db).delete_booking(request.booking_id)

    logger.info(
        "Booking deleted via API",
        extra={"booking_id": request.booking_id, "actor": user["user_id"]}
    )

    return JSONResponse(status_code=200, content={"deleted": True, "booking_id": request.booking_id})


@router.post("/add-note", response_model=Booking)
async def add_note(
    request: AddNoteRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Add an internal note to a booking (administrators only)."""
    booking = await BookingService(db).add_note(request, author_id=str(user["user_id"]))
    return _booking_response(booking)


@router.post("/add-communication", response_model=Booking)
async def add_communication(
    request: AddCommunicationRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Log a communication with the customer (administrators only)."""
    booking = await BookingService(db).add_communication(request, sender_id=str(user["user_id"]))
    return _booking_response(booking)


@router.post("/add-document", response_model=Booking)
async def add_document(
    request: AddDocumentRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """Attach a document reference to a booking."""
    booking_service = BookingService(db)
    existing = await booking_service.get_booking(GetBookingRequest(booking_id=request.booking_id))
    _ensure_can_access(existing, user)

    booking = await booking_service.add_document(request, uploader_id=str(user["user_id"]))
    return _booking_response(booking)


@router.post("/add-appointment", response_model=Booking)
async def add_medical_appointment(
    request: AddMedicalAppointmentRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Schedule a medical appointment for a booking (administrators only)."""
    booking = await BookingService(db).add_medical_appointment(request)
    return _booking_response(booking)


@router.post("/set-itinerary", response_model=Booking)
async def set_itinerary(
    request: SetItineraryRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Replace a booking's itinerary (administrators only)."""
    booking = await BookingService(db).set_itinerary(request)
    return _booking_response(booking)


@router.post("/submit-feedback", response_model=Booking)
async def submit_feedback(
    request: SubmitFeedbackRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """Leave feedback on a completed booking (booking customer only)."""
    booking = await BookingService(db).submit_feedback(request, user_id=str(user["user_id"]))
    return _booking_response(booking)
