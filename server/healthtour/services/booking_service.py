"""Booking service for the reservation lifecycle."""

import logging
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import (
    AuthorizationError,
    CapacityFullError,
    ConflictError,
    DuplicateBookingNumberError,
    InvalidStatusError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.booking import (
    CAPACITY_RESERVING_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
    TransactionStatus,
    can_transition,
)
from ..models.package import Package
from ..models.user import User
from ..schemas.booking import (
    AddCommunicationRequest,
    AddDocumentRequest,
    AddMedicalAppointmentRequest,
    AddNoteRequest,
    CancelBookingRequest,
    CreateBookingRequest,
    GetBookingRequest,
    ListBookingsRequest,
    RecordTransactionRequest,
    SetItineraryRequest,
    SubmitFeedbackRequest,
    TransitionBookingRequest,
    UpdateBookingRequest,
)
from .identifiers import is_booking_number, next_booking_number
from .inventory_service import InventoryService, is_available
from .package_service import PackageCatalogService, parse_uuid
from .pricing import (
    PriceQuote,
    additional_services_cost,
    ensure_non_negative_total,
    payment_progress,
    payment_status_for,
    quote,
)

logger = logging.getLogger(__name__)

REQUIRED_PERSONAL_FIELDS = ("first_name", "last_name", "email", "phone")
PROFILE_FIELDS = ("first_name", "last_name", "email", "phone", "country", "date_of_birth")


def _utc_stamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


def parse_status(value: str) -> BookingStatus:
    """
    Parse a booking status string.

    Raises:
        InvalidStatusError: If the value is not a known status
    """
    try:
        return BookingStatus(value)
    except ValueError as e:
        raise InvalidStatusError(value, [s.value for s in BookingStatus]) from e


def validate_travel_dates(start: date, end: date) -> None:
    if end < start:
        raise ValidationError(
            detail="Travel end date must not be before the start date",
            errors={"travel_dates": {"start_date": start.isoformat(), "end_date": end.isoformat()}}
        )


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.package_service = PackageCatalogService(db)
        self.inventory_service = InventoryService(db)

    async def create_booking(self, request: CreateBookingRequest) -> Booking:
        """
        Create a booking in ``pending-confirmation``.

        Creating a booking never changes package inventory; capacity is taken
        when the booking is confirmed.

        Args:
            request: Booking creation request

        Returns:
            Created booking entity

        Raises:
            NotFoundError: If the package (or referenced user) does not exist
            ValidationError: If the booking data is invalid or the package inactive
            CapacityFullError: If the package is full and creation is capacity-gated
            DuplicateBookingNumberError: If no unique booking number could be assigned
        """
        package = await self.package_service.get_package_by_id_or_raise(
            parse_uuid(request.package_id, "package")
        )
        if not package.is_active:
            logger.warning(
                "Booking creation failed - package inactive",
                extra={"package_id": request.package_id}
            )
            raise ValidationError(
                detail=f"Package {request.package_id} is not open for booking",
                errors={"package_id": request.package_id}
            )

        if request.booking_number and not is_booking_number(request.booking_number):
            raise ValidationError(
                detail=f"Booking number '{request.booking_number}' is not in HTYYYYMM#### format",
                errors={"booking_number": request.booking_number}
            )

        user_id = parse_uuid(request.user_id, "user") if request.user_id else None
        personal_info = await self._personal_info_snapshot(request, user_id)

        validate_travel_dates(request.travel_dates.start_date, request.travel_dates.end_date)

        if settings.booking_capacity_check_on_create:
            self._ensure_bookable(package)

        price = quote(
            package,
            request.selected_services,
            travelers=request.travelers.total,
            on=date.today(),
            tax_rate=settings.booking_tax_rate
        ).with_overrides(request.pricing.model_dump(exclude_none=True) if request.pricing else None)

        fields = {
            "package_id": package.id,
            "user_id": user_id,
            "personal_info": personal_info,
            "health_info": request.health_info.model_dump(mode="json"),
            "travel_start": request.travel_dates.start_date,
            "travel_end": request.travel_dates.end_date,
            "flexibility": request.travel_dates.flexibility.value,
            "adults": request.travelers.adults,
            "children": request.travelers.children,
            "infants": request.travelers.infants,
            "selected_services": self._selected_services_snapshot(package, request.selected_services),
            "accommodation": request.accommodation.model_dump(mode="json", exclude_none=True),
            "base_price": price.base_price,
            "additional_services": price.additional_services,
            "discounts": price.discounts,
            "taxes": price.taxes,
            "total_price": price.total_price,
            "currency": price.currency,
            "payment_plan": request.payment_plan.value,
            "payment_method": request.payment_method.value if request.payment_method else None,
            "payment_status": PaymentStatus.PENDING.value,
            "transactions": [],
            "status": BookingStatus.PENDING_CONFIRMATION.value,
            "inventory_reserved": False,
        }

        # Captured before insert; a retried insert rolls back and expires the package
        package_id = package.id
        category = package.category

        booking = await self._insert_with_booking_number(fields, request.booking_number)

        metrics_collector.record_booking_created(category)
        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "package_id": str(package_id),
                "user_id": str(user_id) if user_id else None,
                "total_price": booking.total_price,
                "currency": booking.currency
            }
        )

        return booking

    async def _insert_with_booking_number(
        self, fields: dict[str, Any], requested_number: Optional[str]
    ) -> Booking:
        """Persist a booking, generating a unique booking number unless one was given."""
        if requested_number:
            if await self.get_booking_by_number(requested_number):
                raise DuplicateBookingNumberError(requested_number)
            booking = Booking(booking_number=requested_number, **fields)
            try:
                self.db.add(booking)
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                if await self.get_booking_by_number(requested_number):
                    raise DuplicateBookingNumberError(requested_number) from e
                raise
            return booking

        max_attempts = settings.booking_number_max_attempts
        number = ""
        for attempt in range(1, max_attempts + 1):
            number = next_booking_number()
            if await self.get_booking_by_number(number):
                logger.info(
                    "Generated booking number already taken - retrying",
                    extra={"booking_number": number, "attempt": attempt}
                )
                continue

            booking = Booking(booking_number=number, **fields)
            try:
                self.db.add(booking)
                await self.db.commit()
                return booking
            except IntegrityError:
                await self.db.rollback()
                if await self.get_booking_by_number(number):
                    logger.warning(
                        "Booking number collided on insert - retrying",
                        extra={"booking_number": number, "attempt": attempt}
                    )
                    continue
                raise

        logger.error(
            "Could not assign a unique booking number",
            extra={"attempts": max_attempts, "last_booking_number": number}
        )
        raise DuplicateBookingNumberError(number, attempts=max_attempts)

    async def _personal_info_snapshot(
        self, request: CreateBookingRequest, user_id: Optional[UUID]
    ) -> dict[str, Any]:
        """Merge request personal info with the user's profile; request values win."""
        info = request.personal_info.model_dump(mode="json", exclude_none=True)

        if user_id:
            user = await self.db.get(User, user_id)
            if not user:
                raise NotFoundError(resource_type="user", resource_id=str(user_id))
            for name in PROFILE_FIELDS:
                value = getattr(user, name)
                if name not in info and value is not None:
                    info[name] = value.isoformat() if isinstance(value, date) else value

        missing = [name for name in REQUIRED_PERSONAL_FIELDS if not info.get(name)]
        if missing:
            raise ValidationError(
                detail="Personal information is incomplete",
                errors={"personal_info": missing}
            )
        return info

    def _ensure_bookable(self, package: Package) -> None:
        if package.current_bookings >= package.max_capacity:
            logger.warning(
                "Booking creation failed - package full",
                extra={
                    "package_id": str(package.id),
                    "current_bookings": package.current_bookings,
                    "max_capacity": package.max_capacity
                }
            )
            raise CapacityFullError(
                package_id=str(package.id),
                current_bookings=package.current_bookings,
                max_capacity=package.max_capacity
            )
        if not is_available(package):
            raise ValidationError(
                detail=f"Package {package.id} is not available for booking today",
                errors={"package_id": str(package.id)}
            )

    def _selected_services_snapshot(self, package: Package, names: list[str]) -> list[dict[str, Any]]:
        snapshot = []
        for name in names:
            service = package.service_by_name(name)
            if service is None:
                continue
            snapshot.append({
                "name": service.name,
                "included": service.included,
                "additional_cost": 0 if service.included else service.additional_cost,
            })
        return snapshot

    async def transition_booking(self, request: TransitionBookingRequest) -> Booking:
        """
        Move a booking to a new status.

        Entering ``confirmed`` or ``payment-completed`` takes one unit of package
        capacity, at most once per booking. Entering ``cancelled`` gives it back.

        Raises:
            InvalidStatusError: If the status string is unknown
            NotFoundError: If booking not found
            InvalidStatusTransitionError: If the move is not allowed
            CapacityFullError: If capacity cannot be reserved
        """
        target = parse_status(request.status)
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))

        if BookingStatus(booking.status) == target:
            logger.info(
                "Booking already in requested status - no change",
                extra={"booking_id": request.booking_id, "status": target.value}
            )
            return booking

        await self._apply_transition(booking, target, force=request.force)
        await self.db.commit()
        return booking

    async def _apply_transition(self, booking: Booking, target: BookingStatus, force: bool = False) -> None:
        """Validate and apply a status change with its inventory effect; does not commit."""
        current = BookingStatus(booking.status)

        if not force and settings.enforce_status_transitions and not can_transition(current, target):
            logger.warning(
                "Booking status transition refused",
                extra={
                    "booking_id": str(booking.id),
                    "current_status": current.value,
                    "target_status": target.value
                }
            )
            raise InvalidStatusTransitionError(str(booking.id), current.value, target.value)

        if target in CAPACITY_RESERVING_STATUSES and not booking.inventory_reserved:
            try:
                await self.inventory_service.reserve(booking.package_id)
            except CapacityFullError:
                await self.db.rollback()
                raise
            booking.inventory_reserved = True
        elif target == BookingStatus.CANCELLED and booking.inventory_reserved:
            await self.inventory_service.release(booking.package_id)
            booking.inventory_reserved = False

        booking.status = target.value
        self.db.add(booking)

        if target == BookingStatus.CONFIRMED:
            metrics_collector.record_booking_confirmed()
        elif target == BookingStatus.CANCELLED:
            metrics_collector.record_booking_cancelled()

        logger.info(
            "Booking status changed",
            extra={
                "booking_id": str(booking.id),
                "from_status": current.value,
                "to_status": target.value,
                "forced": force,
                "inventory_reserved": booking.inventory_reserved
            }
        )

    async def cancel_booking(self, request: CancelBookingRequest) -> Booking:
        """
        Cancel a booking with cancellation metadata and release its capacity.

        Cancelling an already cancelled booking returns it unchanged.
        """
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))

        if booking.status == BookingStatus.CANCELLED.value:
            logger.info(
                "Booking already cancelled - returning existing booking",
                extra={"booking_id": request.booking_id}
            )
            return booking

        now = _utc_stamp()
        await self._apply_transition(booking, BookingStatus.CANCELLED)
        booking.cancellation = {
            "reason": request.reason,
            "requested_at": now,
            "processed_at": now,
            "refund_amount": request.refund_amount,
            "cancellation_fee": request.cancellation_fee,
        }

        await self.db.commit()

        logger.info(
            "Booking cancelled successfully",
            extra={
                "booking_id": request.booking_id,
                "booking_number": booking.booking_number,
                "refund_amount": request.refund_amount
            }
        )

        return booking

    async def record_transaction(self, request: RecordTransactionRequest) -> Booking:
        """
        Append a payment transaction and re-derive the payment status.

        The booking status is never changed here.
        """
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))

        currency = request.currency or booking.currency
        if currency != booking.currency:
            raise ValidationError(
                detail=f"Transaction currency {currency} does not match booking currency {booking.currency}",
                errors={"currency": currency}
            )

        transaction = {
            "transaction_id": request.transaction_id or f"TX{uuid4().hex[:16].upper()}",
            "amount": request.amount,
            "currency": currency,
            "status": request.status.value,
            "payment_method": request.payment_method.value if request.payment_method else booking.payment_method,
            "processed_at": _utc_stamp(),
        }
        booking.transactions = [*(booking.transactions or []), transaction]
        if request.payment_method:
            booking.payment_method = request.payment_method.value

        progress = payment_progress(booking.total_price, booking.transactions)
        payment_status = payment_status_for(progress, has_transactions=True)
        if payment_status == PaymentStatus.PENDING and request.status == TransactionStatus.FAILED:
            payment_status = PaymentStatus.FAILED
        booking.payment_status = payment_status.value

        self.db.add(booking)
        await self.db.commit()

        metrics_collector.record_transaction(request.status.value)
        logger.info(
            "Payment transaction recorded",
            extra={
                "booking_id": request.booking_id,
                "transaction_id": transaction["transaction_id"],
                "amount": request.amount,
                "transaction_status": request.status.value,
                "payment_status": booking.payment_status,
                "payment_progress": progress
            }
        )

        return booking

    async def add_note(self, request: AddNoteRequest, author_id: str) -> Booking:
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))
        booking.notes = [*(booking.notes or []), {
            "content": request.content,
            "added_by": author_id,
            "added_at": _utc_stamp(),
            "is_private": request.is_private,
        }]

        self.db.add(booking)
        await self.db.commit()

        logger.info("Booking note added", extra={"booking_id": request.booking_id, "added_by": author_id})
        return booking

    async def add_communication(self, request: AddCommunicationRequest, sender_id: str) -> Booking:
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))
        booking.communications = [*(booking.communications or []), {
            "type": request.type.value,
            "direction": request.direction.value,
            "subject": request.subject,
            "content": request.content,
            "sent_by": sender_id,
            "sent_at": _utc_stamp(),
            "read": False,
        }]

        self.db.add(booking)
        await self.db.commit()

        logger.info(
            "Booking communication logged",
            extra={"booking_id": request.booking_id, "type": request.type.value}
        )
        return booking

    async def add_document(self, request: AddDocumentRequest, uploader_id: str) -> Booking:
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))
        booking.documents = [*(booking.documents or []), {
            "type": request.type.value,
            "name": request.name,
            "url": request.url,
            "uploaded_by": uploader_id,
            "uploaded_at": _utc_stamp(),
            "verified": False,
        }]

        self.db.add(booking)
        await self.db.commit()

        logger.info(
            "Booking document attached",
            extra={"booking_id": request.booking_id, "type": request.type.value}
        )
        return booking

    async def add_medical_appointment(self, request: AddMedicalAppointmentRequest) -> Booking:
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))
        appointment = request.model_dump(mode="json", exclude={"booking_id"})
        appointment["id"] = str(uuid4())
        booking.medical_appointments = sorted(
            [*(booking.medical_appointments or []), appointment],
            key=lambda a: a["scheduled_at"]
        )

        self.db.add(booking)
        await self.db.commit()

        logger.info(
            "Medical appointment scheduled",
            extra={
                "booking_id": request.booking_id,
                "type": request.type.value,
                "scheduled_at": appointment["scheduled_at"]
            }
        )
        return booking

    async def set_itinerary(self, request: SetItineraryRequest) -> Booking:
        """
        Replace a booking's day-by-day itinerary.

        Raises:
            ValidationError: If day numbers repeat or fall outside the trip
        """
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))

        day_numbers = [d.day for d in request.days]
        if len(set(day_numbers)) != len(day_numbers):
            raise ValidationError(
                detail="Itinerary day numbers must be unique",
                errors={"days": day_numbers}
            )
        trip_days = booking.duration_days + 1
        outside = [n for n in day_numbers if n > trip_days]
        if outside:
            raise ValidationError(
                detail=f"Itinerary days must fall within the {trip_days}-day trip",
                errors={"days": outside}
            )

        booking.itinerary = [
            d.model_dump(mode="json") for d in sorted(request.days, key=lambda d: d.day)
        ]

        self.db.add(booking)
        await self.db.commit()

        logger.info(
            "Booking itinerary set",
            extra={"booking_id": request.booking_id, "days": len(day_numbers)}
        )
        return booking

    async def submit_feedback(self, request: SubmitFeedbackRequest, user_id: str) -> Booking:
        """
        Record the customer's feedback on a completed booking.

        Raises:
            AuthorizationError: If the caller does not own the booking
            ValidationError: If the booking is not completed
            ConflictError: If feedback was already given
        """
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))

        if booking.user_id is None or str(booking.user_id) != str(user_id):
            raise AuthorizationError("Only the booking's customer may leave feedback")
        if booking.status != BookingStatus.COMPLETED.value:
            raise ValidationError(
                detail="Feedback can only be given once the booking is completed",
                errors={"status": booking.status}
            )
        if booking.feedback:
            raise ConflictError(
                detail=f"Feedback for booking {request.booking_id} was already submitted",
                conflicting_resource={"booking_id": request.booking_id}
            )

        booking.feedback = {
            **request.model_dump(mode="json", exclude={"booking_id"}),
            "submitted_at": _utc_stamp(),
        }

        self.db.add(booking)
        await self.db.commit()

        logger.info(
            "Booking feedback submitted",
            extra={"booking_id": request.booking_id, "rating": request.rating}
        )
        return booking

    async def update_booking(self, request: UpdateBookingRequest) -> Booking:
        """
        Administrative edit of travel details and price components.

        The total is re-derived from the resulting components.

        Raises:
            NotFoundError: If booking not found
            ValidationError: If dates, services or the resulting total are invalid
        """
        booking = await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))

        if request.travel_dates:
            validate_travel_dates(request.travel_dates.start_date, request.travel_dates.end_date)
            booking.travel_start = request.travel_dates.start_date
            booking.travel_end = request.travel_dates.end_date
            booking.flexibility = request.travel_dates.flexibility.value

        if request.travelers:
            booking.adults = request.travelers.adults
            booking.children = request.travelers.children
            booking.infants = request.travelers.infants

        price = PriceQuote(
            base_price=booking.base_price,
            additional_services=booking.additional_services,
            discounts=booking.discounts,
            taxes=booking.taxes,
            currency=booking.currency
        )

        if request.selected_services is not None:
            package = await self.package_service.get_package_by_id_or_raise(booking.package_id)
            additional = additional_services_cost(package, request.selected_services)
            booking.selected_services = self._selected_services_snapshot(package, request.selected_services)
            price = price.with_overrides({"additional_services": additional})

        if request.pricing:
            price = price.with_overrides(request.pricing.model_dump(exclude_none=True))

        ensure_non_negative_total(price.total_price)
        booking.base_price = price.base_price
        booking.additional_services = price.additional_services
        booking.discounts = price.discounts
        booking.taxes = price.taxes
        booking.currency = price.currency
        booking.total_price = price.total_price

        if request.health_info:
            booking.health_info = request.health_info.model_dump(mode="json")
        if request.accommodation:
            booking.accommodation = request.accommodation.model_dump(mode="json", exclude_none=True)
        if request.payment_plan:
            booking.payment_plan = request.payment_plan.value

        if booking.transactions:
            progress = payment_progress(booking.total_price, booking.transactions)
            booking.payment_status = payment_status_for(progress, has_transactions=True).value

        self.db.add(booking)
        await self.db.commit()

        logger.info(
            "Booking updated",
            extra={"booking_id": request.booking_id, "total_price": booking.total_price}
        )
        return booking

    async def delete_booking(self, booking_id: str) -> None:
        """Permanently delete a booking, releasing any capacity it holds."""
        booking = await self.get_booking_by_id_or_raise(parse_uuid(booking_id, "booking"))

        if booking.inventory_reserved:
            await self.inventory_service.release(booking.package_id)

        await self.db.delete(booking)
        await self.db.commit()

        logger.info(
            "Booking deleted",
            extra={
                "booking_id": booking_id,
                "booking_number": booking.booking_number,
                "released_capacity": booking.inventory_reserved
            }
        )

    async def get_booking(self, request: GetBookingRequest) -> Booking:
        """
        Get booking by ID or booking number.

        Raises:
            ValidationError: If neither identifier is given
            NotFoundError: If booking not found
        """
        if request.booking_id:
            return await self.get_booking_by_id_or_raise(parse_uuid(request.booking_id, "booking"))
        if request.booking_number:
            booking = await self.get_booking_by_number(request.booking_number)
            if not booking:
                raise NotFoundError(resource_type="booking", resource_id=request.booking_number)
            return booking
        raise ValidationError(
            detail="Either booking_id or booking_number is required",
            errors={"booking_id": None, "booking_number": None}
        )

    async def list_bookings(self, request: ListBookingsRequest) -> tuple[list[Booking], int, int, int]:
        """
        List bookings, newest first.

        Returns:
            (bookings, total, page, limit)
        """
        limit = min(request.limit or settings.default_page_size, settings.max_page_size)

        conditions = []
        if request.status:
            conditions.append(Booking.status == request.status.value)
        if request.payment_status:
            conditions.append(Booking.payment_status == request.payment_status.value)
        if request.user_id:
            conditions.append(Booking.user_id == parse_uuid(request.user_id, "user"))
        if request.package_id:
            conditions.append(Booking.package_id == parse_uuid(request.package_id, "package"))

        total = (await self.db.execute(
            select(func.count(Booking.id)).where(*conditions)
        )).scalar_one()

        stmt = (
            select(Booking)
            .where(*conditions)
            .order_by(Booking.created_at.desc(), Booking.id)
            .offset((request.page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars()), total, request.page, limit

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        """Get booking by ID."""
        stmt = select(Booking).where(Booking.id == booking_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_by_id_or_raise(self, booking_id: UUID) -> Booking:
        """Get booking by ID or raise NotFoundError."""
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            logger.warning(
                "Booking not found",
                extra={"booking_id": str(booking_id)}
            )
            raise NotFoundError(
                resource_type="booking",
                resource_id=str(booking_id)
            )
        return booking

    async def get_booking_by_number(self, booking_number: str) -> Booking | None:
        """Get booking by booking number."""
        stmt = select(Booking).where(Booking.booking_number == booking_number)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
