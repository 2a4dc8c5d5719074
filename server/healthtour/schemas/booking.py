"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.booking import BookingStatus, PaymentStatus, TransactionStatus
from .common import Pagination


class Flexibility(str, Enum):
    """How far the customer's travel dates may move."""
    EXACT = "exact"
    FLEXIBLE_1WEEK = "flexible-1week"
    FLEXIBLE_2WEEKS = "flexible-2weeks"
    FLEXIBLE_1MONTH = "flexible-1month"


class PaymentPlan(str, Enum):
    """How the customer intends to pay."""
    FULL_PAYMENT = "full-payment"
    DEPOSIT_BALANCE = "deposit-balance"
    INSTALLMENTS = "installments"


class PaymentMethod(str, Enum):
    """Accepted payment methods."""
    CREDIT_CARD = "credit-card"
    BANK_TRANSFER = "bank-transfer"
    PAYPAL = "paypal"
    STRIPE = "stripe"


class DocumentType(str, Enum):
    """Kinds of travel or medical document."""
    PASSPORT = "passport"
    MEDICAL_REPORT = "medical-report"
    INSURANCE = "insurance"
    VISA = "visa"
    OTHER = "other"


class CommunicationType(str, Enum):
    """Communication channels."""
    EMAIL = "email"
    SMS = "sms"
    CALL = "call"
    WHATSAPP = "whatsapp"
    SYSTEM = "system"


class CommunicationDirection(str, Enum):
    """Direction of a logged communication."""
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class AppointmentType(str, Enum):
    """Kinds of medical appointment."""
    CONSULTATION = "consultation"
    TREATMENT = "treatment"
    SURGERY = "surgery"
    FOLLOW_UP = "follow-up"
    CHECK_UP = "check-up"


class AppointmentStatus(str, Enum):
    """Scheduling state of a medical appointment."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class EmergencyContact(BaseModel):
    """Emergency contact for the travelling patient."""

    name: Optional[str] = Field(None, max_length=200)
    relationship: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)


class PersonalInfo(BaseModel):
    """Personal details captured at booking time.

    Missing fields are filled from the user's profile when ``user_id`` is given.
    """

    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: Optional[str] = Field(None, max_length=50)
    country: Optional[str] = Field(None, max_length=120)
    date_of_birth: Optional[date] = None
    passport_number: Optional[str] = Field(None, max_length=50)
    emergency_contact: Optional[EmergencyContact] = None


class HealthInfo(BaseModel):
    """Free-text health information supplied by the customer."""

    medical_conditions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    special_requirements: Optional[str] = Field(None, max_length=1000)


class TravelDates(BaseModel):
    """Requested travel window."""

    start_date: date = Field(..., description="First day of travel")
    end_date: date = Field(..., description="Last day of travel")
    flexibility: Flexibility = Field(Flexibility.EXACT, description="Date flexibility")


class Travelers(BaseModel):
    """Traveller counts."""

    adults: int = Field(1, ge=1, description="Adults (at least one)")
    children: int = Field(0, ge=0, description="Children")
    infants: int = Field(0, ge=0, description="Infants")

    @property
    def total(self) -> int:
        return self.adults + self.children + self.infants


class Accommodation(BaseModel):
    """Accommodation preferences."""

    room_type: Optional[str] = Field(None, max_length=50)
    special_requests: Optional[str] = Field(None, max_length=500)


class PricingOverride(BaseModel):
    """Caller-supplied price components; the total is always derived."""

    base_price: Optional[int] = Field(None, ge=0)
    additional_services: Optional[int] = Field(None, ge=0)
    discounts: Optional[int] = Field(None, ge=0)
    taxes: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = Field(None, pattern=r"^(EUR|USD|TRY|GBP)$")


class CreateBookingRequest(BaseModel):
    """Request schema for creating a booking."""

    package_id: str = Field(..., description="Package to book")
    user_id: Optional[str] = Field(None, description="Booking customer, if registered")
    booking_number: Optional[str] = Field(None, max_length=32, description="Explicit booking number")
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    health_info: HealthInfo = Field(default_factory=HealthInfo)
    travel_dates: TravelDates = Field(..., description="Requested travel window")
    travelers: Travelers = Field(default_factory=Travelers)
    selected_services: List[str] = Field(default_factory=list, description="Names of chosen package services")
    accommodation: Accommodation = Field(default_factory=Accommodation)
    pricing: Optional[PricingOverride] = Field(None, description="Price component overrides")
    payment_plan: PaymentPlan = Field(PaymentPlan.DEPOSIT_BALANCE)
    payment_method: Optional[PaymentMethod] = None


class UpdateBookingRequest(BaseModel):
    """Administrative edit of a booking; omitted fields are unchanged."""

    booking_id: str = Field(..., description="Booking to update")
    travel_dates: Optional[TravelDates] = None
    travelers: Optional[Travelers] = None
    selected_services: Optional[List[str]] = None
    health_info: Optional[HealthInfo] = None
    accommodation: Optional[Accommodation] = None
    pricing: Optional[PricingOverride] = None
    payment_plan: Optional[PaymentPlan] = None


class TransitionBookingRequest(BaseModel):
    """Request schema for changing a booking's status."""

    booking_id: str = Field(..., description="Booking to transition")
    status: str = Field(..., description="Target booking status")
    force: bool = Field(False, description="Bypass the transition table (admin only)")


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: str = Field(..., description="Booking to cancel")
    reason: str = Field(..., min_length=1, max_length=500, description="Cancellation reason")
    refund_amount: int = Field(0, ge=0, description="Refund in minor units")
    cancellation_fee: int = Field(0, ge=0, description="Fee retained in minor units")


class RecordTransactionRequest(BaseModel):
    """Request schema for recording a payment transaction."""

    booking_id: str = Field(..., description="Booking paid against")
    transaction_id: Optional[str] = Field(None, max_length=100, description="Gateway transaction reference")
    amount: int = Field(..., ge=0, description="Amount in minor units")
    currency: Optional[str] = Field(None, pattern=r"^(EUR|USD|TRY|GBP)$")
    status: TransactionStatus = Field(TransactionStatus.COMPLETED)
    payment_method: Optional[PaymentMethod] = None


class AddNoteRequest(BaseModel):
    """Request schema for adding a note to a booking."""

    booking_id: str = Field(..., description="Booking to annotate")
    content: str = Field(..., min_length=1, max_length=2000)
    is_private: bool = Field(True, description="Hidden from the customer")


class AddCommunicationRequest(BaseModel):
    """Request schema for logging a communication."""

    booking_id: str = Field(..., description="Booking the communication concerns")
    type: CommunicationType = Field(...)
    direction: CommunicationDirection = Field(CommunicationDirection.OUTBOUND)
    subject: Optional[str] = Field(None, max_length=200)
    content: str = Field(..., min_length=1, max_length=5000)


class AddDocumentRequest(BaseModel):
    """Request schema for attaching a document reference."""

    booking_id: str = Field(..., description="Booking to attach to")
    type: DocumentType = Field(...)
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=1000)


class AddMedicalAppointmentRequest(BaseModel):
    """Request schema for scheduling a medical appointment on a booking."""

    booking_id: str = Field(..., description="Booking the appointment belongs to")
    type: AppointmentType = Field(...)
    doctor: Optional[str] = Field(None, max_length=200)
    facility: Optional[str] = Field(None, max_length=200)
    scheduled_at: datetime = Field(..., description="Appointment start")
    duration_minutes: Optional[int] = Field(None, ge=1, le=1440)
    notes: Optional[str] = Field(None, max_length=1000)
    status: AppointmentStatus = Field(AppointmentStatus.SCHEDULED)


class ItineraryDay(BaseModel):
    """One day of the travel plan."""

    day: int = Field(..., ge=1, description="Day number within the trip")
    travel_date: Optional[date] = Field(None, description="Calendar date of this day")
    activities: List[str] = Field(default_factory=list)
    appointments: List[str] = Field(default_factory=list)
    accommodation: Optional[str] = Field(None, max_length=200)
    meals: List[str] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=1000)


class SetItineraryRequest(BaseModel):
    """Request schema for replacing a booking's itinerary."""

    booking_id: str = Field(..., description="Booking to plan")
    days: List[ItineraryDay] = Field(default_factory=list, description="Itinerary, one entry per day")


class SubmitFeedbackRequest(BaseModel):
    """Request schema for the customer's post-trip feedback."""

    booking_id: str = Field(..., description="Completed booking")
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(None, max_length=1000)
    would_recommend: Optional[bool] = None
    improvements: Optional[str] = Field(None, max_length=1000)


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking by ID or number."""

    booking_id: Optional[str] = Field(None, description="Booking ID")
    booking_number: Optional[str] = Field(None, description="Booking number")


class DeleteBookingRequest(BaseModel):
    """Request schema for permanently deleting a booking."""

    booking_id: str = Field(..., description="Booking to delete")


class ListBookingsRequest(BaseModel):
    """Booking list filters."""

    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    user_id: Optional[str] = None
    package_id: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: Optional[int] = Field(None, ge=1)


class PricingBreakdown(BaseModel):
    """Booking price breakdown."""

    base_price: int
    additional_services: int
    discounts: int
    taxes: int
    total_price: int
    currency: str
    payment_plan: str


class PaymentLedger(BaseModel):
    """Payment sub-ledger."""

    status: str
    method: Optional[str] = None
    progress: int = Field(..., description="Percent of total paid")
    transactions: List[Dict[str, Any]] = Field(default_factory=list)


class Booking(BaseModel):
    """Booking response schema."""

    id: str = Field(..., description="Unique booking ID")
    booking_number: str = Field(..., description="Human-readable booking number")
    package_id: str = Field(..., description="Booked package")
    user_id: Optional[str] = Field(None, description="Customer, if registered")
    status: str = Field(..., description="Booking status")
    personal_info: Dict[str, Any]
    health_info: Dict[str, Any]
    travel_dates: TravelDates
    travelers: Travelers
    total_travelers: int
    duration_days: int
    selected_services: List[Dict[str, Any]]
    accommodation: Dict[str, Any]
    pricing: PricingBreakdown
    payment: PaymentLedger
    documents: List[Dict[str, Any]]
    communications: List[Dict[str, Any]]
    medical_appointments: List[Dict[str, Any]]
    itinerary: List[Dict[str, Any]]
    notes: List[Dict[str, Any]]
    feedback: Optional[Dict[str, Any]] = None
    cancellation: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class BookingListResponse(BaseModel):
    """Paginated booking list."""

    items: List[Booking]
    pagination: Pagination
