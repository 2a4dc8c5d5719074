"""Booking model and booking status state machine."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .package import Package
    from .user import User


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING_CONFIRMATION = "pending-confirmation"
    CONFIRMED = "confirmed"
    PAYMENT_PENDING = "payment-pending"
    PAYMENT_COMPLETED = "payment-completed"
    DOCUMENTS_REQUIRED = "documents-required"
    DOCUMENTS_RECEIVED = "documents-received"
    PRE_TRAVEL_CONSULTATION = "pre-travel-consultation"
    TRAVEL_READY = "travel-ready"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    """Payment sub-ledger status."""
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class TransactionStatus(str, Enum):
    """Status of a single payment transaction."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# Statuses that reserve a unit of package capacity when entered
CAPACITY_RESERVING_STATUSES = frozenset({
    BookingStatus.CONFIRMED,
    BookingStatus.PAYMENT_COMPLETED,
})

TERMINAL_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.REFUNDED,
})

_ACTIVE_BEFORE_TRAVEL = frozenset({
    BookingStatus.PENDING_CONFIRMATION,
    BookingStatus.CONFIRMED,
    BookingStatus.PAYMENT_PENDING,
    BookingStatus.PAYMENT_COMPLETED,
    BookingStatus.DOCUMENTS_REQUIRED,
    BookingStatus.DOCUMENTS_RECEIVED,
    BookingStatus.PRE_TRAVEL_CONSULTATION,
    BookingStatus.TRAVEL_READY,
})

# Target status -> statuses it may be entered from
ALLOWED_PREDECESSORS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING_CONFIRMATION: frozenset(),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.PENDING_CONFIRMATION}),
    BookingStatus.PAYMENT_PENDING: frozenset({BookingStatus.CONFIRMED}),
    BookingStatus.PAYMENT_COMPLETED: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.PAYMENT_PENDING,
    }),
    BookingStatus.DOCUMENTS_REQUIRED: frozenset({BookingStatus.PAYMENT_COMPLETED}),
    BookingStatus.DOCUMENTS_RECEIVED: frozenset({
        BookingStatus.PAYMENT_COMPLETED,
        BookingStatus.DOCUMENTS_REQUIRED,
    }),
    BookingStatus.PRE_TRAVEL_CONSULTATION: frozenset({
        BookingStatus.PAYMENT_COMPLETED,
        BookingStatus.DOCUMENTS_RECEIVED,
    }),
    BookingStatus.TRAVEL_READY: frozenset({
        BookingStatus.DOCUMENTS_RECEIVED,
        BookingStatus.PRE_TRAVEL_CONSULTATION,
    }),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.TRAVEL_READY}),
    BookingStatus.COMPLETED: frozenset({BookingStatus.IN_PROGRESS}),
    BookingStatus.CANCELLED: _ACTIVE_BEFORE_TRAVEL,
    BookingStatus.REFUNDED: frozenset({
        BookingStatus.CANCELLED,
        BookingStatus.PAYMENT_COMPLETED,
        BookingStatus.DOCUMENTS_REQUIRED,
        BookingStatus.DOCUMENTS_RECEIVED,
        BookingStatus.PRE_TRAVEL_CONSULTATION,
        BookingStatus.TRAVEL_READY,
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
    }),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Return True if ``target`` may follow ``current`` in a normal booking journey."""
    return current in ALLOWED_PREDECESSORS[target]


class Booking(Base):
    """Customer reservation against a package with its own price and status."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # References
    package_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("packages.id"),
        nullable=False,
        index=True
    )
    user_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Human-readable identifier, assigned once
    booking_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    # Snapshots captured at booking time
    personal_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    health_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Travel
    travel_start: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    travel_end: Mapped[date] = mapped_column(Date, nullable=False)
    flexibility: Mapped[str] = mapped_column(String(20), nullable=False, default="exact")
    adults: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    infants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    selected_services: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    accommodation: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Pricing breakdown (stored as minor units, e.g., cents)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    additional_services: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discounts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    taxes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    payment_plan: Mapped[str] = mapped_column(String(20), nullable=False, default="deposit-balance")

    # Payment sub-ledger
    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING.value,
        index=True
    )
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    transactions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=BookingStatus.PENDING_CONFIRMATION.value,
        index=True
    )
    inventory_reserved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Journey records
    documents: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    communications: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    medical_appointments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    itinerary: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    feedback: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    cancellation: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

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
        CheckConstraint("adults >= 1", name="ck_booking_adults_min"),
        CheckConstraint("children >= 0", name="ck_booking_children_non_negative"),
        CheckConstraint("infants >= 0", name="ck_booking_infants_non_negative"),
        CheckConstraint("travel_end >= travel_start", name="ck_booking_travel_dates_ordered"),
        CheckConstraint("base_price >= 0", name="ck_booking_base_price_non_negative"),
        CheckConstraint("total_price >= 0", name="ck_booking_total_price_non_negative"),
        CheckConstraint("length(booking_number) > 0", name="ck_booking_number_not_empty"),
        Index("ix_bookings_user_created", "user_id", "created_at"),
    )

    # Relationships
    package: Mapped["Package"] = relationship("Package", back_populates="bookings")
    user: Mapped["User | None"] = relationship("User", back_populates="bookings")

    @property
    def total_travelers(self) -> int:
        return self.adults + self.children + self.infants

    @property
    def duration_days(self) -> int:
        return abs((self.travel_end - self.travel_start).days)

    @property
    def payment_progress(self) -> int:
        """Percent of the total covered by completed transactions (never stored)."""
        from ..services.pricing import payment_progress

        return payment_progress(self.total_price, self.transactions or [])

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, number='{self.booking_number}', "
            f"package_id={self.package_id}, status={self.status}, total={self.total_price})>"
        )
