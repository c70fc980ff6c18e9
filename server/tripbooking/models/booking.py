"""Booking model definition."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .schedule import TripSchedule
    from .trip import Trip


class BookingStatus(str, Enum):
    """Booking approval lifecycle."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    COMPLETED = "completed"


class AttendanceStatus(str, Enum):
    """Check-in lifecycle, meaningful once the booking is confirmed."""
    PENDING = "pending"
    ATTENDED = "attended"
    NOT_ATTENDED = "not_attended"


class PaymentMethod(str, Enum):
    """Payment method chosen at booking time."""
    COD = "cod"
    ONLINE = "online"


class PaymentStatus(str, Enum):
    """Payment status derived from the payment method."""
    PENDING = "pending"
    CONFIRMED = "confirmed"


def generate_booking_id() -> str:
    """Booking ids double as the QR payload, so they are a single alphanumeric run."""
    return uuid4().hex


class Booking(Base):
    """Booking entity representing a traveler's reservation on a trip."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_booking_id)

    # Owner (identity-provider user id) and where to send the confirmation
    user_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    trip_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("trips.id"),
        nullable=False,
        index=True
    )
    # Legacy trips without schedules book without a seat reservation
    schedule_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("trip_schedules.id"),
        nullable=True,
        index=True
    )

    number_of_people: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)

    booking_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True
    )
    attendance_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AttendanceStatus.PENDING.value,
        index=True
    )

    # Ordered traveler records; index 0 is the primary traveler
    travelers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("number_of_people > 0", name="ck_booking_people_positive"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint(
            "booking_status IN ('pending', 'confirmed', 'rejected', 'completed')",
            name="ck_booking_status_valid"
        ),
        CheckConstraint(
            "attendance_status IN ('pending', 'attended', 'not_attended')",
            name="ck_booking_attendance_status_valid"
        ),
        CheckConstraint("payment_method IN ('cod', 'online')", name="ck_booking_payment_method_valid"),
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip")
    schedule: Mapped["TripSchedule | None"] = relationship("TripSchedule")

    def __repr__(self) -> str:
        return (
            f"<Booking(id='{self.id}', trip_id={self.trip_id}, schedule_id={self.schedule_id}, "
            f"people={self.number_of_people}, status={self.booking_status}, "
            f"attendance={self.attendance_status})>"
        )
