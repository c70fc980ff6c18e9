"""Trip schedule model definition."""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Integer, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .trip import Trip


class TripSchedule(Base):
    """One dated departure of a trip, holding its own seat counter."""

    __tablename__ = "trip_schedules"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign key to trip
    trip_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Seat inventory; only the inventory service writes available_seats
    max_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    # Bumped by every seat write so observers can order updates
    seat_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("max_seats > 0", name="ck_schedule_max_seats_positive"),
        CheckConstraint("available_seats >= 0", name="ck_schedule_available_seats_non_negative"),
        CheckConstraint("available_seats <= max_seats", name="ck_schedule_available_seats_lte_max"),
        CheckConstraint("end_date >= start_date", name="ck_schedule_dates_ordered"),
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="schedules")

    def __repr__(self) -> str:
        return (
            f"<TripSchedule(id={self.id}, trip_id={self.trip_id}, start_date={self.start_date}, "
            f"seats={self.available_seats}/{self.max_seats}, is_active={self.is_active})>"
        )
