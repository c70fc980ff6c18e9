"""Trip model definition."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .schedule import TripSchedule


class Trip(Base):
    """Trip entity representing a bookable product."""

    __tablename__ = "trips"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Trip information
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Price per person, stored as minor units
    price_per_person: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_seats: Mapped[int] = mapped_column(Integer, nullable=False)
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
        CheckConstraint("price_per_person >= 0", name="ck_trip_price_non_negative"),
        CheckConstraint("max_seats > 0", name="ck_trip_max_seats_positive"),
        CheckConstraint("duration_days > 0", name="ck_trip_duration_positive"),
        CheckConstraint("length(currency) = 3", name="ck_trip_currency_length"),
    )

    # Relationships
    schedules: Mapped[list["TripSchedule"]] = relationship(
        "TripSchedule",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="TripSchedule.start_date"
    )

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, title='{self.title}', max_seats={self.max_seats})>"
