"""Trip-related Pydantic schemas."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel, Field

from .common import Money
from .schedule import Schedule


class CreateTripRequest(BaseModel):
    """Request schema for creating a trip, optionally with its first schedule."""

    title: str = Field(..., min_length=1, max_length=255, description="Trip title")
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9-]+$", description="URL-friendly slug")
    location: str = Field(..., min_length=1, max_length=255, description="Destination")
    description: str | None = Field(None, max_length=5000, description="Trip description")
    price_per_person: int = Field(..., ge=0, description="Price per person in minor units")
    duration_days: int = Field(1, ge=1, le=365, description="Trip length in days")
    max_seats: int = Field(..., ge=1, le=1000, description="Seats per departure")
    start_date: date | None = Field(None, description="Start date of an initial schedule")
    end_date: date | None = Field(None, description="End date of the initial schedule")


class GetTripRequest(BaseModel):
    """Request schema for getting a trip."""

    trip_id: UUID = Field(..., description="Trip to retrieve")


class Trip(BaseModel):
    """Trip response schema."""

    id: str = Field(..., description="Unique trip ID")
    title: str = Field(..., description="Trip title")
    slug: str = Field(..., description="URL-friendly slug")
    location: str = Field(..., description="Destination")
    description: str | None = Field(None, description="Trip description")
    price_per_person: Money = Field(..., description="Price per person")
    duration_days: int = Field(..., description="Trip length in days")
    max_seats: int = Field(..., description="Seats per departure")
    is_active: bool = Field(..., description="Whether the trip can be booked")
    schedules: list[Schedule] = Field(default_factory=list, description="Departures of this trip")
