"""Schedule-related Pydantic schemas."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel, Field

from .common import PaginatedResponse


class CreateScheduleRequest(BaseModel):
    """Request schema for adding a departure to a trip."""

    trip_id: UUID = Field(..., description="Trip the departure belongs to")
    start_date: date = Field(..., description="Departure date")
    end_date: date | None = Field(None, description="Return date; derived from the trip duration when omitted")
    max_seats: int | None = Field(None, ge=1, le=1000, description="Seat count, at most the trip's max seats (the default)")


class SearchSchedulesRequest(BaseModel):
    """Request schema for searching schedules."""

    trip_id: UUID | None = Field(None, description="Filter by trip ID")
    date_from: date | None = Field(None, description="Earliest start date")
    date_to: date | None = Field(None, description="Latest start date")
    available_only: bool = Field(False, description="Only schedules with free seats")
    include_inactive: bool = Field(False, description="Include deactivated schedules")
    cursor: str | None = Field(None, description="Pagination cursor")
    limit: int = Field(20, ge=1, le=100, description="Results per page")


class AvailabilityRequest(BaseModel):
    """Request schema for reading a schedule's seat counter."""

    schedule_id: UUID = Field(..., description="Schedule to read")


class Schedule(BaseModel):
    """Schedule response schema."""

    id: str = Field(..., description="Unique schedule ID")
    trip_id: str = Field(..., description="Associated trip ID")
    start_date: date = Field(..., description="Departure date")
    end_date: date = Field(..., description="Return date")
    max_seats: int = Field(..., ge=1, description="Total seats")
    available_seats: int = Field(..., ge=0, description="Seats still available")
    is_active: bool = Field(..., description="Whether the schedule accepts bookings")


class Availability(BaseModel):
    """Seat counter of one schedule."""

    schedule_id: str = Field(..., description="Schedule ID")
    available_seats: int = Field(..., ge=0, description="Seats still available")
    max_seats: int = Field(..., ge=1, description="Total seats")


class SearchSchedulesResponse(PaginatedResponse):
    """Response schema for schedule search."""

    items: list[Schedule] = Field(..., description="Found schedules")
