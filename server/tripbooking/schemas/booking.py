"""Booking-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.booking import AttendanceStatus, BookingStatus, PaymentMethod, PaymentStatus
from .common import Money, PaginatedResponse, WithWarnings


class TravelerIn(BaseModel):
    """
    Traveler as submitted on the booking form.

    Fields are optional here so that missing values are reported together
    as a single booking validation error instead of a schema rejection.
    """

    name: str | None = Field(None, max_length=255, description="Full name")
    age: int | None = Field(None, description="Age in years")
    gender: str | None = Field(None, max_length=50, description="Gender")
    phone: str | None = Field(None, max_length=50, description="Phone number (primary traveler)")
    national_id: str | None = Field(None, max_length=50, description="National ID number (primary traveler)")


class CreateBookingRequest(BaseModel):
    """Request schema for booking seats on a trip."""

    trip_id: UUID = Field(..., description="Trip to book")
    schedule_id: UUID | None = Field(None, description="Departure to reserve seats on")
    number_of_people: int = Field(..., description="Number of travelers")
    payment_method: PaymentMethod = Field(..., description="cod or online")
    travelers: list[TravelerIn] = Field(..., description="Travelers; the first one is the primary contact")
    contact_email: str | None = Field(None, max_length=255, description="Confirmation email recipient")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: str = Field(..., min_length=1, max_length=64, description="Booking to retrieve")


class TransitionBookingRequest(BaseModel):
    """Request schema for a staff status change."""

    booking_id: str = Field(..., min_length=1, max_length=64, description="Booking to update")


class ListBookingsRequest(BaseModel):
    """Request schema for the staff booking list."""

    booking_status: BookingStatus | None = Field(None, description="Filter by status")
    trip_id: UUID | None = Field(None, description="Filter by trip")
    schedule_id: UUID | None = Field(None, description="Filter by schedule")
    cursor: str | None = Field(None, description="Pagination cursor")
    limit: int = Field(20, ge=1, le=100, description="Results per page")


class ListMyBookingsRequest(BaseModel):
    """Request schema for the caller's own bookings."""

    cursor: str | None = Field(None, description="Pagination cursor")
    limit: int = Field(20, ge=1, le=100, description="Results per page")


class Traveler(BaseModel):
    """Traveler as stored on a booking."""

    name: str
    age: int
    gender: str
    phone: str | None = None
    national_id: str | None = None


class Booking(BaseModel):
    """Booking response schema."""

    id: str = Field(..., description="Booking ID, also the QR payload")
    user_id: str = Field(..., description="Owner")
    trip_id: str = Field(..., description="Booked trip")
    schedule_id: str | None = Field(None, description="Reserved departure")
    number_of_people: int = Field(..., ge=1, description="Number of travelers")
    total_amount: Money = Field(..., description="Total price")
    payment_method: PaymentMethod = Field(..., description="Payment method")
    payment_status: PaymentStatus = Field(..., description="Payment status")
    booking_status: BookingStatus = Field(..., description="Approval status")
    attendance_status: AttendanceStatus = Field(..., description="Check-in status")
    travelers: list[Traveler] = Field(..., description="Travelers in booking order")
    created_at: datetime = Field(..., description="Booking creation time (ISO 8601)")


class BookingResult(WithWarnings):
    """Booking plus any side effects that failed while producing it."""

    booking: Booking


class ListBookingsResponse(PaginatedResponse):
    """Response schema for booking lists."""

    items: list[Booking] = Field(..., description="Bookings, newest first")
