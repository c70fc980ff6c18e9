"""Attendance-related Pydantic schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from .booking import Booking
from .common import WithWarnings


class AttendanceMark(str, Enum):
    """Outcome staff can record for a traveler at departure."""
    ATTENDED = "attended"
    NOT_ATTENDED = "not_attended"


class ResolveScanRequest(BaseModel):
    """Request schema for looking up a scanned or typed booking code."""

    schedule_id: UUID = Field(..., description="Departure being checked in")
    scanned_text: str = Field(..., min_length=1, max_length=2048, description="QR payload or manually entered code")


class MarkAttendanceRequest(ResolveScanRequest):
    """Request schema for recording attendance."""

    status: AttendanceMark = Field(..., description="attended or not_attended")


class AttendanceSummaryRequest(BaseModel):
    """Request schema for a departure's check-in counts."""

    schedule_id: UUID = Field(..., description="Departure to summarize")


class AttendanceResult(WithWarnings):
    """Attendance outcome; ``changed`` is false for repeated scans."""

    booking: Booking
    changed: bool = Field(..., description="Whether this call changed the attendance status")


class AttendanceSummary(BaseModel):
    """Attendance counts over the confirmed bookings of a schedule."""

    schedule_id: str
    confirmed_bookings: int = Field(..., ge=0)
    total_people: int = Field(..., ge=0)
    attended: int = Field(..., ge=0)
    not_attended: int = Field(..., ge=0)
    pending: int = Field(..., ge=0)
