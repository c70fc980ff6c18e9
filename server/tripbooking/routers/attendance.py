"""Attendance router for departure-day check-in."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, StaffPrincipal
from ..models.booking import AttendanceStatus
from ..models.user import User
from ..schemas.attendance import (
    AttendanceResult,
    AttendanceSummary,
    AttendanceSummaryRequest,
    MarkAttendanceRequest,
    ResolveScanRequest,
)
from ..schemas.booking import BookingResult
from ..services.attendance_service import AttendanceService
from .converters import booking_to_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/attendance", tags=["attendance"])


@router.post("/resolve", response_model=BookingResult)
async def resolve_scan(
    request: ResolveScanRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
) -> JSONResponse:
    """
    Look up the booking behind a QR scan or a typed code without changing it.

    Unknown codes and bookings that are not confirmed for this departure
    are rejected with a 404 problem.
    """
    booking = await AttendanceService(db).resolve_for_staff(request.schedule_id, request.scanned_text, staff)
    response_data = BookingResult(booking=booking_to_schema(booking))
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/mark", response_model=AttendanceResult)
async def mark_attendance(
    request: MarkAttendanceRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
) -> JSONResponse:
    """Record attended / not_attended for the scanned booking."""
    actor_id = staff.id
    outcome = await AttendanceService(db).mark_attendance(
        request.schedule_id,
        request.scanned_text,
        AttendanceStatus(request.status.value),
        staff,
    )
    response_data = AttendanceResult(
        booking=booking_to_schema(outcome.booking),
        changed=outcome.changed,
        warnings=outcome.warnings,
    )

    logger.info(
        "Attendance scan processed",
        extra={
            "booking_id": response_data.booking.id,
            "schedule_id": str(request.schedule_id),
            "status": request.status.value,
            "changed": outcome.changed,
            "actor": actor_id
        }
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/summary", response_model=AttendanceSummary)
async def attendance_summary(
    request: AttendanceSummaryRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
) -> JSONResponse:
    """Check-in counts for a departure."""
    counts = await AttendanceService(db).attendance_summary(request.schedule_id)
    response_data = AttendanceSummary(
        schedule_id=str(counts.schedule_id),
        confirmed_bookings=counts.confirmed_bookings,
        total_people=counts.total_people,
        attended=counts.attended,
        not_attended=counts.not_attended,
        pending=counts.pending,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
