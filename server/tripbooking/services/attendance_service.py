"""QR check-in: token extraction, scan resolution and attendance marking."""

import logging
import re
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.authorization import is_admin
from ..core.exceptions import AuthorizationError, ScanRejectedError, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import AttendanceStatus, Booking, BookingStatus
from ..models.trip import Trip
from ..models.user import User
from .notification_service import NotificationService
from .schedule_service import ScheduleService

logger = logging.getLogger(__name__)

TOKEN_MIN_LENGTH = 20
_BARE_TOKEN = re.compile(r"[A-Za-z0-9]+")
_TOKEN_RUN = re.compile(r"[A-Za-z0-9]{%d,}" % TOKEN_MIN_LENGTH)

ATTENDANCE_NOTIFICATIONS: dict[AttendanceStatus, tuple[str, str]] = {
    AttendanceStatus.ATTENDED: (
        "Attendance Confirmed",
        "Your attendance for {trip} has been confirmed. Have a great trip!",
    ),
    AttendanceStatus.NOT_ATTENDED: (
        "Attendance Marked as Absent",
        "You have been marked as absent for {trip}. Please contact support if this is incorrect.",
    ),
}


def extract_booking_token(scanned_text: str | None) -> str | None:
    """
    Pull a booking id out of whatever a scanner or a person produced.

    A bare alphanumeric string is taken as is. Anything else, typically a
    URL, yields its longest alphanumeric run of at least 20 characters; the
    earliest run wins a tie. Returns None when there is no candidate.
    """
    if scanned_text is None:
        return None
    text = scanned_text.strip()
    if not text:
        return None
    if _BARE_TOKEN.fullmatch(text):
        return text

    best = None
    for match in _TOKEN_RUN.finditer(text):
        if best is None or len(match.group()) > len(best):
            best = match.group()
    return best


@dataclass
class AttendanceOutcome:
    """Booking after a scan; ``changed`` is False when it was already resolved."""

    booking: Booking
    changed: bool
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AttendanceCounts:
    schedule_id: UUID
    confirmed_bookings: int
    total_people: int
    attended: int
    not_attended: int
    pending: int


class AttendanceService:
    """Sole writer of ``Booking.attendance_status``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _require_staff(actor: User) -> None:
        if not is_admin(actor):
            raise AuthorizationError(
                detail="Only staff can check travelers in",
                required_permissions=["admin"],
            )

    async def resolve_scan(self, schedule_id: UUID, scanned_text: str) -> Booking:
        """
        Resolve scanned or typed text to a confirmed booking of the schedule.

        Raises:
            ScanRejectedError: If no token is found or it is not a confirmed
                booking of this schedule. Nothing is written.
        """
        token = extract_booking_token(scanned_text)
        if token is None:
            metrics_collector.record_scan_rejected()
            logger.info("Scan rejected - no booking code", extra={"schedule_id": str(schedule_id)})
            raise ScanRejectedError(
                schedule_id=str(schedule_id),
                reason="No booking code found in the scanned text",
            )

        stmt = (
            select(Booking)
            .where(
                Booking.id == token,
                Booking.schedule_id == schedule_id,
                Booking.booking_status == BookingStatus.CONFIRMED.value,
            )
            .execution_options(populate_existing=True)
        )
        booking = (await self.db.execute(stmt)).scalar_one_or_none()
        if booking is None:
            metrics_collector.record_scan_rejected()
            logger.info(
                "Scan rejected - not a confirmed booking of this schedule",
                extra={"schedule_id": str(schedule_id), "token": token}
            )
            raise ScanRejectedError(
                schedule_id=str(schedule_id),
                reason="This code does not match a confirmed booking for this departure",
                token=token,
            )
        return booking

    async def resolve_for_staff(self, schedule_id: UUID, scanned_text: str, actor: User) -> Booking:
        self._require_staff(actor)
        return await self.resolve_scan(schedule_id, scanned_text)

    async def mark_attendance(
        self,
        schedule_id: UUID,
        scanned_text: str,
        status: AttendanceStatus,
        actor: User,
    ) -> AttendanceOutcome:
        """
        Record whether the traveler of a scanned booking showed up.

        Camera scans and manually typed codes take this same path. The write
        only succeeds from ``pending``; a repeated scan returns the booking
        unchanged and sends nothing.
        """
        self._require_staff(actor)
        status = AttendanceStatus(status)
        if status == AttendanceStatus.PENDING:
            raise ValidationError(
                detail="Attendance can only be marked as attended or not_attended",
                errors={"status": "must be attended or not_attended"},
            )

        booking = await self.resolve_scan(schedule_id, scanned_text)
        booking_id = booking.id
        if booking.attendance_status != AttendanceStatus.PENDING.value:
            logger.info(
                "Repeated scan of resolved booking",
                extra={"booking_id": booking_id, "attendance_status": booking.attendance_status}
            )
            return AttendanceOutcome(booking=booking, changed=False)

        stmt = (
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.attendance_status == AttendanceStatus.PENDING.value,
                Booking.booking_status == BookingStatus.CONFIRMED.value,
            )
            .values(attendance_status=status.value)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        if result.rowcount != 1:
            # Another device resolved the booking first
            booking = await self.resolve_scan(schedule_id, booking_id)
            return AttendanceOutcome(booking=booking, changed=False)

        metrics_collector.record_attendance(status.value)
        logger.info(
            "Attendance marked",
            extra={"booking_id": booking_id, "schedule_id": str(schedule_id), "status": status.value}
        )

        booking = await self.resolve_scan(schedule_id, booking_id)
        outcome = AttendanceOutcome(booking=booking, changed=True)

        trip = await self.db.get(Trip, booking.trip_id)
        title, template = ATTENDANCE_NOTIFICATIONS[status]
        try:
            await NotificationService(self.db).notify_user(
                user_id=booking.user_id,
                title=title,
                message=template.format(trip=trip.title if trip else "your trip"),
                type="attendance_confirmation",
                link="/dashboard",
                dedupe_key=f"attendance:{booking_id}:{status.value}",
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            metrics_collector.record_side_effect_failure("notification")
            logger.error(
                "Attendance notification failed",
                extra={"booking_id": booking_id, "status": status.value, "error": str(e)}
            )
            outcome.warnings.append("The traveler could not be notified")
            outcome.booking = await self.resolve_scan(schedule_id, booking_id)

        return outcome

    async def attendance_summary(self, schedule_id: UUID) -> AttendanceCounts:
        """Check-in counts over the confirmed bookings of a schedule."""
        await ScheduleService(self.db).get_schedule_or_raise(schedule_id)

        stmt = (
            select(
                Booking.attendance_status,
                func.count(Booking.id),
                func.coalesce(func.sum(Booking.number_of_people), 0),
            )
            .where(
                Booking.schedule_id == schedule_id,
                Booking.booking_status == BookingStatus.CONFIRMED.value,
            )
            .group_by(Booking.attendance_status)
        )
        rows = (await self.db.execute(stmt)).all()
        by_status = {status: count for status, count, _ in rows}

        return AttendanceCounts(
            schedule_id=schedule_id,
            confirmed_bookings=sum(count for _, count, _ in rows),
            total_people=sum(int(people) for _, _, people in rows),
            attended=by_status.get(AttendanceStatus.ATTENDED.value, 0),
            not_attended=by_status.get(AttendanceStatus.NOT_ATTENDED.value, 0),
            pending=by_status.get(AttendanceStatus.PENDING.value, 0),
        )
