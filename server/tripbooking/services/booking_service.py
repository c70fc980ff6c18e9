"""Booking service: validation, seat reservation and persistence of bookings."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.authorization import is_admin
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus, PaymentMethod, PaymentStatus
from ..models.user import User
from ..schemas.booking import CreateBookingRequest, ListBookingsRequest, TravelerIn
from .inventory_service import InventoryService
from .notification_service import NotificationService, new_booking_event
from .schedule_service import ScheduleService
from .trip_service import TripService

logger = logging.getLogger(__name__)

PAYMENT_STATUS_BY_METHOD = {
    PaymentMethod.COD: PaymentStatus.PENDING,
    PaymentMethod.ONLINE: PaymentStatus.CONFIRMED,
}


@dataclass
class BookingOutcome:
    """Persisted booking and the side effects that failed after it was written."""

    booking: Booking
    warnings: list[str] = field(default_factory=list)


@dataclass
class BookingPage:
    items: list[Booking]
    next_cursor: str | None


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def validate_travelers(number_of_people: int, travelers: list[TravelerIn]) -> dict[str, str]:
    """
    Check the traveler list of a booking request.

    Returns a mapping of field path to message; empty when the list is valid.
    """
    errors: dict[str, str] = {}

    if number_of_people < 1:
        errors["number_of_people"] = "must be at least 1"
    if not travelers:
        errors["travelers"] = "at least one traveler is required"
    elif number_of_people != len(travelers):
        errors["number_of_people"] = f"must equal the number of travelers ({len(travelers)})"

    for index, traveler in enumerate(travelers):
        prefix = f"travelers[{index}]"
        if _blank(traveler.name):
            errors[f"{prefix}.name"] = "is required"
        if traveler.age is None:
            errors[f"{prefix}.age"] = "is required"
        elif traveler.age < 0 or traveler.age > 150:
            errors[f"{prefix}.age"] = "must be between 0 and 150"
        if _blank(traveler.gender):
            errors[f"{prefix}.gender"] = "is required"
        if index == 0:
            if _blank(traveler.phone):
                errors[f"{prefix}.phone"] = "is required for the primary traveler"
            if _blank(traveler.national_id):
                errors[f"{prefix}.national_id"] = "is required for the primary traveler"

    return errors


def _traveler_record(index: int, traveler: TravelerIn) -> dict[str, Any]:
    record: dict[str, Any] = {
        "name": traveler.name.strip(),
        "age": traveler.age,
        "gender": traveler.gender.strip(),
    }
    if index == 0 or not _blank(traveler.phone):
        record["phone"] = (traveler.phone or "").strip() or None
    if index == 0 or not _blank(traveler.national_id):
        record["national_id"] = (traveler.national_id or "").strip() or None
    return record


class BookingService:
    """Service for booking-related operations."""

    def __init__(
        self,
        db: AsyncSession,
        inventory: InventoryService | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.inventory = inventory or InventoryService(db)
        self.today = today

    async def create_booking(self, request: CreateBookingRequest, principal: User) -> BookingOutcome:
        """
        Validate, reserve seats and persist a pending booking.

        Nothing is written until every check has passed. The seat decrement
        and the booking insert share one transaction, so a failure anywhere
        before the commit leaves the seat counter untouched.

        Raises:
            ValidationError: If traveler data or the schedule choice is invalid
            NotFoundError: If the trip or schedule does not exist
            InsufficientSeatsError: If the schedule cannot take the party
        """
        errors = validate_travelers(request.number_of_people, request.travelers)
        if errors:
            logger.info(
                "Booking rejected - validation failed",
                extra={"trip_id": str(request.trip_id), "fields": sorted(errors)}
            )
            raise ValidationError(detail="Booking request is incomplete or invalid", errors=errors)

        trip = await TripService(self.db).get_trip_or_raise(request.trip_id)
        if not trip.is_active:
            raise ValidationError(
                detail="This trip is not accepting bookings",
                errors={"trip_id": "trip is inactive"},
            )

        schedule_id = None
        if request.schedule_id is not None:
            schedule = await ScheduleService(self.db).get_schedule_or_raise(request.schedule_id)
            schedule_errors = {}
            if schedule.trip_id != trip.id:
                schedule_errors["schedule_id"] = "schedule does not belong to this trip"
            elif not schedule.is_active:
                schedule_errors["schedule_id"] = "schedule is not active"
            elif schedule.start_date < self.today():
                schedule_errors["schedule_id"] = "schedule has already departed"
            if schedule_errors:
                raise ValidationError(detail="Selected schedule cannot be booked", errors=schedule_errors)
            schedule_id = schedule.id
        elif await ScheduleService(self.db).list_upcoming_for_trip(trip.id, self.today()):
            raise ValidationError(
                detail="A departure date must be selected for this trip",
                errors={"schedule_id": "is required while the trip has upcoming departures"},
            )

        payment_method = PaymentMethod(request.payment_method)
        booking = Booking(
            user_id=principal.id,
            contact_email=request.contact_email or principal.email,
            trip_id=trip.id,
            schedule_id=schedule_id,
            number_of_people=request.number_of_people,
            total_amount=trip.price_per_person * request.number_of_people,
            payment_method=payment_method.value,
            payment_status=PAYMENT_STATUS_BY_METHOD[payment_method].value,
            booking_status=BookingStatus.PENDING.value,
            travelers=[_traveler_record(i, t) for i, t in enumerate(request.travelers)],
        )

        # Seat decrement and booking insert commit together or not at all
        trip_id = trip.id
        seats = None
        try:
            if schedule_id is not None:
                seats = await self.inventory.reserve(schedule_id, request.number_of_people, commit=False)
            self.db.add(booking)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Booking persistence failed - seat reservation rolled back",
                extra={"trip_id": str(trip_id), "schedule_id": str(schedule_id), "error": str(e)}
            )
            raise
        except Exception:
            await self.db.rollback()
            raise

        if seats is not None:
            self.inventory.publish(seats)
        await self.db.refresh(booking)

        metrics_collector.record_booking_created(payment_method.value)
        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": booking.id,
                "trip_id": str(booking.trip_id),
                "schedule_id": str(schedule_id) if schedule_id else None,
                "number_of_people": booking.number_of_people,
                "payment_method": booking.payment_method,
            }
        )

        booking_id = booking.id
        outcome = BookingOutcome(booking=booking)
        try:
            fanout = await NotificationService(self.db).fan_out(new_booking_event(booking, trip))
            outcome.warnings.extend(fanout.warnings)
        except Exception as e:
            metrics_collector.record_side_effect_failure("notification")
            logger.error(
                "Booking fanout failed",
                extra={"booking_id": booking_id, "error": str(e)},
                exc_info=True
            )
            outcome.warnings.append("Admin notifications could not be sent")

        if outcome.warnings:
            # A failed side effect rolled the session back and expired the booking
            outcome.booking = await self.get_booking_or_raise(booking_id)
        return outcome

    async def get_booking(self, booking_id: str) -> Booking | None:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_or_raise(self, booking_id: str) -> Booking:
        booking = await self.get_booking(booking_id)
        if booking is None:
            logger.warning("Booking not found", extra={"booking_id": booking_id})
            raise NotFoundError(resource_type="booking", resource_id=booking_id)
        return booking

    async def get_booking_for(self, principal: User, booking_id: str) -> Booking:
        """Booking visible to the caller: its owner or staff."""
        booking = await self.get_booking_or_raise(booking_id)
        if booking.user_id != principal.id and not is_admin(principal):
            raise AuthorizationError(detail="This booking belongs to another user")
        return booking

    async def list_bookings_for_user(self, user_id: str, cursor: str | None = None, limit: int = 20) -> BookingPage:
        return await self._page(select(Booking).where(Booking.user_id == user_id), cursor, limit)

    async def list_bookings(self, request: ListBookingsRequest) -> BookingPage:
        """Staff view over all bookings, newest first."""
        stmt = select(Booking)
        if request.booking_status is not None:
            stmt = stmt.where(Booking.booking_status == request.booking_status.value)
        if request.trip_id is not None:
            stmt = stmt.where(Booking.trip_id == request.trip_id)
        if request.schedule_id is not None:
            stmt = stmt.where(Booking.schedule_id == request.schedule_id)
        return await self._page(stmt, request.cursor, request.limit)

    async def _page(self, stmt, cursor: str | None, limit: int) -> BookingPage:
        # Cursor is "<created_at>|<id>" of the last item served
        if cursor:
            try:
                cursor_time, cursor_id = cursor.split("|", 1)
                after = datetime.fromisoformat(cursor_time)
            except ValueError:
                logger.warning("Invalid cursor provided in booking list", extra={"cursor": cursor})
            else:
                stmt = stmt.where(
                    or_(
                        Booking.created_at < after,
                        and_(Booking.created_at == after, Booking.id < cursor_id),
                    )
                )

        stmt = stmt.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit + 1)
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        bookings = list(result.scalars())

        next_cursor = None
        if len(bookings) > limit:
            bookings = bookings[:limit]
            last = bookings[-1]
            next_cursor = f"{last.created_at.isoformat()}|{last.id}"
        return BookingPage(items=bookings, next_cursor=next_cursor)
