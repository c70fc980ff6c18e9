"""Staff-driven booking status transitions and their side effects."""

import logging
from dataclasses import dataclass, field

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.authorization import is_admin
from ..core.exceptions import AuthorizationError, InvalidTransitionError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from ..models.schedule import TripSchedule
from ..models.trip import Trip
from ..models.user import User
from .booking_service import BookingService
from .email_dispatcher import BookingSummary, EmailDispatcher
from .inventory_service import InventoryService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.REJECTED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

# (title, message) sent to the booking owner after each transition
OWNER_NOTIFICATIONS: dict[BookingStatus, tuple[str, str]] = {
    BookingStatus.CONFIRMED: (
        "Booking Approved!",
        "Your booking for {trip} has been approved! Get ready for your adventure.",
    ),
    BookingStatus.REJECTED: (
        "Booking Rejected",
        "Your booking for {trip} has been rejected. Please contact support for more info.",
    ),
    BookingStatus.COMPLETED: (
        "Trip Completed",
        "Your trip {trip} has been marked as completed. We hope you had a great time!",
    ),
}


def can_transition(current: str, target: str) -> bool:
    try:
        return BookingStatus(target) in BOOKING_TRANSITIONS[BookingStatus(current)]
    except ValueError:
        return False


def assert_transition(booking_id: str, current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(resource_id=booking_id, current_status=current, target_status=target)


@dataclass
class TransitionResult:
    """Booking after the transition and the side effects that failed."""

    booking: Booking
    warnings: list[str] = field(default_factory=list)


class BookingStatusService:
    """Sole writer of ``Booking.booking_status``."""

    def __init__(
        self,
        db: AsyncSession,
        email_dispatcher: EmailDispatcher,
        inventory: InventoryService | None = None,
    ):
        self.db = db
        self.email_dispatcher = email_dispatcher
        self.inventory = inventory or InventoryService(db)
        self.bookings = BookingService(db, inventory=self.inventory)

    async def approve(self, booking_id: str, actor: User) -> TransitionResult:
        return await self.transition(booking_id, BookingStatus.CONFIRMED, actor)

    async def reject(self, booking_id: str, actor: User) -> TransitionResult:
        return await self.transition(booking_id, BookingStatus.REJECTED, actor)

    async def complete(self, booking_id: str, actor: User) -> TransitionResult:
        return await self.transition(booking_id, BookingStatus.COMPLETED, actor)

    async def transition(self, booking_id: str, target: BookingStatus, actor: User) -> TransitionResult:
        """
        Move a booking to ``target`` if the lifecycle allows it.

        The status write is a compare-and-set on the status read here, so of
        two staff acting on the same booking at once only one succeeds; the
        other gets InvalidTransitionError. Rejection returns the booking's
        seats to its schedule in the same transaction.

        Raises:
            AuthorizationError: If the actor is not staff
            NotFoundError: If the booking does not exist
            InvalidTransitionError: If the lifecycle forbids the change
        """
        if not is_admin(actor):
            raise AuthorizationError(
                detail="Only staff can change booking status",
                required_permissions=["admin"],
            )
        actor_id = actor.id

        booking = await self.bookings.get_booking_or_raise(booking_id)
        current = booking.booking_status
        assert_transition(booking_id, current, target.value)

        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.booking_status == current)
            .values(booking_status=target.value)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            latest = await self.bookings.get_booking_or_raise(booking_id)
            logger.info(
                "Booking status changed concurrently",
                extra={"booking_id": booking_id, "expected": current, "found": latest.booking_status}
            )
            raise InvalidTransitionError(
                resource_id=booking_id,
                current_status=latest.booking_status,
                target_status=target.value,
            )

        released = None
        if target == BookingStatus.REJECTED and booking.schedule_id is not None:
            released = await self.inventory.release(
                booking.schedule_id, booking.number_of_people, reason="rejection", commit=False
            )

        await self.db.commit()
        if released is not None:
            self.inventory.publish(released)

        metrics_collector.record_transition(current, target.value)
        logger.info(
            "Booking status changed",
            extra={"booking_id": booking_id, "from": current, "to": target.value, "actor": actor_id}
        )

        booking = await self.bookings.get_booking_or_raise(booking_id)
        warnings = await self._run_side_effects(booking, target)
        if warnings:
            booking = await self.bookings.get_booking_or_raise(booking_id)
        return TransitionResult(booking=booking, warnings=warnings)

    async def _run_side_effects(self, booking: Booking, target: BookingStatus) -> list[str]:
        warnings: list[str] = []
        booking_id = booking.id
        owner_id = booking.user_id
        recipient = booking.contact_email

        trip = await self.db.get(Trip, booking.trip_id)
        schedule = await self.db.get(TripSchedule, booking.schedule_id) if booking.schedule_id else None
        trip_title = trip.title if trip else "your trip"
        summary = BookingSummary(
            booking_id=booking_id,
            trip_name=trip_title,
            destination=trip.location if trip else "",
            start_date=schedule.start_date if schedule else None,
            end_date=schedule.end_date if schedule else None,
            total_amount=booking.total_amount,
            travelers=list(booking.travelers or []),
        )

        title, template = OWNER_NOTIFICATIONS[target]
        try:
            await NotificationService(self.db).notify_user(
                user_id=owner_id,
                title=title,
                message=template.format(trip=trip_title),
                type="booking_update",
                link="/dashboard",
                dedupe_key=f"booking:{booking_id}:{target.value}",
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            metrics_collector.record_side_effect_failure("notification")
            logger.error(
                "Owner notification failed",
                extra={"booking_id": booking_id, "status": target.value, "error": str(e)}
            )
            warnings.append("The traveler could not be notified")

        if target == BookingStatus.CONFIRMED:
            warning = await self._send_confirmation(recipient, summary)
            if warning:
                warnings.append(warning)

        return warnings

    async def _send_confirmation(self, recipient: str | None, summary: BookingSummary) -> str | None:
        if not recipient:
            metrics_collector.record_side_effect_failure("email")
            logger.warning("No recipient for confirmation email", extra={"booking_id": summary.booking_id})
            return "Confirmation email not sent: booking has no contact email"

        try:
            outcome = await self.email_dispatcher.send(recipient, summary)
        except Exception as e:
            metrics_collector.record_side_effect_failure("email")
            logger.error(
                "Confirmation email dispatcher raised",
                extra={"booking_id": summary.booking_id, "error": str(e)},
                exc_info=True
            )
            return "Confirmation email could not be sent"

        if not outcome.success:
            metrics_collector.record_side_effect_failure("email")
            logger.warning(
                "Confirmation email not delivered",
                extra={"booking_id": summary.booking_id, "reason": outcome.message}
            )
            return f"Confirmation email could not be sent: {outcome.message}"

        logger.info("Confirmation email sent", extra={"booking_id": summary.booking_id})
        return None
