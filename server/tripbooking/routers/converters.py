"""Model to response-schema conversion shared by the routers."""

from ..core.config import settings
from ..models.booking import Booking as BookingModel
from ..models.schedule import TripSchedule
from ..models.trip import Trip as TripModel
from ..schemas.booking import Booking, Traveler
from ..schemas.common import Money
from ..schemas.schedule import Schedule
from ..schemas.trip import Trip


def schedule_to_schema(schedule: TripSchedule) -> Schedule:
    return Schedule(
        id=str(schedule.id),
        trip_id=str(schedule.trip_id),
        start_date=schedule.start_date,
        end_date=schedule.end_date,
        max_seats=schedule.max_seats,
        available_seats=schedule.available_seats,
        is_active=schedule.is_active,
    )


def trip_to_schema(trip: TripModel) -> Trip:
    """Convert trip model (schedules loaded) to schema."""
    return Trip(
        id=str(trip.id),
        title=trip.title,
        slug=trip.slug,
        location=trip.location,
        description=trip.description,
        price_per_person=Money(amount=trip.price_per_person, currency=trip.currency),
        duration_days=trip.duration_days,
        max_seats=trip.max_seats,
        is_active=trip.is_active,
        schedules=[schedule_to_schema(schedule) for schedule in trip.schedules],
    )


def booking_to_schema(booking: BookingModel, currency: str | None = None) -> Booking:
    return Booking(
        id=booking.id,
        user_id=booking.user_id,
        trip_id=str(booking.trip_id),
        schedule_id=str(booking.schedule_id) if booking.schedule_id else None,
        number_of_people=booking.number_of_people,
        total_amount=Money(amount=booking.total_amount, currency=currency or settings.currency),
        payment_method=booking.payment_method,
        payment_status=booking.payment_status,
        booking_status=booking.booking_status,
        attendance_status=booking.attendance_status,
        travelers=[Traveler(**traveler) for traveler in booking.travelers],
        created_at=booking.created_at,
    )
