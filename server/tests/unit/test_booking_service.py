"""Unit tests for booking creation and lookup."""

import asyncio
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import booking_request, load_user, seed_trip, seed_user, traveler
from tripbooking.core.exceptions import AuthorizationError, InsufficientSeatsError, NotFoundError, ValidationError
from tripbooking.models import Activity, Booking, Notification
from tripbooking.schemas.booking import ListBookingsRequest
from tripbooking.services.booking_service import BookingService, validate_travelers
from tripbooking.services.inventory_service import InventoryService
from tripbooking.services.notification_service import NotificationService
from tripbooking.services.seat_broadcaster import SeatBroadcaster


def _service(session) -> BookingService:
    return BookingService(session, inventory=InventoryService(session, broadcaster=SeatBroadcaster()))


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _available(session, schedule_id) -> int:
    seats = await InventoryService(session, broadcaster=SeatBroadcaster()).get_availability(schedule_id)
    return seats.available_seats


def test_validate_travelers_accepts_complete_party():
    """A primary traveler with contact details plus a minimal companion is valid."""
    companion = traveler(name="Ravi", phone=None, national_id=None)
    assert validate_travelers(2, [traveler(), companion]) == {}


def test_validate_travelers_reports_every_problem():
    """All field problems are reported together, keyed by their path."""
    errors = validate_travelers(3, [
        traveler(phone=" ", national_id=None),
        traveler(name="", age=151, gender=None),
    ])

    assert errors == {
        "number_of_people": "must equal the number of travelers (2)",
        "travelers[0].phone": "is required for the primary traveler",
        "travelers[0].national_id": "is required for the primary traveler",
        "travelers[1].name": "is required",
        "travelers[1].age": "must be between 0 and 150",
        "travelers[1].gender": "is required",
    }


def test_validate_travelers_requires_someone():
    errors = validate_travelers(1, [])
    assert errors["travelers"] == "at least one traveler is required"


@pytest.mark.asyncio
async def test_create_booking_reserves_seats(test_session, admin_id, traveler_id):
    """A valid booking is pending, priced per person and holds its seats."""
    seeded = await seed_trip(test_session, max_seats=10, price_per_person=1250000)
    principal = await load_user(test_session, traveler_id)

    outcome = await _service(test_session).create_booking(booking_request(seeded, people=3), principal)

    booking = outcome.booking
    assert outcome.warnings == []
    assert booking.booking_status == "pending"
    assert booking.attendance_status == "pending"
    assert booking.payment_status == "pending"
    assert booking.total_amount == 3750000
    assert booking.user_id == traveler_id
    assert booking.contact_email == "asha@example.com"
    assert len(booking.id) == 32 and booking.id.isalnum()
    assert [t["name"] for t in booking.travelers] == ["Asha Rao", "Companion 1", "Companion 2"]
    assert await _available(test_session, seeded.schedule_id) == 7


@pytest.mark.asyncio
async def test_online_payment_is_confirmed(test_session, traveler_id):
    seeded = await seed_trip(test_session)
    principal = await load_user(test_session, traveler_id)

    outcome = await _service(test_session).create_booking(
        booking_request(seeded, people=1, payment_method="online"), principal
    )

    assert outcome.booking.payment_method == "online"
    assert outcome.booking.payment_status == "confirmed"


@pytest.mark.asyncio
async def test_create_booking_notifies_admins(test_session, admin_id, traveler_id):
    """Each admin gets one notification and the feed gets one entry."""
    seeded = await seed_trip(test_session)
    principal = await load_user(test_session, traveler_id)

    outcome = await _service(test_session).create_booking(booking_request(seeded, people=2), principal)

    notifications = list((await test_session.execute(select(Notification))).scalars())
    assert [n.user_id for n in notifications] == [admin_id]
    assert notifications[0].title == "New Booking Request"
    assert "₹25,000" in notifications[0].message
    assert notifications[0].dedupe_key == f"booking:{outcome.booking.id}:created"
    assert await _count(test_session, Activity) == 1


@pytest.mark.asyncio
async def test_failed_admin_rows_keep_the_booking(test_session, admin_id, traveler_id, monkeypatch):
    """Notification and activity writes failing leave the booking and its seats in place."""
    seeded = await seed_trip(test_session, max_seats=10)
    principal = await load_user(test_session, traveler_id)

    async def failing_insert(self, table, values, conflict_columns):
        raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))

    monkeypatch.setattr(NotificationService, "_insert_if_missing", failing_insert)

    outcome = await _service(test_session).create_booking(booking_request(seeded, people=2), principal)

    assert outcome.warnings == [
        f"Notification to admin {admin_id} failed",
        "Activity feed entry could not be written",
    ]
    assert outcome.booking.booking_status == "pending"
    assert await _count(test_session, Booking) == 1
    assert await _count(test_session, Notification) == 0
    assert await _available(test_session, seeded.schedule_id) == 8


@pytest.mark.asyncio
async def test_fanout_crash_is_reported_as_warning(test_session, admin_id, traveler_id, monkeypatch):
    seeded = await seed_trip(test_session, max_seats=10)
    principal = await load_user(test_session, traveler_id)

    async def crashing_fan_out(self, event):
        raise OperationalError("SELECT users", {}, Exception("connection reset"))

    monkeypatch.setattr(NotificationService, "fan_out", crashing_fan_out)

    outcome = await _service(test_session).create_booking(booking_request(seeded, people=3), principal)

    assert outcome.warnings == ["Admin notifications could not be sent"]
    assert outcome.booking.id
    assert await _count(test_session, Booking) == 1
    assert await _available(test_session, seeded.schedule_id) == 7


@pytest.mark.asyncio
async def test_missing_primary_phone_writes_nothing(test_session, admin_id, traveler_id):
    """A primary traveler without a phone fails before any seat is taken."""
    seeded = await seed_trip(test_session, max_seats=10)
    principal = await load_user(test_session, traveler_id)
    request = booking_request(seeded, people=1, travelers=[traveler(phone=None)])

    with pytest.raises(ValidationError) as exc_info:
        await _service(test_session).create_booking(request, principal)

    assert "travelers[0].phone" in exc_info.value.errors
    assert await _available(test_session, seeded.schedule_id) == 10
    assert await _count(test_session, Booking) == 0
    assert await _count(test_session, Notification) == 0


@pytest.mark.asyncio
async def test_insufficient_seats_rejects_booking(test_session, traveler_id):
    seeded = await seed_trip(test_session, max_seats=2)
    principal = await load_user(test_session, traveler_id)

    with pytest.raises(InsufficientSeatsError):
        await _service(test_session).create_booking(booking_request(seeded, people=3), principal)

    assert await _available(test_session, seeded.schedule_id) == 2
    assert await _count(test_session, Booking) == 0


@pytest.mark.asyncio
async def test_trip_without_schedules_books_without_reservation(test_session, traveler_id):
    """Legacy trips with no departures still take bookings, with no seat counter."""
    seeded = await seed_trip(test_session, with_schedule=False)
    principal = await load_user(test_session, traveler_id)

    outcome = await _service(test_session).create_booking(
        booking_request(seeded, people=2, with_schedule=False), principal
    )

    assert outcome.booking.schedule_id is None
    assert outcome.booking.booking_status == "pending"


@pytest.mark.asyncio
async def test_trip_with_schedules_requires_a_schedule(test_session, traveler_id):
    seeded = await seed_trip(test_session)
    principal = await load_user(test_session, traveler_id)

    with pytest.raises(ValidationError) as exc_info:
        await _service(test_session).create_booking(
            booking_request(seeded, people=1, with_schedule=False), principal
        )

    assert "schedule_id" in exc_info.value.errors


@pytest.mark.asyncio
async def test_trip_with_only_departed_schedules_books_without_schedule(test_session, traveler_id):
    """Past departures do not force a schedule choice."""
    seeded = await seed_trip(test_session, start_date=date.today() - timedelta(days=10))
    principal = await load_user(test_session, traveler_id)

    outcome = await _service(test_session).create_booking(
        booking_request(seeded, people=1, with_schedule=False), principal
    )

    assert outcome.booking.schedule_id is None
    assert await _available(test_session, seeded.schedule_id) == seeded.max_seats


@pytest.mark.asyncio
async def test_schedule_of_another_trip_is_rejected(test_session, traveler_id):
    seeded = await seed_trip(test_session, slug="first-trip")
    other = await seed_trip(test_session, slug="second-trip")
    principal = await load_user(test_session, traveler_id)

    with pytest.raises(ValidationError) as exc_info:
        await _service(test_session).create_booking(
            booking_request(seeded, people=1, schedule_id=other.schedule_id), principal
        )

    assert exc_info.value.errors["schedule_id"] == "schedule does not belong to this trip"
    assert await _available(test_session, other.schedule_id) == other.max_seats


@pytest.mark.asyncio
async def test_departed_schedule_is_rejected(test_session, traveler_id):
    seeded = await seed_trip(test_session, start_date=date.today() - timedelta(days=1))
    principal = await load_user(test_session, traveler_id)

    with pytest.raises(ValidationError) as exc_info:
        await _service(test_session).create_booking(booking_request(seeded, people=1), principal)

    assert exc_info.value.errors["schedule_id"] == "schedule has already departed"


@pytest.mark.asyncio
async def test_unknown_trip_is_not_found(test_session, traveler_id):
    seeded = await seed_trip(test_session)
    principal = await load_user(test_session, traveler_id)
    request = booking_request(seeded, people=1)
    request.trip_id = request.schedule_id

    with pytest.raises(NotFoundError):
        await _service(test_session).create_booking(request, principal)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failure",
    [
        OperationalError("INSERT INTO bookings", {}, Exception("disk I/O error")),
        RuntimeError("worker crashed"),
        asyncio.CancelledError(),
    ],
    ids=["database-error", "runtime-error", "cancelled"],
)
async def test_failed_commit_keeps_seats(test_session, traveler_id, monkeypatch, failure):
    """Seats are only taken when the booking row commits with them."""
    seeded = await seed_trip(test_session, max_seats=6)
    principal = await load_user(test_session, traveler_id)

    async def failing_commit():
        raise failure

    monkeypatch.setattr(test_session, "commit", failing_commit)

    with pytest.raises(type(failure)):
        await _service(test_session).create_booking(booking_request(seeded, people=4), principal)

    monkeypatch.undo()
    # Closing the request session discards whatever was left open
    await test_session.rollback()
    assert await _available(test_session, seeded.schedule_id) == 6
    assert await _count(test_session, Booking) == 0


@pytest.mark.asyncio
async def test_refresh_failure_after_commit_keeps_booking(test_session, traveler_id, monkeypatch):
    """Once the booking is committed its seats stay taken, whatever happens next."""
    seeded = await seed_trip(test_session, max_seats=6)
    principal = await load_user(test_session, traveler_id)

    async def failing_refresh(instance, *args, **kwargs):
        raise OperationalError("SELECT bookings", {}, Exception("connection reset"))

    monkeypatch.setattr(test_session, "refresh", failing_refresh)

    with pytest.raises(OperationalError):
        await _service(test_session).create_booking(booking_request(seeded, people=4), principal)

    monkeypatch.undo()
    assert await _count(test_session, Booking) == 1
    assert await _available(test_session, seeded.schedule_id) == 2


@pytest.mark.asyncio
async def test_get_booking_for_owner_and_staff(test_session, admin_id, traveler_id):
    """Owners and staff can read a booking; other travelers cannot."""
    seeded = await seed_trip(test_session)
    await seed_user(test_session, "traveler-2", email="someone@example.com")
    service = _service(test_session)
    outcome = await service.create_booking(booking_request(seeded, people=1), await load_user(test_session, traveler_id))
    booking_id = outcome.booking.id

    owner_view = await service.get_booking_for(await load_user(test_session, traveler_id), booking_id)
    staff_view = await service.get_booking_for(await load_user(test_session, admin_id), booking_id)
    assert owner_view.id == staff_view.id == booking_id

    with pytest.raises(AuthorizationError):
        await service.get_booking_for(await load_user(test_session, "traveler-2"), booking_id)

    with pytest.raises(NotFoundError):
        await service.get_booking_for(await load_user(test_session, admin_id), "0" * 32)


@pytest.mark.asyncio
async def test_list_bookings_pages_newest_first(test_session, traveler_id):
    """Cursor pagination walks every booking once, newest first."""
    seeded = await seed_trip(test_session, with_schedule=False)
    base = datetime(2026, 1, 1, 12, 0, 0)
    for i in range(5):
        test_session.add(Booking(
            id=f"{i:032d}",
            user_id=traveler_id,
            trip_id=seeded.trip_id,
            number_of_people=1,
            total_amount=seeded.price_per_person,
            payment_method="cod",
            payment_status="pending",
            booking_status="confirmed" if i % 2 else "pending",
            travelers=[{"name": "Asha", "age": 29, "gender": "female"}],
            created_at=base + timedelta(minutes=i),
        ))
    await test_session.commit()
    service = _service(test_session)

    first = await service.list_bookings(ListBookingsRequest(limit=2))
    second = await service.list_bookings(ListBookingsRequest(limit=2, cursor=first.next_cursor))
    third = await service.list_bookings(ListBookingsRequest(limit=2, cursor=second.next_cursor))

    ids = [b.id for page in (first, second, third) for b in page.items]
    assert ids == [f"{i:032d}" for i in (4, 3, 2, 1, 0)]
    assert third.next_cursor is None

    confirmed = await service.list_bookings(ListBookingsRequest(booking_status="confirmed"))
    assert {b.id for b in confirmed.items} == {f"{i:032d}" for i in (1, 3)}

    mine = await service.list_bookings_for_user(traveler_id, limit=10)
    assert len(mine.items) == 5
