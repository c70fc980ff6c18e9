"""Schedule service for departure catalogue operations."""

import logging
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, ValidationError
from ..models.schedule import TripSchedule
from ..models.trip import Trip
from ..schemas.schedule import CreateScheduleRequest, SearchSchedulesRequest

logger = logging.getLogger(__name__)


class ScheduleSearchResult:
    """Page of schedules with the cursor of the next page."""

    def __init__(self, items: list[TripSchedule], next_cursor: str | None):
        self.items = items
        self.next_cursor = next_cursor


class ScheduleService:
    """Service for schedule-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def build_schedule(trip: Trip, start_date: date, end_date: date | None = None,
                       max_seats: int | None = None) -> TripSchedule:
        """New schedule with a full seat counter copied from the trip."""
        if end_date is None:
            end_date = start_date + timedelta(days=max(trip.duration_days - 1, 0))
        if end_date < start_date:
            raise ValidationError(
                detail="End date must not be before start date",
                errors={"end_date": "must be on or after start_date"},
            )
        if max_seats is not None and max_seats > trip.max_seats:
            raise ValidationError(
                detail="A departure cannot offer more seats than its trip",
                errors={"max_seats": f"must not exceed the trip's {trip.max_seats} seats"},
            )
        seats = max_seats or trip.max_seats
        return TripSchedule(
            trip_id=trip.id,
            start_date=start_date,
            end_date=end_date,
            max_seats=seats,
            available_seats=seats,
            is_active=True,
        )

    async def create_schedule(self, request: CreateScheduleRequest) -> TripSchedule:
        """
        Add a departure to an existing trip.

        Raises:
            NotFoundError: If the trip does not exist
            ValidationError: If the dates are out of order or the seat count
                exceeds the trip's
        """
        trip = await self.db.get(Trip, request.trip_id)
        if trip is None:
            raise NotFoundError(resource_type="trip", resource_id=str(request.trip_id))

        schedule = self.build_schedule(trip, request.start_date, request.end_date, request.max_seats)
        self.db.add(schedule)
        await self.db.commit()
        await self.db.refresh(schedule)

        logger.info(
            "Schedule created successfully",
            extra={
                "schedule_id": str(schedule.id),
                "trip_id": str(trip.id),
                "start_date": schedule.start_date.isoformat(),
                "max_seats": schedule.max_seats
            }
        )
        return schedule

    async def search_schedules(self, request: SearchSchedulesRequest) -> ScheduleSearchResult:
        """Search schedules with cursor pagination ordered by start date then id."""
        stmt = select(TripSchedule)

        conditions = []
        if request.trip_id:
            conditions.append(TripSchedule.trip_id == request.trip_id)
        if request.date_from:
            conditions.append(TripSchedule.start_date >= request.date_from)
        if request.date_to:
            conditions.append(TripSchedule.start_date <= request.date_to)
        if request.available_only:
            conditions.append(TripSchedule.available_seats > 0)
        if not request.include_inactive:
            conditions.append(TripSchedule.is_active.is_(True))

        if conditions:
            stmt = stmt.where(and_(*conditions))

        # Cursor is "<start_date>|<id>" of the last item served
        if request.cursor:
            try:
                cursor_date, cursor_id = request.cursor.split("|", 1)
                after_date = date.fromisoformat(cursor_date)
                after_id = UUID(cursor_id)
            except ValueError:
                logger.warning("Invalid cursor provided in schedule search", extra={"cursor": request.cursor})
            else:
                stmt = stmt.where(
                    (TripSchedule.start_date > after_date)
                    | and_(TripSchedule.start_date == after_date, TripSchedule.id > after_id)
                )

        stmt = stmt.order_by(TripSchedule.start_date, TripSchedule.id).limit(request.limit + 1)
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        schedules = list(result.scalars())

        has_next_page = len(schedules) > request.limit
        if has_next_page:
            schedules = schedules[:-1]

        next_cursor = None
        if has_next_page and schedules:
            last = schedules[-1]
            next_cursor = f"{last.start_date.isoformat()}|{last.id}"

        return ScheduleSearchResult(items=schedules, next_cursor=next_cursor)

    async def get_schedule(self, schedule_id: UUID) -> TripSchedule | None:
        stmt = (
            select(TripSchedule)
            .where(TripSchedule.id == schedule_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_schedule_or_raise(self, schedule_id: UUID) -> TripSchedule:
        schedule = await self.get_schedule(schedule_id)
        if schedule is None:
            logger.warning("Schedule not found", extra={"schedule_id": str(schedule_id)})
            raise NotFoundError(resource_type="schedule", resource_id=str(schedule_id))
        return schedule

    async def list_upcoming_for_trip(self, trip_id: UUID, today: date) -> list[TripSchedule]:
        """Active schedules of a trip that have not departed yet."""
        stmt = (
            select(TripSchedule)
            .where(
                TripSchedule.trip_id == trip_id,
                TripSchedule.is_active.is_(True),
                TripSchedule.start_date >= today,
            )
            .order_by(TripSchedule.start_date)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())
