"""Trip service for catalogue operations."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..models.trip import Trip
from ..schemas.trip import CreateTripRequest
from .schedule_service import ScheduleService

logger = logging.getLogger(__name__)


class TripService:
    """Service for trip-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_trip(self, request: CreateTripRequest) -> Trip:
        """
        Create a new trip, and its first schedule when a start date is given.

        Args:
            request: Trip creation request

        Returns:
            Created trip entity with schedules loaded

        Raises:
            ConflictError: If a trip with the same slug already exists
            ValidationError: If the schedule dates are out of order
        """
        existing_trip = await self.get_trip_by_slug(request.slug)
        if existing_trip:
            logger.warning(
                "Trip creation failed - slug already exists",
                extra={"slug": request.slug, "existing_trip_id": str(existing_trip.id)}
            )
            raise ConflictError(
                detail=f"Trip with slug '{request.slug}' already exists",
                conflicting_resource={"id": str(existing_trip.id), "slug": existing_trip.slug}
            )

        if request.start_date and request.end_date and request.end_date < request.start_date:
            raise ValidationError(
                detail="End date must not be before start date",
                errors={"end_date": "must be on or after start_date"},
            )

        trip = Trip(
            title=request.title,
            slug=request.slug,
            location=request.location,
            description=request.description,
            price_per_person=request.price_per_person,
            currency=settings.currency,
            duration_days=request.duration_days,
            max_seats=request.max_seats,
            is_active=True,
        )
        self.db.add(trip)

        try:
            await self.db.flush()
            if request.start_date is not None:
                self.db.add(
                    ScheduleService.build_schedule(trip, request.start_date, request.end_date)
                )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Trip creation failed - integrity error",
                extra={"slug": request.slug, "error": str(e)}
            )
            raise ConflictError(detail=f"Trip with slug '{request.slug}' already exists") from e

        logger.info(
            "Trip created successfully",
            extra={
                "trip_id": str(trip.id),
                "slug": trip.slug,
                "with_schedule": request.start_date is not None
            }
        )
        return await self.get_trip_or_raise(trip.id)

    async def get_trip(self, trip_id: UUID) -> Trip | None:
        stmt = (
            select(Trip)
            .where(Trip.id == trip_id)
            .options(selectinload(Trip.schedules))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_trip_or_raise(self, trip_id: UUID) -> Trip:
        """
        Get trip by ID or raise NotFoundError.

        Raises:
            NotFoundError: If trip not found
        """
        trip = await self.get_trip(trip_id)
        if trip is None:
            logger.warning("Trip not found", extra={"trip_id": str(trip_id)})
            raise NotFoundError(resource_type="trip", resource_id=str(trip_id))
        return trip

    async def get_trip_by_slug(self, slug: str) -> Trip | None:
        result = await self.db.execute(select(Trip).where(Trip.slug == slug))
        return result.scalar_one_or_none()
