"""Inventory service owning the per-schedule seat counter."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import InsufficientSeatsError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.schedule import TripSchedule
from .seat_broadcaster import SeatBroadcaster, SeatUpdate, seat_broadcaster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeatCount:
    """Seat counter of a schedule as written by a reserve or release."""

    schedule_id: UUID
    available_seats: int
    max_seats: int
    version: int = 0


class InventoryService:
    """
    Sole writer of ``TripSchedule.available_seats``.

    Both writes are single conditional UPDATE statements evaluated by the
    database, so concurrent callers on one schedule are serialized by the
    row write itself and the counter never leaves ``[0, max_seats]``.
    """

    def __init__(self, db: AsyncSession, broadcaster: SeatBroadcaster | None = None):
        self.db = db
        self.broadcaster = broadcaster or seat_broadcaster

    @staticmethod
    def _validate_count(count: int) -> None:
        if count < 1:
            raise ValidationError(
                detail="Seat count must be at least 1",
                errors={"count": "must be >= 1"},
            )

    async def _read_schedule(self, schedule_id: UUID) -> TripSchedule | None:
        stmt = (
            select(TripSchedule)
            .where(TripSchedule.id == schedule_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def reserve(self, schedule_id: UUID, count: int, commit: bool = True) -> SeatCount:
        """
        Take ``count`` seats from the schedule, or fail without touching it.

        Raises:
            ValidationError: If count is below 1
            NotFoundError: If the schedule does not exist
            InsufficientSeatsError: If fewer than ``count`` seats remain
        """
        self._validate_count(count)

        stmt = (
            update(TripSchedule)
            .where(
                TripSchedule.id == schedule_id,
                TripSchedule.available_seats >= count,
            )
            .values(
                available_seats=TripSchedule.available_seats - count,
                seat_version=TripSchedule.seat_version + 1,
            )
            .returning(TripSchedule.available_seats, TripSchedule.max_seats, TripSchedule.seat_version)
            .execution_options(synchronize_session=False)
        )
        row = (await self.db.execute(stmt)).first()

        if row is None:
            schedule = await self._read_schedule(schedule_id)
            available = schedule.available_seats if schedule is not None else None
            if commit:
                await self.db.rollback()
            if available is None:
                logger.warning("Reserve on unknown schedule", extra={"schedule_id": str(schedule_id)})
                raise NotFoundError(resource_type="schedule", resource_id=str(schedule_id))

            metrics_collector.record_reservation_rejected(str(schedule_id))
            logger.info(
                "Reservation rejected - insufficient seats",
                extra={
                    "schedule_id": str(schedule_id),
                    "requested": count,
                    "available": available,
                }
            )
            raise InsufficientSeatsError(
                schedule_id=str(schedule_id),
                requested_seats=count,
                available_seats=available,
            )

        seats = SeatCount(
            schedule_id=schedule_id, available_seats=row[0], max_seats=row[1], version=row[2]
        )
        metrics_collector.record_seats_reserved(str(schedule_id), count)

        if commit:
            await self.db.commit()
            self.publish(seats)

        logger.info(
            "Seats reserved",
            extra={
                "schedule_id": str(schedule_id),
                "count": count,
                "available_after": seats.available_seats,
            }
        )
        return seats

    async def release(
        self,
        schedule_id: UUID,
        count: int,
        reason: str = "cancellation",
        commit: bool = True,
    ) -> SeatCount:
        """
        Return ``count`` seats to the schedule, clamped to its max seats.

        Raises:
            ValidationError: If count is below 1
            NotFoundError: If the schedule does not exist
        """
        self._validate_count(count)

        restored = TripSchedule.available_seats + count
        stmt = (
            update(TripSchedule)
            .where(TripSchedule.id == schedule_id)
            .values(
                available_seats=case(
                    (restored > TripSchedule.max_seats, TripSchedule.max_seats),
                    else_=restored,
                ),
                seat_version=TripSchedule.seat_version + 1,
            )
            .returning(TripSchedule.available_seats, TripSchedule.max_seats, TripSchedule.seat_version)
            .execution_options(synchronize_session=False)
        )
        row = (await self.db.execute(stmt)).first()
        if row is None:
            logger.warning("Release on unknown schedule", extra={"schedule_id": str(schedule_id)})
            raise NotFoundError(resource_type="schedule", resource_id=str(schedule_id))

        seats = SeatCount(
            schedule_id=schedule_id, available_seats=row[0], max_seats=row[1], version=row[2]
        )
        metrics_collector.record_seats_released(str(schedule_id), count, reason)

        if commit:
            await self.db.commit()
            self.publish(seats)

        logger.info(
            "Seats released",
            extra={
                "schedule_id": str(schedule_id),
                "count": count,
                "reason": reason,
                "available_after": seats.available_seats,
            }
        )
        return seats

    async def get_availability(self, schedule_id: UUID) -> SeatCount:
        """Point read of the seat counter; never writes."""
        schedule = await self._read_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError(resource_type="schedule", resource_id=str(schedule_id))
        return SeatCount(
            schedule_id=schedule.id,
            available_seats=schedule.available_seats,
            max_seats=schedule.max_seats,
            version=schedule.seat_version,
        )

    def publish(self, seats: SeatCount) -> None:
        """Notify observers of a committed counter value."""
        self.broadcaster.publish(
            SeatUpdate(
                schedule_id=seats.schedule_id,
                available_seats=seats.available_seats,
                max_seats=seats.max_seats,
                version=seats.version,
            )
        )
