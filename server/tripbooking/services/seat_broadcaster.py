"""In-process publish/subscribe for schedule seat counts."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator
from uuid import UUID

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeatUpdate:
    """Seat counter of one schedule as of a committed write."""

    schedule_id: UUID
    available_seats: int
    max_seats: int
    version: int = 0
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> dict:
        return {
            "type": "seat_update",
            "schedule_id": str(self.schedule_id),
            "available_seats": self.available_seats,
            "max_seats": self.max_seats,
            "version": self.version,
            "timestamp": self.published_at.isoformat(),
        }


class SeatBroadcaster:
    """
    Fan committed seat counts out to read-only observers.

    Publishing never awaits a subscriber. Each subscriber owns a bounded
    queue; when it is full the oldest update is dropped, since only the
    latest count matters to a seat display.
    """

    def __init__(self, queue_size: int = 16):
        self.queue_size = queue_size
        self._subscribers: dict[UUID, set[asyncio.Queue]] = {}

    def subscriber_count(self, schedule_id: UUID) -> int:
        return len(self._subscribers.get(schedule_id, ()))

    @asynccontextmanager
    async def subscribe(self, schedule_id: UUID) -> AsyncIterator[asyncio.Queue]:
        """Register a queue for ``schedule_id`` for the lifetime of the context."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(schedule_id, set()).add(queue)
        logger.debug(
            "Seat subscriber registered",
            extra={"schedule_id": str(schedule_id), "subscribers": self.subscriber_count(schedule_id)}
        )
        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(schedule_id)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscribers[schedule_id]

    def publish(self, update: SeatUpdate) -> int:
        """Deliver ``update`` to every current subscriber; returns how many received it."""
        delivered = 0
        for queue in list(self._subscribers.get(update.schedule_id, ())):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(update)
            delivered += 1
        return delivered


# Global broadcaster instance
seat_broadcaster = SeatBroadcaster()
