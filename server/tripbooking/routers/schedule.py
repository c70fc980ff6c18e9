"""Schedule router: departures, seat availability and the live seat feed."""

import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, StaffPrincipal
from ..core.exceptions import NotFoundError, ProblemDetailsException
from ..models.user import User
from ..schemas.schedule import (
    Availability,
    AvailabilityRequest,
    CreateScheduleRequest,
    Schedule,
    SearchSchedulesRequest,
    SearchSchedulesResponse,
)
from ..services.inventory_service import InventoryService
from ..services.schedule_service import ScheduleService
from ..services.seat_broadcaster import seat_broadcaster
from .converters import schedule_to_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/schedule", tags=["schedule"])

# Close code sent when the schedule of a seat feed does not exist
WS_CLOSE_NOT_FOUND = 4404


@router.post("/create", response_model=Schedule)
async def create_schedule(
    request: CreateScheduleRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
) -> JSONResponse:
    """Add a departure to a trip with a full seat counter."""
    schedule_service = ScheduleService(db)

    try:
        schedule = await schedule_service.create_schedule(request)
        response_data = schedule_to_schema(schedule)

        logger.info(
            "Schedule created successfully",
            extra={
                "schedule_id": response_data.id,
                "trip_id": str(request.trip_id),
                "start_date": request.start_date.isoformat(),
                "actor": staff.id
            }
        )

        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in schedule creation",
            extra={"trip_id": str(request.trip_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/search", response_model=SearchSchedulesResponse)
async def search_schedules(
    request: SearchSchedulesRequest,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """
    Search schedules.

    Supports filtering by trip, start date range and availability.
    Uses cursor-based pagination.
    """
    result = await ScheduleService(db).search_schedules(request)
    response_data = SearchSchedulesResponse(
        items=[schedule_to_schema(schedule) for schedule in result.items],
        next_cursor=result.next_cursor,
    )

    logger.info(
        "Schedule search completed",
        extra={
            "total_found": len(response_data.items),
            "has_next_page": result.next_cursor is not None,
        }
    )

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/availability", response_model=Availability)
async def get_availability(
    request: AvailabilityRequest,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Current seat counter of a schedule."""
    seats = await InventoryService(db).get_availability(request.schedule_id)
    response_data = Availability(
        schedule_id=str(seats.schedule_id),
        available_seats=seats.available_seats,
        max_seats=seats.max_seats,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Client messages carry nothing; reading them is how a disconnect is noticed
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/{schedule_id}/seats/ws")
async def seat_feed(
    websocket: WebSocket,
    schedule_id: UUID,
    db: AsyncSession = DatabaseSession,
) -> None:
    """
    Push the schedule's seat counter to the client after every committed change.

    The feed only reads. The first message is the current counter; after it
    only updates with a newer seat version are sent, so an update queued
    while the snapshot was read never rolls the display back.
    """
    await websocket.accept()

    async with seat_broadcaster.subscribe(schedule_id) as queue:
        try:
            seats = await InventoryService(db).get_availability(schedule_id)
        except NotFoundError:
            await websocket.close(code=WS_CLOSE_NOT_FOUND)
            return
        finally:
            await db.close()

        await websocket.send_json({
            "type": "seat_snapshot",
            "schedule_id": str(schedule_id),
            "available_seats": seats.available_seats,
            "max_seats": seats.max_seats,
            "version": seats.version,
        })
        last_version = seats.version

        disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            while True:
                next_update = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait(
                    {next_update, disconnected}, return_when=asyncio.FIRST_COMPLETED
                )
                if disconnected in done:
                    next_update.cancel()
                    break
                update = next_update.result()
                if update.version <= last_version:
                    continue
                last_version = update.version
                await websocket.send_json(update.to_message())
        except WebSocketDisconnect:
            pass
        finally:
            disconnected.cancel()

    logger.debug("Seat feed closed", extra={"schedule_id": str(schedule_id)})
