"""Trip router for catalogue operations."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, StaffPrincipal
from ..core.exceptions import ProblemDetailsException
from ..models.user import User
from ..schemas.trip import CreateTripRequest, GetTripRequest, Trip
from ..services.trip_service import TripService
from .converters import trip_to_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/trip", tags=["trip"])


@router.post("/create", response_model=Trip)
async def create_trip(
    request: CreateTripRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
) -> JSONResponse:
    """
    Create a new trip.

    When ``start_date`` is given the trip's first schedule is created with it.
    """
    trip_service = TripService(db)

    try:
        trip = await trip_service.create_trip(request)
        response_data = trip_to_schema(trip)

        logger.info(
            "Trip created successfully",
            extra={"trip_id": response_data.id, "slug": request.slug, "actor": staff.id}
        )

        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in trip creation",
            extra={"slug": request.slug, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Trip)
async def get_trip(
    request: GetTripRequest,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Get a trip with its schedules."""
    trip = await TripService(db).get_trip_or_raise(request.trip_id)
    return JSONResponse(status_code=200, content=trip_to_schema(trip).model_dump(mode="json"))
