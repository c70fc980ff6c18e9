"""Booking router for traveler bookings and staff status changes."""

import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Header, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import (
    CurrentPrincipal,
    DatabaseSession,
    EmailDispatcherDependency,
    StaffPrincipal,
)
from ..core.exceptions import ProblemDetailsException
from ..models.user import User
from ..schemas.booking import (
    BookingResult,
    CreateBookingRequest,
    GetBookingRequest,
    ListBookingsRequest,
    ListBookingsResponse,
    ListMyBookingsRequest,
    TransitionBookingRequest,
)
from ..services.booking_service import BookingService
from ..services.booking_status_service import BookingStatusService
from ..services.email_dispatcher import EmailDispatcher
from ..services.idempotency_service import IdempotencyService
from .converters import booking_to_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

IDEMPOTENCY_KEY_DEPENDENCY = Header(None, alias="Idempotency-Key")


async def _handle_idempotent_operation(
    operation: str,
    idempotency_key: str,
    principal_id: str,
    request_body: dict[str, Any],
    operation_func: Callable[[], Awaitable[dict[str, Any]]],
    db: AsyncSession,
) -> JSONResponse:
    """Run ``operation_func`` once per key; retries get the stored response."""
    idempotency_service = IdempotencyService(db)

    cached_response = await idempotency_service.claim(
        idempotency_key=idempotency_key,
        operation=operation,
        principal_id=principal_id,
        request_body=request_body,
    )
    if cached_response:
        status_code, response_body = cached_response
        media_type = "application/problem+json" if status_code >= 400 else "application/json"
        return JSONResponse(
            status_code=status_code,
            content=response_body,
            media_type=media_type,
            headers={"Idempotent-Replayed": "true"},
        )

    try:
        response_dict = await operation_func()
    except ProblemDetailsException as e:
        # Rejections are replayed too, so a retried form cannot slip past them
        await idempotency_service.complete(
            idempotency_key=idempotency_key,
            operation=operation,
            principal_id=principal_id,
            status_code=e.status_code,
            response_body=e.problem_details,
        )
        raise
    except Exception:
        await idempotency_service.release(idempotency_key, operation, principal_id)
        raise

    await idempotency_service.complete(
        idempotency_key=idempotency_key,
        operation=operation,
        principal_id=principal_id,
        status_code=200,
        response_body=response_dict,
    )
    return JSONResponse(status_code=200, content=response_dict)


@router.post("/create", response_model=BookingResult)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DatabaseSession,
    principal: User = CurrentPrincipal,
    idempotency_key: Optional[str] = IDEMPOTENCY_KEY_DEPENDENCY,
) -> JSONResponse:
    """
    Book seats on a trip.

    Seats are reserved before the booking is stored. Failed admin
    notifications are returned as ``warnings``. Idempotent when an
    ``Idempotency-Key`` header is sent.
    """
    booking_service = BookingService(db)
    principal_id = principal.id

    async def operation() -> dict[str, Any]:
        outcome = await booking_service.create_booking(request, principal)
        response_data = BookingResult(
            booking=booking_to_schema(outcome.booking),
            warnings=outcome.warnings,
        )

        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": response_data.booking.id,
                "trip_id": str(request.trip_id),
                "schedule_id": str(request.schedule_id) if request.schedule_id else None,
                "number_of_people": request.number_of_people,
                "warnings": len(outcome.warnings),
                "idempotency_key": idempotency_key
            }
        )
        return response_data.model_dump(mode="json")

    try:
        if idempotency_key is None:
            return JSONResponse(status_code=200, content=await operation())

        return await _handle_idempotent_operation(
            operation="booking/create",
            idempotency_key=idempotency_key,
            principal_id=principal_id,
            request_body=request.model_dump(mode="json"),
            operation_func=operation,
            db=db,
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "trip_id": str(request.trip_id),
                "schedule_id": str(request.schedule_id) if request.schedule_id else None,
                "idempotency_key": idempotency_key,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=BookingResult)
async def get_booking(
    request: GetBookingRequest,
    db: AsyncSession = DatabaseSession,
    principal: User = CurrentPrincipal,
) -> JSONResponse:
    """Get one of the caller's bookings; staff may read any booking."""
    booking = await BookingService(db).get_booking_for(principal, request.booking_id)
    response_data = BookingResult(booking=booking_to_schema(booking))
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/mine", response_model=ListBookingsResponse)
async def list_my_bookings(
    request: ListMyBookingsRequest,
    db: AsyncSession = DatabaseSession,
    principal: User = CurrentPrincipal,
) -> JSONResponse:
    """The caller's bookings, newest first."""
    page = await BookingService(db).list_bookings_for_user(principal.id, request.cursor, request.limit)
    response_data = ListBookingsResponse(
        items=[booking_to_schema(booking) for booking in page.items],
        next_cursor=page.next_cursor,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/list", response_model=ListBookingsResponse)
async def list_bookings(
    request: ListBookingsRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
) -> JSONResponse:
    """All bookings for staff, filterable by status, trip and schedule."""
    page = await BookingService(db).list_bookings(request)
    response_data = ListBookingsResponse(
        items=[booking_to_schema(booking) for booking in page.items],
        next_cursor=page.next_cursor,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


async def _transition(
    action: str,
    request: TransitionBookingRequest,
    db: AsyncSession,
    staff: User,
    email_dispatcher: EmailDispatcher,
) -> JSONResponse:
    status_service = BookingStatusService(db, email_dispatcher=email_dispatcher)
    actor_id = staff.id
    result = await getattr(status_service, action)(request.booking_id, staff)
    response_data = BookingResult(booking=booking_to_schema(result.booking), warnings=result.warnings)

    if result.warnings:
        logger.warning(
            "Booking status changed with side-effect failures",
            extra={"booking_id": request.booking_id, "action": action, "warnings": result.warnings}
        )
    logger.info(
        "Booking status changed",
        extra={
            "booking_id": request.booking_id,
            "action": action,
            "booking_status": response_data.booking.booking_status.value,
            "actor": actor_id
        }
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/approve", response_model=BookingResult)
async def approve_booking(
    request: TransitionBookingRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
    email_dispatcher: EmailDispatcher = EmailDispatcherDependency,
) -> JSONResponse:
    """Confirm a pending booking; notifies the traveler and sends the confirmation email."""
    return await _transition("approve", request, db, staff, email_dispatcher)


@router.post("/reject", response_model=BookingResult)
async def reject_booking(
    request: TransitionBookingRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
    email_dispatcher: EmailDispatcher = EmailDispatcherDependency,
) -> JSONResponse:
    """Reject a pending booking and return its seats to the schedule."""
    return await _transition("reject", request, db, staff, email_dispatcher)


@router.post("/complete", response_model=BookingResult)
async def complete_booking(
    request: TransitionBookingRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
    email_dispatcher: EmailDispatcher = EmailDispatcherDependency,
) -> JSONResponse:
    """Mark a confirmed booking's trip as completed."""
    return await _transition("complete", request, db, staff, email_dispatcher)
