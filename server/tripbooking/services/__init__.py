"""Service layer package."""

from .attendance_service import AttendanceService
from .booking_service import BookingService
from .booking_status_service import BookingStatusService
from .email_dispatcher import EmailDispatcher, HttpEmailDispatcher
from .idempotency_service import IdempotencyService
from .inventory_service import InventoryService
from .notification_service import NotificationService
from .schedule_service import ScheduleService
from .seat_broadcaster import SeatBroadcaster, seat_broadcaster
from .trip_service import TripService
from .user_service import UserService
from .vendor_service import VendorService

__all__ = [
    "AttendanceService",
    "BookingService",
    "BookingStatusService",
    "EmailDispatcher",
    "HttpEmailDispatcher",
    "IdempotencyService",
    "InventoryService",
    "NotificationService",
    "ScheduleService",
    "SeatBroadcaster",
    "seat_broadcaster",
    "TripService",
    "UserService",
    "VendorService",
]
