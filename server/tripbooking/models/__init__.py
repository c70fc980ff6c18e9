"""Models module exporting all database models."""

from .booking import AttendanceStatus, Booking, BookingStatus, PaymentMethod, PaymentStatus
from .idempotency import IdempotencyRecord
from .notification import Activity, Notification
from .schedule import TripSchedule
from .trip import Trip
from .user import User
from .vendor import VendorApplication

__all__ = [
    # Catalog
    "Trip",
    "TripSchedule",

    # Accounts
    "User",
    "VendorApplication",

    # Booking entities
    "Booking",
    "BookingStatus",
    "AttendanceStatus",
    "PaymentMethod",
    "PaymentStatus",

    # Notifications
    "Notification",
    "Activity",

    # Idempotency entity
    "IdempotencyRecord",
]
