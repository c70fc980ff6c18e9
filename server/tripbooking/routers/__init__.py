"""FastAPI routers package."""

from .attendance import router as attendance_router
from .booking import router as booking_router
from .health import router as health_router
from .metrics import router as metrics_router
from .notification import activity_router
from .notification import router as notification_router
from .schedule import router as schedule_router
from .trip import router as trip_router
from .vendor import router as vendor_router

__all__ = [
    "activity_router",
    "attendance_router",
    "booking_router",
    "health_router",
    "metrics_router",
    "notification_router",
    "schedule_router",
    "trip_router",
    "vendor_router",
]
