"""Notification fanout, per-user notifications and the admin activity feed."""

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.authorization import is_admin
from ..core.config import settings
from ..core.observability import metrics_collector
from ..models.booking import Booking
from ..models.notification import Activity, Notification
from ..models.trip import Trip
from ..models.user import User
from ..models.vendor import VendorApplication
from .user_service import UserService

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}


def format_money(amount: int, currency: str) -> str:
    """Render minor units for humans, e.g. ``₹12,500``."""
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    whole, cents = divmod(amount, 100)
    if cents:
        return f"{symbol}{whole:,}.{cents:02d}"
    return f"{symbol}{whole:,}"


@dataclass(frozen=True)
class FanoutEvent:
    """
    One admin-facing event: a notification per administrator plus one feed entry.

    ``key`` identifies the event itself; every row written for it carries
    the key, so replaying the event only fills in rows that are missing.
    """

    key: str
    title: str
    message: str
    type: str
    link: str
    activity_message: str
    activity_amount: int | None = None


@dataclass
class FanoutResult:
    """What a fanout wrote and what it failed to write."""

    recipients: list[str] = field(default_factory=list)
    notifications_created: int = 0
    activity_created: bool = False
    warnings: list[str] = field(default_factory=list)


def new_booking_event(booking: Booking, trip: Trip) -> FanoutEvent:
    amount = format_money(booking.total_amount, trip.currency)
    return FanoutEvent(
        key=f"booking:{booking.id}:created",
        title="New Booking Request",
        message=f"New booking for {trip.title} by {booking.number_of_people} people. Amount: {amount}",
        type="booking",
        link="/admin/bookings",
        activity_message=f"New booking for {trip.title} ({booking.number_of_people} people)",
        activity_amount=booking.total_amount,
    )


def new_vendor_application_event(application: VendorApplication) -> FanoutEvent:
    return FanoutEvent(
        key=f"vendor_application:{application.id}:created",
        title="New Vendor Application",
        message=f"New application from {application.business_name}",
        type="vendor_application",
        link="/admin/vendors",
        activity_message=f"New vendor application: {application.business_name}",
    )


class NotificationService:
    """Service for notification and activity operations."""

    def __init__(self, db: AsyncSession, fallback_admin_email: str | None = None):
        self.db = db
        self.fallback_admin_email = (
            fallback_admin_email if fallback_admin_email is not None else settings.fallback_admin_email
        )

    def _insert(self, table):
        # ON CONFLICT DO NOTHING keeps every write safe to replay
        if self.db.bind.dialect.name == "postgresql":
            return postgresql.insert(table)
        return sqlite.insert(table)

    async def _insert_if_missing(self, table, values: dict[str, Any], conflict_columns: list[str]) -> bool:
        stmt = self._insert(table).values(**values).on_conflict_do_nothing(index_elements=conflict_columns)
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def admin_recipients(self) -> list[User]:
        """Every administrator exactly once, however many admin signals they carry."""
        users = await UserService(self.db).list_users()
        recipients: dict[str, User] = {}
        for user in users:
            if is_admin(user, self.fallback_admin_email):
                recipients.setdefault(user.id, user)
        return list(recipients.values())

    async def fan_out(self, event: FanoutEvent) -> FanoutResult:
        """
        Write one notification per administrator and one activity entry.

        Each row commits on its own. A failed row is rolled back, reported
        in ``warnings`` and does not stop the remaining rows.
        """
        result = FanoutResult()

        try:
            recipient_ids = [user.id for user in await self.admin_recipients()]
        except SQLAlchemyError as e:
            await self.db.rollback()
            metrics_collector.record_side_effect_failure("notification")
            logger.error("Could not resolve admin recipients", extra={"event": event.key, "error": str(e)})
            result.warnings.append("Admin notifications could not be sent")
            recipient_ids = []

        for user_id in recipient_ids:
            result.recipients.append(user_id)
            try:
                created = await self._insert_if_missing(
                    Notification.__table__,
                    {
                        "id": uuid4(),
                        "user_id": user_id,
                        "title": event.title,
                        "message": event.message,
                        "type": event.type,
                        "link": event.link,
                        "is_read": False,
                        "dedupe_key": event.key,
                    },
                    ["user_id", "dedupe_key"],
                )
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                metrics_collector.record_side_effect_failure("notification")
                logger.error(
                    "Admin notification failed",
                    extra={"event": event.key, "user_id": user_id, "error": str(e)}
                )
                result.warnings.append(f"Notification to admin {user_id} failed")
                continue
            if created:
                result.notifications_created += 1

        try:
            result.activity_created = await self._insert_if_missing(
                Activity.__table__,
                {
                    "id": uuid4(),
                    "type": event.type,
                    "message": event.activity_message,
                    "amount": event.activity_amount,
                    "link": event.link,
                    "dedupe_key": event.key,
                },
                ["dedupe_key"],
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            metrics_collector.record_side_effect_failure("activity")
            logger.error("Activity entry failed", extra={"event": event.key, "error": str(e)})
            result.warnings.append("Activity feed entry could not be written")

        logger.info(
            "Fanout completed",
            extra={
                "event": event.key,
                "recipients": len(result.recipients),
                "notifications_created": result.notifications_created,
                "activity_created": result.activity_created,
                "failures": len(result.warnings),
            }
        )
        return result

    async def notify_user(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str,
        dedupe_key: str,
        link: str | None = None,
    ) -> bool:
        """
        Write a notification for one user and commit it.

        Returns False when the notification already existed. Database errors
        propagate; callers treating this as best-effort catch them.
        """
        created = await self._insert_if_missing(
            Notification.__table__,
            {
                "id": uuid4(),
                "user_id": user_id,
                "title": title,
                "message": message,
                "type": type,
                "link": link,
                "is_read": False,
                "dedupe_key": dedupe_key,
            },
            ["user_id", "dedupe_key"],
        )
        await self.db.commit()
        return created

    async def list_for_user(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> tuple[list[Notification], int]:
        """Newest notifications of a user and the user's unread count."""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
        items = list((await self.db.execute(stmt.execution_options(populate_existing=True))).scalars())

        unread_stmt = select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        unread_count = (await self.db.execute(unread_stmt)).scalar_one()
        return items, unread_count

    async def mark_read(self, user_id: str, notification_ids: list[UUID]) -> int:
        """Flip ``is_read`` on the caller's own notifications; others are ignored."""
        stmt = (
            update(Notification)
            .where(
                Notification.id.in_(notification_ids),
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount

    async def list_activities(self, limit: int = 50) -> list[Activity]:
        stmt = select(Activity).order_by(Activity.created_at.desc(), Activity.id).limit(limit)
        return list((await self.db.execute(stmt)).scalars())
