"""Notification and activity feed model definitions."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class Notification(Base):
    """Message addressed to a single recipient."""

    __tablename__ = "notifications"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Recipient
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    link: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Identifies the originating event so a retried fanout writes nothing new
    dedupe_key: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        CheckConstraint("length(user_id) > 0", name="ck_notification_user_id_not_empty"),
        CheckConstraint("length(dedupe_key) > 0", name="ck_notification_dedupe_key_not_empty"),
        UniqueConstraint("user_id", "dedupe_key", name="uq_notification_user_dedupe_key"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, user_id='{self.user_id}', type='{self.type}', "
            f"is_read={self.is_read})>"
        )


class Activity(Base):
    """Append-only entry of the admin activity feed."""

    __tablename__ = "activities"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    link: Mapped[str | None] = mapped_column(String(255), nullable=True)

    dedupe_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        CheckConstraint("length(dedupe_key) > 0", name="ck_activity_dedupe_key_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, type='{self.type}', created_at={self.created_at})>"
