"""Notification and activity feed Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ListNotificationsRequest(BaseModel):
    """Request schema for the caller's notifications."""

    unread_only: bool = Field(False, description="Only unread notifications")
    limit: int = Field(50, ge=1, le=200, description="Maximum number of notifications")


class MarkReadRequest(BaseModel):
    """Request schema for marking notifications as read."""

    notification_ids: list[UUID] = Field(..., min_length=1, max_length=200, description="Notifications to mark")


class Notification(BaseModel):
    """Notification response schema."""

    id: str
    title: str
    message: str
    type: str
    link: str | None = None
    is_read: bool
    created_at: datetime


class ListNotificationsResponse(BaseModel):
    """Response schema for notification lists."""

    items: list[Notification]
    unread_count: int = Field(..., ge=0)


class MarkReadResponse(BaseModel):
    """Number of notifications flipped to read."""

    updated: int = Field(..., ge=0)


class ActivityFeedRequest(BaseModel):
    """Request schema for the admin activity feed."""

    limit: int = Field(50, ge=1, le=200, description="Maximum number of entries")


class Activity(BaseModel):
    """Activity feed entry."""

    id: str
    type: str
    message: str
    amount: int | None = None
    link: str | None = None
    created_at: datetime


class ActivityFeedResponse(BaseModel):
    """Response schema for the activity feed."""

    items: list[Activity]
