"""Notification and activity feed routers."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import CurrentPrincipal, DatabaseSession, StaffPrincipal
from ..models.user import User
from ..schemas.notification import (
    Activity,
    ActivityFeedRequest,
    ActivityFeedResponse,
    ListNotificationsRequest,
    ListNotificationsResponse,
    MarkReadRequest,
    MarkReadResponse,
    Notification,
)
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/v1/notification", tags=["notification"])
activity_router = APIRouter(prefix="/v1/activity", tags=["activity"])


@router.post("/list", response_model=ListNotificationsResponse)
async def list_notifications(
    request: ListNotificationsRequest,
    db: AsyncSession = DatabaseSession,
    principal: User = CurrentPrincipal,
) -> JSONResponse:
    """The caller's notifications, newest first."""
    items, unread_count = await NotificationService(db).list_for_user(
        principal.id, unread_only=request.unread_only, limit=request.limit
    )
    response_data = ListNotificationsResponse(
        items=[
            Notification(
                id=str(item.id),
                title=item.title,
                message=item.message,
                type=item.type,
                link=item.link,
                is_read=item.is_read,
                created_at=item.created_at,
            )
            for item in items
        ],
        unread_count=unread_count,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/mark-read", response_model=MarkReadResponse)
async def mark_read(
    request: MarkReadRequest,
    db: AsyncSession = DatabaseSession,
    principal: User = CurrentPrincipal,
) -> JSONResponse:
    """Mark notifications as read; ids of other users' notifications are ignored."""
    updated = await NotificationService(db).mark_read(principal.id, request.notification_ids)
    return JSONResponse(status_code=200, content=MarkReadResponse(updated=updated).model_dump(mode="json"))


@activity_router.post("/feed", response_model=ActivityFeedResponse)
async def activity_feed(
    request: ActivityFeedRequest,
    db: AsyncSession = DatabaseSession,
    staff: User = StaffPrincipal,
) -> JSONResponse:
    """Admin activity feed, newest first."""
    activities = await NotificationService(db).list_activities(limit=request.limit)
    response_data = ActivityFeedResponse(
        items=[
            Activity(
                id=str(activity.id),
                type=activity.type,
                message=activity.message,
                amount=activity.amount,
                link=activity.link,
                created_at=activity.created_at,
            )
            for activity in activities
        ]
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
