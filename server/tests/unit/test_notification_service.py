"""Unit tests for admin fanout, user notifications and the activity feed."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import seed_user
from tripbooking.models import Activity, Notification
from tripbooking.services.notification_service import FanoutEvent, NotificationService, format_money


def _event(key="booking:abc:created") -> FanoutEvent:
    return FanoutEvent(
        key=key,
        title="New Booking Request",
        message="New booking for Hampta Pass Trek by 2 people. Amount: ₹25,000",
        type="booking",
        link="/admin/bookings",
        activity_message="New booking for Hampta Pass Trek (2 people)",
        activity_amount=2500000,
    )


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _seed_admins(session):
    # One admin carries every signal at once; the other only the roles list
    await seed_user(session, "admin-a", email="boss@example.com", role="admin", roles=["admin"])
    await seed_user(session, "admin-b", email="ops@example.com", roles=["staff", "Admin"])
    await seed_user(session, "traveler", email="asha@example.com", roles=["traveler"])


@pytest.mark.parametrize(
    ("amount", "currency", "expected"),
    [
        (2500000, "INR", "₹25,000"),
        (1999, "USD", "$19.99"),
        (0, "INR", "₹0"),
        (123456, "JPY", "JPY 1,234.56"),
    ],
)
def test_format_money(amount, currency, expected):
    assert format_money(amount, currency) == expected


@pytest.mark.asyncio
async def test_fanout_reaches_each_admin_once(test_session):
    """An admin matching several admin signals still gets one notification."""
    await _seed_admins(test_session)
    service = NotificationService(test_session, fallback_admin_email="boss@example.com")

    result = await service.fan_out(_event())

    assert sorted(result.recipients) == ["admin-a", "admin-b"]
    assert result.notifications_created == 2
    assert result.activity_created is True
    assert result.warnings == []
    assert await _count(test_session, Notification) == 2
    assert await _count(test_session, Activity) == 1


@pytest.mark.asyncio
async def test_fanout_retry_writes_nothing_new(test_session):
    """Replaying the same event fills in nothing that already exists."""
    await _seed_admins(test_session)
    service = NotificationService(test_session, fallback_admin_email="")

    await service.fan_out(_event())
    retry = await service.fan_out(_event())

    assert retry.notifications_created == 0
    assert retry.activity_created is False
    assert await _count(test_session, Notification) == 2
    assert await _count(test_session, Activity) == 1


@pytest.mark.asyncio
async def test_fanout_with_no_admins(test_session):
    await seed_user(test_session, "traveler", email="asha@example.com")

    result = await NotificationService(test_session, fallback_admin_email="").fan_out(_event())

    assert result.recipients == []
    assert result.activity_created is True


@pytest.mark.asyncio
async def test_fallback_email_makes_admin(test_session):
    await seed_user(test_session, "owner", email="Owner@Example.com")

    result = await NotificationService(test_session, fallback_admin_email="owner@example.com").fan_out(_event())

    assert result.recipients == ["owner"]


@pytest.mark.asyncio
async def test_failed_row_does_not_stop_the_others(test_session, monkeypatch):
    """One failing notification becomes a warning; the rest are still written."""
    await _seed_admins(test_session)
    service = NotificationService(test_session, fallback_admin_email="")
    original = service._insert_if_missing

    async def failing_for_admin_a(table, values, conflict_columns):
        if values.get("user_id") == "admin-a":
            raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))
        return await original(table, values, conflict_columns)

    monkeypatch.setattr(service, "_insert_if_missing", failing_for_admin_a)

    result = await service.fan_out(_event())

    assert result.notifications_created == 1
    assert result.activity_created is True
    assert result.warnings == ["Notification to admin admin-a failed"]
    notifications = list((await test_session.execute(select(Notification))).scalars())
    assert [n.user_id for n in notifications] == ["admin-b"]


@pytest.mark.asyncio
async def test_notify_user_is_deduplicated(test_session):
    await seed_user(test_session, "traveler", email="asha@example.com")
    service = NotificationService(test_session)

    first = await service.notify_user("traveler", "Booking Approved!", "Approved", "booking_update", "booking:x:confirmed")
    second = await service.notify_user("traveler", "Booking Approved!", "Approved", "booking_update", "booking:x:confirmed")

    assert (first, second) == (True, False)
    assert await _count(test_session, Notification) == 1


@pytest.mark.asyncio
async def test_list_and_mark_read(test_session):
    """Users only see and mark their own notifications."""
    await seed_user(test_session, "traveler", email="asha@example.com")
    await seed_user(test_session, "someone-else")
    service = NotificationService(test_session)
    for i in range(3):
        await service.notify_user("traveler", f"Title {i}", "Body", "booking_update", f"key:{i}")
    await service.notify_user("someone-else", "Other", "Body", "booking_update", "key:other")

    items, unread = await service.list_for_user("traveler")
    assert len(items) == 3
    assert unread == 3

    others, _ = await service.list_for_user("someone-else")
    updated = await service.mark_read("traveler", [items[0].id, items[1].id, others[0].id])
    assert updated == 2

    unread_items, unread = await service.list_for_user("traveler", unread_only=True)
    assert unread == 1
    assert [n.id for n in unread_items] == [items[2].id]

    _, other_unread = await service.list_for_user("someone-else")
    assert other_unread == 1


@pytest.mark.asyncio
async def test_list_activities(test_session):
    service = NotificationService(test_session, fallback_admin_email="")
    await service.fan_out(_event("booking:one:created"))
    await service.fan_out(_event("booking:two:created"))

    activities = await service.list_activities(limit=10)

    assert len(activities) == 2
    assert {a.amount for a in activities} == {2500000}
