"""Integration tests for API endpoints."""

from datetime import date, timedelta

import pytest

from conftest import auth_headers

ADMIN = auth_headers("admin-1", email="ops@example.com", roles=["admin"])
TRAVELER = auth_headers("traveler-1", email="asha@example.com")
OTHER_TRAVELER = auth_headers("traveler-2", email="ravi@example.com")


def _trip_payload(slug="hampta-pass", max_seats=10, start_date=None):
    return {
        "title": "Hampta Pass Trek",
        "slug": slug,
        "location": "Manali",
        "description": "Cross from the Kullu valley into Lahaul",
        "price_per_person": 1250000,
        "duration_days": 5,
        "max_seats": max_seats,
        "start_date": (start_date or date.today() + timedelta(days=30)).isoformat(),
    }


def _booking_payload(trip, people=2):
    travelers = [{
        "name": "Asha Rao", "age": 29, "gender": "female",
        "phone": "9876543210", "national_id": "1234-5678-9012",
    }]
    travelers += [{"name": f"Companion {i}", "age": 30, "gender": "male"} for i in range(1, people)]
    return {
        "trip_id": trip["id"],
        "schedule_id": trip["schedules"][0]["id"],
        "number_of_people": people,
        "payment_method": "cod",
        "travelers": travelers,
    }


async def _create_trip(client, **kwargs):
    response = await client.post("/v1/trip/create", json=_trip_payload(**kwargs), headers=ADMIN)
    assert response.status_code == 200
    return response.json()


async def _available(client, schedule_id):
    response = await client.post("/v1/schedule/availability", json={"schedule_id": schedule_id})
    assert response.status_code == 200
    return response.json()["available_seats"]


@pytest.mark.asyncio
async def test_create_trip_with_first_schedule(test_client):
    """Staff create a trip; a start date also creates its first departure."""
    trip = await _create_trip(test_client)

    assert trip["slug"] == "hampta-pass"
    assert trip["price_per_person"] == {"amount": 1250000, "currency": "INR"}
    assert len(trip["schedules"]) == 1
    schedule = trip["schedules"][0]
    assert schedule["available_seats"] == schedule["max_seats"] == 10
    assert date.fromisoformat(schedule["end_date"]) - date.fromisoformat(schedule["start_date"]) == timedelta(days=4)


@pytest.mark.asyncio
async def test_create_trip_requires_auth(test_client):
    response = await test_client.post("/v1/trip/create", json=_trip_payload())

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["status"] == 401


@pytest.mark.asyncio
async def test_create_trip_requires_staff(test_client):
    response = await test_client.post("/v1/trip/create", json=_trip_payload(), headers=TRAVELER)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_slug_conflicts(test_client):
    await _create_trip(test_client)

    response = await test_client.post("/v1/trip/create", json=_trip_payload(), headers=ADMIN)

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_trip_invalid_data(test_client):
    payload = {**_trip_payload(), "slug": "Not A Slug"}

    response = await test_client.post("/v1/trip/create", json=payload, headers=ADMIN)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_booking_lifecycle(test_client, email_dispatcher):
    """Book, approve, get notified and check in through the public API."""
    trip = await _create_trip(test_client)
    schedule_id = trip["schedules"][0]["id"]

    response = await test_client.post("/v1/booking/create", json=_booking_payload(trip), headers=TRAVELER)
    assert response.status_code == 200
    booking = response.json()["booking"]
    assert booking["booking_status"] == "pending"
    assert booking["total_amount"] == {"amount": 2500000, "currency": "INR"}
    assert await _available(test_client, schedule_id) == 8

    response = await test_client.post("/v1/booking/approve", json={"booking_id": booking["id"]}, headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["booking"]["booking_status"] == "confirmed"
    assert response.json()["warnings"] == []
    assert len(email_dispatcher.sent) == 1

    response = await test_client.post("/v1/notification/list", json={}, headers=TRAVELER)
    notifications = response.json()
    assert [n["title"] for n in notifications["items"]] == ["Booking Approved!"]
    assert notifications["unread_count"] == 1

    response = await test_client.post(
        "/v1/attendance/mark",
        json={
            "schedule_id": schedule_id,
            "scanned_text": f"https://trips.example.com/booking/{booking['id']}",
            "status": "attended",
        },
        headers=ADMIN,
    )
    assert response.status_code == 200
    assert response.json()["changed"] is True
    assert response.json()["booking"]["attendance_status"] == "attended"

    response = await test_client.post("/v1/attendance/summary", json={"schedule_id": schedule_id}, headers=ADMIN)
    assert response.json()["attended"] == 1
    assert response.json()["total_people"] == 2


@pytest.mark.asyncio
async def test_booking_create_is_idempotent(test_client):
    """A retried request with the same key replays the first booking."""
    trip = await _create_trip(test_client)
    headers = {**TRAVELER, "Idempotency-Key": "form-submit-1"}

    first = await test_client.post("/v1/booking/create", json=_booking_payload(trip), headers=headers)
    second = await test_client.post("/v1/booking/create", json=_booking_payload(trip), headers=headers)

    assert first.status_code == second.status_code == 200
    assert second.json() == first.json()
    assert second.headers["Idempotent-Replayed"] == "true"
    assert await _available(test_client, trip["schedules"][0]["id"]) == 8

    changed = await test_client.post("/v1/booking/create", json=_booking_payload(trip, people=3), headers=headers)
    assert changed.status_code == 422


@pytest.mark.asyncio
async def test_booking_validation_problem(test_client):
    """Missing primary traveler details come back as one 400 problem with field errors."""
    trip = await _create_trip(test_client)
    payload = _booking_payload(trip, people=1)
    del payload["travelers"][0]["phone"]

    response = await test_client.post("/v1/booking/create", json=payload, headers=TRAVELER)

    assert response.status_code == 400
    problem = response.json()
    assert problem["code"] == "VALIDATION_FAILED"
    assert "travelers[0].phone" in problem["errors"]
    assert await _available(test_client, trip["schedules"][0]["id"]) == 10


@pytest.mark.asyncio
async def test_booking_insufficient_seats(test_client):
    trip = await _create_trip(test_client, max_seats=2)

    response = await test_client.post("/v1/booking/create", json=_booking_payload(trip, people=3), headers=TRAVELER)

    assert response.status_code == 409
    assert response.json()["code"] == "INSUFFICIENT_SEATS"


@pytest.mark.asyncio
async def test_reject_returns_seats(test_client, email_dispatcher):
    trip = await _create_trip(test_client)
    schedule_id = trip["schedules"][0]["id"]
    created = await test_client.post("/v1/booking/create", json=_booking_payload(trip, people=4), headers=TRAVELER)
    booking_id = created.json()["booking"]["id"]
    assert await _available(test_client, schedule_id) == 6

    response = await test_client.post("/v1/booking/reject", json={"booking_id": booking_id}, headers=ADMIN)

    assert response.json()["booking"]["booking_status"] == "rejected"
    assert await _available(test_client, schedule_id) == 10
    assert email_dispatcher.sent == []

    again = await test_client.post("/v1/booking/approve", json={"booking_id": booking_id}, headers=ADMIN)
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_booking_visibility(test_client):
    trip = await _create_trip(test_client)
    created = await test_client.post("/v1/booking/create", json=_booking_payload(trip), headers=TRAVELER)
    booking_id = created.json()["booking"]["id"]

    own = await test_client.post("/v1/booking/get", json={"booking_id": booking_id}, headers=TRAVELER)
    other = await test_client.post("/v1/booking/get", json={"booking_id": booking_id}, headers=OTHER_TRAVELER)
    mine = await test_client.post("/v1/booking/mine", json={}, headers=TRAVELER)
    others_mine = await test_client.post("/v1/booking/mine", json={}, headers=OTHER_TRAVELER)
    staff_list = await test_client.post("/v1/booking/list", json={"booking_status": "pending"}, headers=ADMIN)
    traveler_list = await test_client.post("/v1/booking/list", json={}, headers=TRAVELER)

    assert own.status_code == 200
    assert other.status_code == 403
    assert [b["id"] for b in mine.json()["items"]] == [booking_id]
    assert others_mine.json()["items"] == []
    assert [b["id"] for b in staff_list.json()["items"]] == [booking_id]
    assert traveler_list.status_code == 403


@pytest.mark.asyncio
async def test_unknown_scan_is_rejected(test_client):
    trip = await _create_trip(test_client)

    response = await test_client.post(
        "/v1/attendance/resolve",
        json={"schedule_id": trip["schedules"][0]["id"], "scanned_text": "not a booking"},
        headers=ADMIN,
    )

    assert response.status_code == 404
    assert response.json()["code"] == "SCAN_REJECTED"


@pytest.mark.asyncio
async def test_new_booking_reaches_admin_inbox_and_feed(test_client):
    trip = await _create_trip(test_client)
    await test_client.post("/v1/booking/create", json=_booking_payload(trip), headers=TRAVELER)

    inbox = (await test_client.post("/v1/notification/list", json={}, headers=ADMIN)).json()
    feed = (await test_client.post("/v1/activity/feed", json={}, headers=ADMIN)).json()

    assert [n["title"] for n in inbox["items"]] == ["New Booking Request"]
    assert feed["items"][0]["amount"] == 2500000

    marked = await test_client.post(
        "/v1/notification/mark-read", json={"notification_ids": [inbox["items"][0]["id"]]}, headers=ADMIN
    )
    assert marked.json() == {"updated": 1}
    inbox = (await test_client.post("/v1/notification/list", json={"unread_only": True}, headers=ADMIN)).json()
    assert inbox == {"items": [], "unread_count": 0}

    forbidden = await test_client.post("/v1/activity/feed", json={}, headers=TRAVELER)
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_vendor_application_notifies_admins(test_client):
    # The admin account exists once it has made a request
    await test_client.post("/v1/notification/list", json={}, headers=ADMIN)

    response = await test_client.post(
        "/v1/vendor/apply",
        json={"business_name": "Himalayan Trails", "contact_email": "hello@trails.example"},
        headers=TRAVELER,
    )

    assert response.status_code == 200
    assert response.json()["application"]["status"] == "pending"
    inbox = (await test_client.post("/v1/notification/list", json={}, headers=ADMIN)).json()
    assert [n["type"] for n in inbox["items"]] == ["vendor_application"]


@pytest.mark.asyncio
async def test_schedule_search_and_create(test_client):
    trip = await _create_trip(test_client)
    later = (date.today() + timedelta(days=60)).isoformat()

    created = await test_client.post(
        "/v1/schedule/create", json={"trip_id": trip["id"], "start_date": later, "max_seats": 6}, headers=ADMIN
    )
    assert created.status_code == 200
    assert created.json()["available_seats"] == 6

    response = await test_client.post("/v1/schedule/search", json={"trip_id": trip["id"], "limit": 1})
    page = response.json()
    assert len(page["items"]) == 1
    assert page["next_cursor"] is not None

    response = await test_client.post(
        "/v1/schedule/search", json={"trip_id": trip["id"], "limit": 1, "cursor": page["next_cursor"]}
    )
    assert [s["start_date"] for s in response.json()["items"]] == [later]


@pytest.mark.asyncio
async def test_availability_unknown_schedule(test_client):
    response = await test_client.post(
        "/v1/schedule/availability", json={"schedule_id": "00000000-0000-0000-0000-000000000000"}
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_schedule_cannot_exceed_trip_seats(test_client):
    trip = await _create_trip(test_client, max_seats=10)
    later = (date.today() + timedelta(days=60)).isoformat()

    response = await test_client.post(
        "/v1/schedule/create", json={"trip_id": trip["id"], "start_date": later, "max_seats": 500}, headers=ADMIN
    )

    assert response.status_code == 400
    assert "max_seats" in response.json()["errors"]
    search = await test_client.post("/v1/schedule/search", json={"trip_id": trip["id"]})
    assert [s["max_seats"] for s in search.json()["items"]] == [10]
