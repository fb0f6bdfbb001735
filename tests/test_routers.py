import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gymflow.core.database import get_session
from gymflow.main import app
from tests.conftest import ORG_ID

HEADERS = {"X-Organization-ID": str(ORG_ID)}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as async_client:
        yield async_client
    app.dependency_overrides.clear()


async def create_template(client, **overrides):
    payload = {"name": "Spin", "duration_minutes": 45, "capacity": 1}
    payload.update(overrides)
    response = await client.post(
        "/api/v1/planning/templates", json=payload, headers=HEADERS
    )
    assert response.status_code == 201
    return response.json()


async def create_class(client, capacity=1, **overrides):
    payload = {
        "name": "Spin",
        "start_time": "2030-05-06T18:00:00",
        "capacity": capacity,
    }
    payload.update(overrides)
    response = await client.post(
        "/api/v1/planning/classes", json=payload, headers=HEADERS
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_organization_header_required(client):
    response = await client.get("/api/v1/planning/templates")

    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_organization_header_must_be_numeric(client):
    response = await client.get(
        "/api/v1/planning/templates", headers={"X-Organization-ID": "abc"}
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_template_lifecycle(client):
    template = await create_template(client)

    listed = await client.get("/api/v1/planning/templates", headers=HEADERS)
    assert [t["id"] for t in listed.json()] == [template["id"]]

    deleted = await client.delete(
        f"/api/v1/planning/templates/{template['id']}", headers=HEADERS
    )
    assert deleted.status_code == 200
    assert deleted.json()["is_active"] is False

    listed = await client.get("/api/v1/planning/templates", headers=HEADERS)
    assert listed.json() == []


@pytest.mark.asyncio
async def test_preview_does_not_create_classes(client):
    response = await client.post(
        "/api/v1/planning/recurring/preview",
        json={
            "pattern": "weekly",
            "days_of_week": [1],
            "start_date": "2027-03-01",
            "end_date": "2027-03-31",
            "time_of_day": "07:00",
        },
        headers=HEADERS,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 5
    assert body["start_times"][0] == "2027-03-01T07:00:00"


@pytest.mark.asyncio
async def test_preview_over_limit(client):
    response = await client.post(
        "/api/v1/planning/recurring/preview",
        json={
            "pattern": "daily",
            "start_date": "2027-01-01",
            "end_date": "2027-12-31",
            "time_of_day": "07:00",
        },
        headers=HEADERS,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["details"] == {"limit": 100, "count": 101}
    assert body["path"] == "/api/v1/planning/recurring/preview"


@pytest.mark.asyncio
async def test_weekly_without_days_rejected(client):
    response = await client.post(
        "/api/v1/planning/recurring/preview",
        json={
            "pattern": "weekly",
            "start_date": "2027-03-01",
            "end_date": "2027-03-31",
            "time_of_day": "07:00",
        },
        headers=HEADERS,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_generate_recurring_classes(client):
    template = await create_template(client)
    payload = {
        "template_id": template["id"],
        "recurrence": {
            "pattern": "weekly",
            "days_of_week": [1, 3],
            "start_date": "2027-03-01",
            "end_date": "2027-03-14",
            "time_of_day": "07:00",
            "exclude_dates": ["2027-03-08"],
        },
        "overrides": {"location": "Rooftop"},
    }

    response = await client.post(
        "/api/v1/planning/recurring/generate", json=payload, headers=HEADERS
    )

    assert response.status_code == 201
    body = response.json()
    assert len(body["created"]) == 3
    assert {c["location"] for c in body["created"]} == {"Rooftop"}
    assert body["skipped"] == []
    assert body["failed"] == []

    again = await client.post(
        "/api/v1/planning/recurring/generate", json=payload, headers=HEADERS
    )
    assert again.json()["created"] == []
    assert len(again.json()["skipped"]) == 3


@pytest.mark.asyncio
async def test_generate_unknown_template(client):
    response = await client.post(
        "/api/v1/planning/recurring/generate",
        json={
            "template_id": 999,
            "recurrence": {
                "pattern": "daily",
                "start_date": "2027-03-01",
                "end_date": "2027-03-02",
                "time_of_day": "07:00",
            },
        },
        headers=HEADERS,
    )

    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_booking_flow(client):
    scheduled_class = await create_class(client, capacity=1)

    first = await client.post(
        "/api/v1/bookings",
        json={"class_id": scheduled_class["id"], "member_id": 101, "is_drop_in": True},
        headers=HEADERS,
    )
    second = await client.post(
        "/api/v1/bookings",
        json={"class_id": scheduled_class["id"], "member_id": 102, "is_drop_in": True},
        headers=HEADERS,
    )

    assert first.status_code == 201
    assert first.json()["status"] == "confirmed"
    assert second.json()["status"] == "waitlist"
    assert second.json()["position"] == 1

    listing = await client.get(
        f"/api/v1/bookings/classes/{scheduled_class['id']}", headers=HEADERS
    )
    assert [b["member_id"] for b in listing.json()["confirmed"]] == [101]
    assert [b["member_id"] for b in listing.json()["waitlist"]] == [102]

    cancelled = await client.post(
        f"/api/v1/bookings/{first.json()['booking']['id']}/cancel",
        json={"reason": "Travelling"},
        headers=HEADERS,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["booking"]["status"] == "cancelled"
    assert cancelled.json()["promoted"]["member_id"] == 102

    detail = await client.get(
        f"/api/v1/planning/classes/{scheduled_class['id']}", headers=HEADERS
    )
    assert detail.json()["confirmed_count"] == 1
    assert detail.json()["waitlist_count"] == 0


@pytest.mark.asyncio
async def test_booking_rejections(client):
    scheduled_class = await create_class(client, capacity=3)
    booking = {"class_id": scheduled_class["id"], "member_id": 101}

    no_subscription = await client.post("/api/v1/bookings", json=booking, headers=HEADERS)
    assert no_subscription.status_code == 402
    assert no_subscription.json()["error"] == "NO_ACTIVE_SUBSCRIPTION"

    drop_in = {**booking, "is_drop_in": True}
    await client.post("/api/v1/bookings", json=drop_in, headers=HEADERS)
    duplicate = await client.post("/api/v1/bookings", json=drop_in, headers=HEADERS)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "ALREADY_BOOKED"

    cancel = await client.post(
        f"/api/v1/planning/classes/{scheduled_class['id']}/cancel",
        json={"reason": "Storm"},
        headers=HEADERS,
    )
    assert cancel.status_code == 200
    assert cancel.json()["cancelled_bookings"] == 1

    late = await client.post(
        "/api/v1/bookings", json={**drop_in, "member_id": 102}, headers=HEADERS
    )
    assert late.status_code == 409
    assert late.json()["error"] == "CLASS_CANCELLED"


@pytest.mark.asyncio
async def test_no_show_and_check_in(client):
    scheduled_class = await create_class(client, capacity=2)
    bookings = []
    for member_id in (101, 102):
        response = await client.post(
            "/api/v1/bookings",
            json={"class_id": scheduled_class["id"], "member_id": member_id, "is_drop_in": True},
            headers=HEADERS,
        )
        bookings.append(response.json()["booking"])

    no_show = await client.post(
        f"/api/v1/bookings/{bookings[0]['id']}/no-show", headers=HEADERS
    )
    check_in = await client.post(
        f"/api/v1/bookings/{bookings[1]['id']}/check-in", headers=HEADERS
    )

    assert no_show.json()["booking"]["status"] == "no_show"
    assert no_show.json()["promoted"] is None
    assert check_in.json()["status"] == "attended"


@pytest.mark.asyncio
async def test_member_bookings(client):
    scheduled_class = await create_class(client, capacity=1)
    for member_id in (101, 102):
        await client.post(
            "/api/v1/bookings",
            json={"class_id": scheduled_class["id"], "member_id": member_id, "is_drop_in": True},
            headers=HEADERS,
        )

    all_bookings = await client.get("/api/v1/bookings/members/102", headers=HEADERS)
    waitlisted = await client.get(
        "/api/v1/bookings/members/102",
        params={"status": "waitlist", "upcoming": "true"},
        headers=HEADERS,
    )
    confirmed = await client.get(
        "/api/v1/bookings/members/102", params={"status": "confirmed"}, headers=HEADERS
    )

    assert all_bookings.status_code == 200
    assert [b["class_id"] for b in all_bookings.json()] == [scheduled_class["id"]]
    assert waitlisted.json()[0]["waitlist_position"] == 1
    assert confirmed.json() == []


@pytest.mark.asyncio
async def test_promote_endpoint_without_waitlist(client):
    scheduled_class = await create_class(client, capacity=2)

    response = await client.post(
        f"/api/v1/bookings/classes/{scheduled_class['id']}/promote", headers=HEADERS
    )

    assert response.status_code == 200
    assert response.json() == {"class_id": scheduled_class["id"], "promoted": None}


@pytest.mark.asyncio
async def test_other_organization_cannot_see_class(client):
    scheduled_class = await create_class(client)

    response = await client.get(
        f"/api/v1/planning/classes/{scheduled_class['id']}",
        headers={"X-Organization-ID": str(ORG_ID + 1)},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stats(client):
    await create_class(client)

    response = await client.get(
        "/api/v1/planning/stats",
        params={"start_date": "2030-05-01", "end_date": "2030-05-31"},
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["total_classes"] == 1
    assert response.json()["average_occupancy"] == 0
