import pytest
from httpx import AsyncClient

from conftest import People

BOOKING = {
    "service_type": "Home care",
    "start_time": "2030-07-02T08:00:00+00:00",
    "total_hours": 2,
    "address": "12 Elm Street",
}


async def _request_two_bookings(client: AsyncClient, people: People) -> None:
    for _ in range(2):
        resp = await client.post(
            "/bookings",
            json={**BOOKING, "caregiver_id": people.alice.id},
            headers=people.patient.headers,
        )
        assert resp.status_code == 201


@pytest.mark.asyncio
async def test_list_notifications_with_unread_count(
    client: AsyncClient, people: People
) -> None:
    await _request_two_bookings(client, people)

    resp = await client.get("/notifications", headers=people.alice.headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["unread_count"] == 2
    assert len(body["notifications"]) == 2
    assert all(n["user_id"] == people.alice.id for n in body["notifications"])

    resp = await client.get("/notifications", headers=people.patient.headers)
    assert resp.json() == {"unread_count": 0, "notifications": []}


@pytest.mark.asyncio
async def test_mark_read(client: AsyncClient, people: People) -> None:
    await _request_two_bookings(client, people)
    notifications = (
        await client.get("/notifications", headers=people.alice.headers)
    ).json()["notifications"]

    resp = await client.post(
        f"/notifications/{notifications[0]['id']}/read", headers=people.alice.headers
    )
    assert resp.status_code == 200
    assert resp.json()["is_read"] is True

    body = (await client.get("/notifications", headers=people.alice.headers)).json()
    assert body["unread_count"] == 1


@pytest.mark.asyncio
async def test_cannot_mark_someone_elses_notification(
    client: AsyncClient, people: People
) -> None:
    await _request_two_bookings(client, people)
    notifications = (
        await client.get("/notifications", headers=people.alice.headers)
    ).json()["notifications"]

    resp = await client.post(
        f"/notifications/{notifications[0]['id']}/read", headers=people.wei.headers
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_mark_all_read(client: AsyncClient, people: People) -> None:
    await _request_two_bookings(client, people)

    resp = await client.post("/notifications/read-all", headers=people.alice.headers)
    assert resp.status_code == 200
    assert resp.json() == {"marked_read": 2}

    body = (await client.get("/notifications", headers=people.alice.headers)).json()
    assert body["unread_count"] == 0
