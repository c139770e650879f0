import pytest
from httpx import AsyncClient

from carebook.caregiver_profiles import normalize_items
from carebook.database import InMemoryBackend
from carebook.models import Table
from conftest import People, save_caregiver_profile, sign_up


def test_normalize_items() -> None:
    assert normalize_items(["  CPR ", "", "CPR", "First aid", "   "]) == ["CPR", "First aid"]


@pytest.mark.asyncio
async def test_new_caregiver_gets_editor_defaults(client: AsyncClient) -> None:
    carer = await sign_up(
        client, email="new@example.com", full_name="New Carer", role="caregiver"
    )
    resp = await client.get("/caregiver-profile", headers=carer.headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["user_id"] == carer.id
    assert body["gender"] == "female"
    assert body["age"] == 30
    assert body["years_of_experience"] == 0
    assert body["hourly_rate"] == 50
    assert body["is_available"] is True
    assert body["skills"] == []
    assert body["certifications"] == []


@pytest.mark.asyncio
async def test_save_inserts_then_updates_single_row(
    client: AsyncClient, backend: InMemoryBackend
) -> None:
    carer = await sign_up(
        client, email="new@example.com", full_name="New Carer", role="caregiver"
    )

    await save_caregiver_profile(client, carer, hourly_rate=40)
    saved = await save_caregiver_profile(
        client,
        carer,
        hourly_rate=45,
        skills=[" Elderly care", "Elderly care", "", "Diabetes"],
        certifications=["CNA", " CNA "],
    )
    assert saved["hourly_rate"] == 45
    assert saved["skills"] == ["Elderly care", "Diabetes"]
    assert saved["certifications"] == ["CNA"]

    rows = await backend.select(Table.CAREGIVER_PROFILES, filters={"user_id": carer.id})
    assert len(rows) == 1
    assert rows[0]["hourly_rate"] == 45

    resp = await client.get("/caregiver-profile", headers=carer.headers)
    assert resp.json()["skills"] == ["Elderly care", "Diabetes"]


@pytest.mark.asyncio
async def test_save_returns_message(client: AsyncClient, people: People) -> None:
    resp = await client.put(
        "/caregiver-profile",
        json={"hourly_rate": 55, "bio": "Updated"},
        headers=people.alice.headers,
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "Saved successfully"
    assert resp.json()["profile"]["bio"] == "Updated"


@pytest.mark.asyncio
async def test_patient_cannot_edit_caregiver_profile(
    client: AsyncClient, people: People
) -> None:
    resp = await client.put(
        "/caregiver-profile", json={"hourly_rate": 1}, headers=people.patient.headers
    )
    assert resp.status_code == 403
