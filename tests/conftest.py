import os
from dataclasses import dataclass

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CAREBOOK_BACKEND", "memory")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from carebook.api import create_app  # noqa: E402
from carebook.database import InMemoryBackend  # noqa: E402

PASSWORD = "secret123"


def _p(msg: str) -> None:
    # pytest captures stdout unless you run with -s
    print(msg, flush=True)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@dataclass
class Account:
    token: str
    id: str
    full_name: str

    @property
    def headers(self) -> dict[str, str]:
        return auth(self.token)


async def sign_up(
    client: AsyncClient, *, email: str, full_name: str, role: str
) -> Account:
    resp = await client.post(
        "/auth/sign-up",
        json={
            "email": email,
            "password": PASSWORD,
            "full_name": full_name,
            "role": role,
        },
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return Account(
        token=body["access_token"], id=body["profile"]["id"], full_name=full_name
    )


async def save_caregiver_profile(
    client: AsyncClient, caregiver: Account, **overrides
) -> dict:
    payload = {
        "gender": "female",
        "age": 34,
        "years_of_experience": 6,
        "skills": ["Elderly care", "Wound dressing"],
        "bio": "Ward nurse turned home carer.",
        "hourly_rate": 50,
        "is_available": True,
        "certifications": ["CNA"],
    }
    payload.update(overrides)
    resp = await client.put("/caregiver-profile", json=payload, headers=caregiver.headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["profile"]


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend(secret_key="test-secret-key")


@pytest.fixture
def app(backend: InMemoryBackend) -> FastAPI:
    return create_app(backend)


@pytest_asyncio.fixture
async def client(app: FastAPI):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as async_client:
        yield async_client


@dataclass
class People:
    patient: Account
    alice: Account  # available, 50/h
    wei: Account  # available, 65/h
    barry: Account  # unavailable


@pytest_asyncio.fixture
async def people(client: AsyncClient) -> People:
    patient = await sign_up(
        client, email="pat@example.com", full_name="Pat Morgan", role="patient"
    )
    alice = await sign_up(
        client, email="alice@example.com", full_name="Alice Ongwele", role="caregiver"
    )
    wei = await sign_up(
        client, email="wei@example.com", full_name="Wei Yan", role="caregiver"
    )
    barry = await sign_up(
        client, email="barry@example.com", full_name="Barry Kozumikov", role="caregiver"
    )

    await save_caregiver_profile(client, alice)
    await save_caregiver_profile(
        client,
        wei,
        gender="male",
        skills=["Dementia care", "Physiotherapy"],
        hourly_rate=65,
    )
    await save_caregiver_profile(
        client, barry, gender="male", skills=["Night shifts"], is_available=False
    )
    _p(f"seeded patient={patient.id} alice={alice.id} wei={wei.id} barry={barry.id}")
    return People(patient=patient, alice=alice, wei=wei, barry=barry)
