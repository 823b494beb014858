import uuid
from datetime import datetime
from typing import Iterator, List

import pytest
from condo_portal.deps import get_current_user, get_platform
from condo_portal.infrastructure.platform import PlatformError
from condo_portal.main import app
from condo_portal.models import Profile, ProfileRole
from httpx import AsyncClient, ASGITransport

USER = Profile(
    id=uuid.uuid4(),
    role=ProfileRole.TENANT,
    full_name="Ana",
    block_number="B",
    apartment_number="101",
    created_at=datetime(2030, 1, 1),
)
AUTH = {"Authorization": "Bearer user-token"}


class FakePlatform:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[tuple[str, str]] = []

    async def change_own_password(self, access_token: str, new_password: str) -> None:
        if self.fail:
            raise PlatformError("platform unreachable")
        self.calls.append((access_token, new_password))


@pytest.fixture
def platform() -> Iterator[FakePlatform]:
    fake = FakePlatform()

    async def current_user() -> Profile:
        return USER

    async def current_platform() -> FakePlatform:
        return fake

    app.dependency_overrides[get_current_user] = current_user
    app.dependency_overrides[get_platform] = current_platform
    yield fake
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers=AUTH)


@pytest.mark.asyncio
async def test_health() -> None:
    async with _client() as client:
        resp = await client.get("/health")
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_me_returns_profile(platform: FakePlatform) -> None:
    async with _client() as client:
        resp = await client.get("/me")
    assert resp.status_code == 200
    body = resp.json()
    assert body["user_id"] == str(USER.id)
    assert body["role"] == "tenant"


@pytest.mark.asyncio
async def test_change_password_uses_caller_token(platform: FakePlatform) -> None:
    async with _client() as client:
        resp = await client.post("/me/password", json={"new_password": "secret1", "confirm_password": "secret1"})
    assert resp.status_code == 204
    assert platform.calls == [("user-token", "secret1")]


@pytest.mark.asyncio
async def test_change_password_mismatch_is_422(platform: FakePlatform) -> None:
    async with _client() as client:
        resp = await client.post("/me/password", json={"new_password": "secret1", "confirm_password": "secret2"})
    assert resp.status_code == 422
    assert platform.calls == []


@pytest.mark.asyncio
async def test_platform_failure_maps_to_502(platform: FakePlatform) -> None:
    platform.fail = True
    async with _client() as client:
        resp = await client.post("/me/password", json={"new_password": "secret1", "confirm_password": "secret1"})
    assert resp.status_code == 502
