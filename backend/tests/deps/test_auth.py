import uuid
from datetime import datetime, timedelta
from typing import Any, Iterator

import pytest
from condo_portal.config import Settings, get_settings
from condo_portal.deps import get_access_token, get_current_user, require_admin
from condo_portal.models import Profile, ProfileRole
from condo_portal.utils.auth import create_access_token
from fastapi import HTTPException
from sqlalchemy.exc import ProgrammingError

USER_ID = uuid.uuid4()
SECRET = "test-secret-test-secret-test-secret-0123"


class DummySession:
    def __init__(self, profile: Profile | None | Exception) -> None:
        self.profile = profile
        self.committed = False

    async def scalar(self, *args: Any, **kwargs: Any) -> Profile | None:
        if isinstance(self.profile, Exception):
            raise self.profile
        return self.profile

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        return None


def _profile(role: ProfileRole = ProfileRole.TENANT) -> Profile:
    return Profile(id=USER_ID, role=role, full_name="Ana", created_at=datetime(2030, 1, 1))


def _token(*, secret: str = SECRET, expired: bool = False, audience: str = "authenticated") -> str:
    settings = Settings(auth_secret=secret)
    return create_access_token(
        user_id=USER_ID,
        secret=settings.auth_secret,
        algorithm=settings.auth_algorithm,
        audience=audience,
        expires_delta=timedelta(seconds=-1) if expired else None,
    )


@pytest.fixture(autouse=True)
def _set_auth_secret(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("AUTH_SECRET", SECRET)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.mark.asyncio
async def test_access_token_requires_bearer_scheme() -> None:
    assert await get_access_token(authorization="Bearer abc") == "abc"
    for header in (None, "Basic abc", "Bearer "):
        with pytest.raises(HTTPException) as excinfo:
            await get_access_token(authorization=header)
        assert excinfo.value.status_code == 401
        assert excinfo.value.headers == {"WWW-Authenticate": "Bearer"}


@pytest.mark.asyncio
async def test_valid_token_loads_profile() -> None:
    session = DummySession(_profile())
    user = await get_current_user(token=_token(), session=session)  # type: ignore[arg-type]
    assert user.id == USER_ID
    assert session.committed is True


@pytest.mark.asyncio
async def test_expired_token_is_rejected() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(token=_token(expired=True), session=DummySession(_profile()))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_token_signed_with_other_secret_is_rejected() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(token=_token(secret="another-secret-another-secret-0123"), session=DummySession(_profile()))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_token_for_other_audience_is_rejected() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(token=_token(audience="anon"), session=DummySession(_profile()))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_unknown_profile_is_rejected() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(token=_token(), session=DummySession(None))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_missing_profiles_table_is_server_error() -> None:
    session = DummySession(ProgrammingError("missing", None, Exception("cause")))
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(token=_token(), session=session)  # type: ignore[arg-type]
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_require_admin() -> None:
    admin = _profile(ProfileRole.ADMIN)
    assert await require_admin(user=admin) is admin
    with pytest.raises(HTTPException) as excinfo:
        await require_admin(user=_profile(ProfileRole.TENANT))
    assert excinfo.value.status_code == 403
