import logging
from datetime import date
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .domain.slots import SlotRules
from .infrastructure.platform import PlatformClient
from .models import Profile, ProfileRole
from .utils.auth import decode_access_token
from .utils.time import local_zone, today_in

logger = logging.getLogger(__name__)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def get_platform() -> AsyncIterator[PlatformClient]:
    settings = get_settings()
    async with PlatformClient(
        base_url=settings.platform_url,
        service_key=settings.platform_service_key,
        bucket=settings.bills_bucket,
        timeout=settings.platform_timeout,
    ) as client:
        yield client


def get_slot_rules() -> SlotRules:
    return get_settings().slot_rules()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers=_UNAUTHORIZED_HEADERS)


async def get_access_token(authorization: str | None = Header(default=None)) -> str:
    if authorization is None:
        raise _unauthorized("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Bearer token required")
    return token.strip()


async def get_current_user(
    token: str = Depends(get_access_token),
    session: AsyncSession = Depends(get_session),
) -> Profile:
    settings = get_settings()
    try:
        user_id = decode_access_token(
            token,
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
            audience=settings.auth_audience,
        )
    except ValueError as exc:
        raise _unauthorized("invalid or expired token") from exc

    try:
        profile = await session.scalar(select(Profile).where(Profile.id == user_id))
    except ProgrammingError as exc:
        await session.rollback()
        logger.error("profile lookup failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="profile store unavailable") from exc
    if profile is None:
        raise _unauthorized("unknown user")
    # close the lookup transaction so handlers can open their own
    await session.commit()
    return profile


async def require_admin(user: Profile = Depends(get_current_user)) -> Profile:
    if user.role != ProfileRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="administrators only")
    return user


def get_today() -> date:
    return today_in(local_zone(get_settings().timezone))
