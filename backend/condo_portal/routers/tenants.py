import uuid
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_platform, get_session, require_admin
from ..domain.errors import InvalidInputError, TenantAlreadyExistsError, TenantNotFoundError
from ..domain.services import TenantRegistration
from ..infrastructure.platform import PlatformClient
from ..infrastructure.repositories import SqlAlchemyBillRepository, SqlAlchemyProfileRepository
from ..models import Profile
from ..schemas import PasswordReset, ProfileRead, TenantCreate, TenantRead
from ..usecases import tenants as tenant_usecase
from ..usecases.tenants import TenantWithEmail
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="/admin/tenants", tags=["tenants"], dependencies=[Depends(require_admin)])


def _audit(**kwargs: Any) -> None:
    try:
        emit_audit_log(initiator="admin", **kwargs)
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")


@router.get("", response_model=List[TenantRead])
async def list_tenants(
    session: AsyncSession = Depends(get_session),
    platform: PlatformClient = Depends(get_platform),
) -> list[TenantRead]:
    profiles = SqlAlchemyProfileRepository(session)
    entries = await tenant_usecase.list_tenants(profiles, platform)
    return [TenantRead.from_entry(entry) for entry in entries]


@router.post("", response_model=TenantRead, status_code=status.HTTP_201_CREATED)
async def register_tenant(
    payload: TenantCreate,
    session: AsyncSession = Depends(get_session),
    platform: PlatformClient = Depends(get_platform),
    admin: Profile = Depends(require_admin),
) -> TenantRead:
    profiles = SqlAlchemyProfileRepository(session)
    registration = TenantRegistration(
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        block_number=payload.block_number,
        apartment_number=payload.apartment_number,
    )
    profile: Optional[Profile] = None
    try:
        async with session.begin():
            try:
                profile = await tenant_usecase.register_tenant(profiles, platform, registration=registration)
            except InvalidInputError as exc:
                raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
            except TenantAlreadyExistsError as exc:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
            _audit(action="tenant.registered", actor_id=admin.id, subject_id=profile.id)
    except Exception:
        # the profile row rolled back; the platform user must not outlive it
        if profile is not None:
            await tenant_usecase.discard_platform_user(platform, profile.id)
        raise

    assert profile is not None
    return TenantRead.from_entry(TenantWithEmail(profile=profile, email=registration.email.strip().lower()))


@router.delete("/{tenant_id}", response_model=ProfileRead)
async def delete_tenant(
    tenant_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    platform: PlatformClient = Depends(get_platform),
    admin: Profile = Depends(require_admin),
) -> ProfileRead:
    profiles = SqlAlchemyProfileRepository(session)
    bills = SqlAlchemyBillRepository(session)
    async with session.begin():
        try:
            removal = await tenant_usecase.remove_tenant_profile(profiles, bills, tenant_id=tenant_id)
        except TenantNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="tenant not found")
        _audit(
            action="tenant.deleted",
            actor_id=admin.id,
            subject_id=tenant_id,
            extra={"bill_files": len(removal.bill_paths)},
        )
        await tenant_usecase.release_tenant_account(platform, platform, removal)

    return ProfileRead.from_db(profile=removal.profile)


@router.post("/{tenant_id}/password", status_code=status.HTTP_204_NO_CONTENT)
async def reset_tenant_password(
    tenant_id: uuid.UUID,
    payload: PasswordReset,
    session: AsyncSession = Depends(get_session),
    platform: PlatformClient = Depends(get_platform),
    admin: Profile = Depends(require_admin),
) -> None:
    profiles = SqlAlchemyProfileRepository(session)
    try:
        await tenant_usecase.reset_tenant_password(
            profiles,
            platform,
            tenant_id=tenant_id,
            new_password=payload.new_password,
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except TenantNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="tenant not found")
    _audit(action="tenant.password_reset", actor_id=admin.id, subject_id=tenant_id)
