import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from ..domain.errors import TenantAlreadyExistsError, TenantNotFoundError
from ..domain.repositories import AuthAdmin, BillRepository, BlobStorage, ProfileRepository
from ..domain.services import TenantRegistration, validate_password, validate_registration
from ..infrastructure.platform import PlatformConflictError, PlatformError, PlatformNotFoundError
from ..models import Profile, ProfileRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantWithEmail:
    profile: Profile
    email: Optional[str]


async def _get_tenant(profiles: ProfileRepository, tenant_id: uuid.UUID) -> Profile:
    profile = await profiles.get(tenant_id)
    if profile is None or profile.role != ProfileRole.TENANT:
        raise TenantNotFoundError("tenant not found")
    return profile


async def register_tenant(
    profiles: ProfileRepository,
    auth: AuthAdmin,
    *,
    registration: TenantRegistration,
) -> Profile:
    cleaned = validate_registration(registration)
    try:
        user_id = await auth.create_user(email=cleaned.email, password=cleaned.password)
    except PlatformConflictError as exc:
        raise TenantAlreadyExistsError("this email is already registered") from exc

    try:
        return await profiles.create(
            profile_id=user_id,
            role=ProfileRole.TENANT,
            full_name=cleaned.full_name,
            block_number=cleaned.block_number,
            apartment_number=cleaned.apartment_number,
        )
    except Exception:
        logger.error("profile insert failed for new user %s", user_id)
        await discard_platform_user(auth, user_id)
        raise


async def discard_platform_user(auth: AuthAdmin, user_id: uuid.UUID) -> None:
    """Undo a platform user whose profile never got committed. Failures are logged, not raised."""
    logger.warning("removing platform user %s left without a profile", user_id)
    try:
        await auth.delete_user(user_id)
    except PlatformError as exc:
        logger.error("could not remove platform user %s: %s", user_id, exc)


async def list_tenants(profiles: ProfileRepository, auth: AuthAdmin) -> list[TenantWithEmail]:
    tenants = await profiles.list_by_role(ProfileRole.TENANT)
    emails = await auth.get_user_emails([t.id for t in tenants]) if tenants else {}
    return [TenantWithEmail(profile=t, email=emails.get(t.id)) for t in tenants]


@dataclass(frozen=True)
class TenantRemoval:
    profile: Profile
    bill_paths: list[str]


async def remove_tenant_profile(
    profiles: ProfileRepository,
    bills: BillRepository,
    *,
    tenant_id: uuid.UUID,
) -> TenantRemoval:
    """
    Delete the tenant's profile row (reservations and bill rows cascade) and
    return what still has to be released on the platform.
    """
    profile = await _get_tenant(profiles, tenant_id)
    paths = [bill.file_path for bill in await bills.list_for_tenant(tenant_id)]
    await profiles.delete(tenant_id)
    return TenantRemoval(profile=profile, bill_paths=paths)


async def release_tenant_account(auth: AuthAdmin, storage: BlobStorage, removal: TenantRemoval) -> None:
    """Remove the tenant's bill files and platform user. Run last, once the database side succeeded."""
    tenant_id = removal.profile.id
    if removal.bill_paths:
        await storage.remove(removal.bill_paths)
    try:
        await auth.delete_user(tenant_id)
    except PlatformNotFoundError:
        logger.warning("platform user %s already gone", tenant_id)


async def reset_tenant_password(
    profiles: ProfileRepository,
    auth: AuthAdmin,
    *,
    tenant_id: uuid.UUID,
    new_password: str,
) -> Profile:
    password = validate_password(new_password)
    profile = await _get_tenant(profiles, tenant_id)
    try:
        await auth.set_user_password(tenant_id, password)
    except PlatformNotFoundError as exc:
        raise TenantNotFoundError("tenant not found") from exc
    return profile


async def change_own_password(
    auth: AuthAdmin,
    *,
    access_token: str,
    new_password: str,
    confirmation: str,
) -> None:
    password = validate_password(new_password, confirmation=confirmation, check_confirmation=True)
    await auth.change_own_password(access_token, password)
