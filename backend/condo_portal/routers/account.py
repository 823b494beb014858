from fastapi import APIRouter, Depends, HTTPException, status

from ..deps import get_access_token, get_current_user, get_platform
from ..domain.errors import InvalidInputError
from ..infrastructure.platform import PlatformClient
from ..models import Profile, ProfileRole
from ..schemas import PasswordChange, ProfileRead
from ..usecases import tenants as tenant_usecase
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="/me", tags=["account"])


@router.get("", response_model=ProfileRead)
async def get_me(user: Profile = Depends(get_current_user)) -> ProfileRead:
    return ProfileRead.from_db(profile=user)


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    payload: PasswordChange,
    user: Profile = Depends(get_current_user),
    token: str = Depends(get_access_token),
    platform: PlatformClient = Depends(get_platform),
) -> None:
    try:
        await tenant_usecase.change_own_password(
            platform,
            access_token=token,
            new_password=payload.new_password,
            confirmation=payload.confirm_password,
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    try:
        emit_audit_log(
            action="account.password_changed",
            initiator="admin" if user.role == ProfileRole.ADMIN else "tenant",
            actor_id=user.id,
            subject_id=user.id,
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
