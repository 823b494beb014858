import uuid
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user, get_platform, get_session, require_admin
from ..domain.errors import BillNotFoundError, InvalidInputError, TenantNotFoundError
from ..domain.services import BillUpload
from ..infrastructure.platform import PlatformClient
from ..infrastructure.repositories import SqlAlchemyBillRepository, SqlAlchemyProfileRepository
from ..models import Profile
from ..schemas import BillRead, BillWithTenantRead
from ..usecases import bills as bill_usecase
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="", tags=["bills"], dependencies=[Depends(get_current_user)])
admin_router = APIRouter(prefix="/admin/bills", tags=["bills"], dependencies=[Depends(require_admin)])


@router.get("/me/bills", response_model=List[BillRead])
async def list_my_bills(
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
) -> list[BillRead]:
    bills = SqlAlchemyBillRepository(session)
    rows = await bill_usecase.list_tenant_bills(bills, tenant_id=user.id)
    return [BillRead.from_db(bill=b) for b in rows]


@router.get("/bills/{bill_id}/file")
async def download_bill(
    bill_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
    platform: PlatformClient = Depends(get_platform),
) -> Response:
    bills = SqlAlchemyBillRepository(session)
    try:
        bill, content = await bill_usecase.download_bill(bills, platform, bill_id=bill_id, requester=user)
    except BillNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="bill not found")
    filename = bill_usecase.bill_filename(bill)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@admin_router.get("", response_model=List[BillWithTenantRead])
async def list_all_bills(session: AsyncSession = Depends(get_session)) -> list[BillWithTenantRead]:
    bills = SqlAlchemyBillRepository(session)
    rows = await bill_usecase.list_all_bills(bills)
    return [BillWithTenantRead.from_row(bill=b, tenant=t) for b, t in rows]


@admin_router.post("", response_model=BillRead, status_code=status.HTTP_201_CREATED)
async def upload_bill(
    tenant_id: uuid.UUID = Form(...),
    reference_period: str = Form(...),
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session),
    platform: PlatformClient = Depends(get_platform),
    admin: Profile = Depends(require_admin),
) -> BillRead:
    upload = BillUpload(
        tenant_id=tenant_id,
        reference_period=reference_period,
        filename=file.filename or "bill.pdf",
        content_type=file.content_type,
        content=await file.read(),
    )
    bills = SqlAlchemyBillRepository(session)
    profiles = SqlAlchemyProfileRepository(session)
    async with session.begin():
        try:
            bill = await bill_usecase.upload_bill(bills, profiles, platform, upload=upload, uploader_id=admin.id)
        except InvalidInputError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
        except TenantNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="tenant not found")
        try:
            emit_audit_log(
                action="bill.uploaded",
                initiator="admin",
                actor_id=admin.id,
                subject_id=bill.id,
                extra={"tenant_id": tenant_id, "reference_period": bill.reference_period, "file_name": upload.filename},
            )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    return BillRead.from_db(bill=bill)


@admin_router.delete("/{bill_id}", response_model=BillRead)
async def delete_bill(
    bill_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    platform: PlatformClient = Depends(get_platform),
    admin: Profile = Depends(require_admin),
) -> BillRead:
    bills = SqlAlchemyBillRepository(session)
    async with session.begin():
        try:
            bill = await bill_usecase.delete_bill(bills, platform, bill_id=bill_id)
        except BillNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="bill not found")
        try:
            emit_audit_log(
                action="bill.deleted",
                initiator="admin",
                actor_id=admin.id,
                subject_id=bill.id,
                extra={"tenant_id": bill.tenant_id, "reference_period": bill.reference_period},
            )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    return BillRead.from_db(bill=bill)
