import logging
import uuid

from ..domain.errors import BillNotFoundError, TenantNotFoundError
from ..domain.repositories import BillRepository, BlobStorage, ProfileRepository
from ..domain.services import PDF_CONTENT_TYPE, BillUpload, build_bill_path, validate_bill_upload
from ..models import Bill, Profile, ProfileRole

logger = logging.getLogger(__name__)


async def upload_bill(
    bills: BillRepository,
    profiles: ProfileRepository,
    storage: BlobStorage,
    *,
    upload: BillUpload,
    uploader_id: uuid.UUID,
) -> Bill:
    validate_bill_upload(upload)
    tenant = await profiles.get(upload.tenant_id)
    if tenant is None or tenant.role != ProfileRole.TENANT:
        raise TenantNotFoundError("tenant not found")

    path = build_bill_path(upload.tenant_id)
    await storage.upload(path, upload.content, content_type=PDF_CONTENT_TYPE)
    try:
        return await bills.create(
            tenant_id=upload.tenant_id,
            uploader_id=uploader_id,
            file_path=path,
            reference_period=upload.reference_period.strip(),
        )
    except Exception:
        logger.error("bill row insert failed; removing stored file %s", path)
        await storage.remove([path])
        raise


async def list_all_bills(bills: BillRepository) -> list[tuple[Bill, Profile]]:
    return await bills.list_with_tenant()


async def list_tenant_bills(bills: BillRepository, *, tenant_id: uuid.UUID) -> list[Bill]:
    return await bills.list_for_tenant(tenant_id)


async def download_bill(
    bills: BillRepository,
    storage: BlobStorage,
    *,
    bill_id: int,
    requester: Profile,
) -> tuple[Bill, bytes]:
    bill = await bills.get(bill_id)
    # tenants only see their own bills; anything else looks missing
    if bill is None or (requester.role != ProfileRole.ADMIN and bill.tenant_id != requester.id):
        raise BillNotFoundError("bill not found")
    return bill, await storage.download(bill.file_path)


async def delete_bill(bills: BillRepository, storage: BlobStorage, *, bill_id: int) -> Bill:
    bill = await bills.get(bill_id)
    if bill is None:
        raise BillNotFoundError("bill not found")
    await storage.remove([bill.file_path])
    await bills.delete(bill)
    return bill


def bill_filename(bill: Bill) -> str:
    return bill.file_path.rsplit("/", 1)[-1] or f"bill_{bill.id}.pdf"
