import uuid
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidInputError

MIN_PASSWORD_LENGTH = 6
PDF_CONTENT_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"


@dataclass(frozen=True)
class TenantRegistration:
    email: str
    password: str
    full_name: str
    block_number: str
    apartment_number: str


@dataclass(frozen=True)
class BillUpload:
    tenant_id: uuid.UUID
    reference_period: str
    filename: str
    content_type: Optional[str]
    content: bytes


def validate_password(password: Optional[str], *, confirmation: Optional[str] = None, check_confirmation: bool = False) -> str:
    if not password:
        raise InvalidInputError("new password must not be empty")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(f"password must have at least {MIN_PASSWORD_LENGTH} characters")
    if check_confirmation and password != confirmation:
        raise InvalidInputError("passwords do not match")
    return password


def validate_registration(registration: TenantRegistration) -> TenantRegistration:
    """
    Pure validation of the tenant registration form.
    Returns a copy with surrounding whitespace removed; raises InvalidInputError otherwise.
    """
    cleaned = TenantRegistration(
        email=registration.email.strip().lower(),
        password=registration.password,
        full_name=registration.full_name.strip(),
        block_number=registration.block_number.strip(),
        apartment_number=registration.apartment_number.strip(),
    )
    missing = [
        name
        for name in ("email", "password", "full_name", "block_number", "apartment_number")
        if not getattr(cleaned, name)
    ]
    if missing:
        raise InvalidInputError(f"missing required fields: {', '.join(missing)}")
    if "@" not in cleaned.email:
        raise InvalidInputError("email is not valid")
    validate_password(cleaned.password)
    return cleaned


def validate_bill_upload(upload: BillUpload) -> None:
    if not upload.reference_period.strip():
        raise InvalidInputError("reference period is required")
    if not upload.content:
        raise InvalidInputError("file is empty")
    if upload.content_type != PDF_CONTENT_TYPE or not upload.content.startswith(PDF_MAGIC):
        raise InvalidInputError("only PDF files are accepted")


def build_bill_path(tenant_id: uuid.UUID) -> str:
    """Storage key of a new bill: one folder per tenant, random file name."""
    return f"{tenant_id}/{uuid.uuid4()}.pdf"
