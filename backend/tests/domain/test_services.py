import uuid

import pytest
from condo_portal.domain.errors import InvalidInputError
from condo_portal.domain.services import (
    BillUpload,
    TenantRegistration,
    build_bill_path,
    validate_bill_upload,
    validate_password,
    validate_registration,
)

PDF_BYTES = b"%PDF-1.7\n%fake\n"


def _registration(**overrides: str) -> TenantRegistration:
    values = {
        "email": " Ana@Example.com ",
        "password": "secret1",
        "full_name": " Ana Souza ",
        "block_number": "B",
        "apartment_number": "101",
    }
    values.update(overrides)
    return TenantRegistration(**values)


def _upload(**overrides: object) -> BillUpload:
    values: dict[str, object] = {
        "tenant_id": uuid.uuid4(),
        "reference_period": "05/2024",
        "filename": "may.pdf",
        "content_type": "application/pdf",
        "content": PDF_BYTES,
    }
    values.update(overrides)
    return BillUpload(**values)  # type: ignore[arg-type]


def test_password_shorter_than_six_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        validate_password("12345")


def test_empty_password_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        validate_password("")


def test_password_confirmation_must_match() -> None:
    with pytest.raises(InvalidInputError):
        validate_password("secret1", confirmation="secret2", check_confirmation=True)
    assert validate_password("secret1", confirmation="secret1", check_confirmation=True) == "secret1"


def test_registration_is_normalized() -> None:
    cleaned = validate_registration(_registration())
    assert cleaned.email == "ana@example.com"
    assert cleaned.full_name == "Ana Souza"


def test_registration_lists_missing_fields() -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        validate_registration(_registration(full_name=" ", apartment_number=""))
    assert "full_name" in str(excinfo.value)
    assert "apartment_number" in str(excinfo.value)


def test_registration_rejects_bad_email() -> None:
    with pytest.raises(InvalidInputError):
        validate_registration(_registration(email="not-an-email"))


def test_pdf_upload_is_accepted() -> None:
    validate_bill_upload(_upload())


@pytest.mark.parametrize(
    "overrides",
    [
        {"content_type": "image/png"},
        {"content": b"\x89PNG\r\n"},
        {"content": b""},
        {"reference_period": "  "},
    ],
)
def test_invalid_upload_is_rejected(overrides: dict[str, object]) -> None:
    with pytest.raises(InvalidInputError):
        validate_bill_upload(_upload(**overrides))


def test_bill_path_is_namespaced_by_tenant() -> None:
    tenant_id = uuid.uuid4()
    first, second = build_bill_path(tenant_id), build_bill_path(tenant_id)
    assert first.startswith(f"{tenant_id}/")
    assert first.endswith(".pdf")
    assert first != second
