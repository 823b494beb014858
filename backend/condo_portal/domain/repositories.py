from __future__ import annotations

import uuid
from datetime import date, time
from typing import Protocol, Sequence

from ..models import Bill, Profile, ProfileRole, Reservation


class ReservationStore(Protocol):
    async def list_by_resource_and_date(self, resource_name: str, reservation_date: date) -> list[Reservation]: ...

    async def insert(
        self,
        *,
        resource_name: str,
        reservation_date: date,
        start_time: time,
        end_time: time,
        owner_id: uuid.UUID,
    ) -> Reservation:
        """Raises StoreConflictError when the store's overlap constraint refuses the row."""
        ...

    async def list_by_owner(
        self,
        owner_id: uuid.UUID,
        *,
        resource_name: str | None = None,
        from_date: date | None = None,
    ) -> list[Reservation]: ...

    async def list_with_owner(
        self,
        *,
        resource_name: str | None = None,
        from_date: date | None = None,
    ) -> list[tuple[Reservation, Profile]]: ...

    async def delete_owned_by(self, reservation_id: int, owner_id: uuid.UUID) -> Reservation | None: ...

    async def delete_any(self, reservation_id: int) -> Reservation | None: ...


class ProfileRepository(Protocol):
    async def get(self, profile_id: uuid.UUID) -> Profile | None: ...

    async def create(
        self,
        *,
        profile_id: uuid.UUID,
        role: ProfileRole,
        full_name: str,
        block_number: str,
        apartment_number: str,
    ) -> Profile: ...

    async def list_by_role(self, role: ProfileRole) -> list[Profile]: ...

    async def delete(self, profile_id: uuid.UUID) -> None: ...


class BillRepository(Protocol):
    async def get(self, bill_id: int) -> Bill | None: ...

    async def create(
        self,
        *,
        tenant_id: uuid.UUID,
        uploader_id: uuid.UUID,
        file_path: str,
        reference_period: str,
    ) -> Bill: ...

    async def list_for_tenant(self, tenant_id: uuid.UUID) -> list[Bill]: ...

    async def list_with_tenant(self) -> list[tuple[Bill, Profile]]: ...

    async def delete(self, bill: Bill) -> None: ...


class AuthAdmin(Protocol):
    """Privileged identity operations of the hosted platform."""

    async def create_user(self, *, email: str, password: str) -> uuid.UUID: ...

    async def delete_user(self, user_id: uuid.UUID) -> None: ...

    async def set_user_password(self, user_id: uuid.UUID, password: str) -> None: ...

    async def get_user_emails(self, user_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, str]: ...

    async def change_own_password(self, access_token: str, password: str) -> None: ...


class BlobStorage(Protocol):
    async def upload(self, path: str, content: bytes, *, content_type: str) -> None: ...

    async def download(self, path: str) -> bytes: ...

    async def remove(self, paths: Sequence[str]) -> None: ...
