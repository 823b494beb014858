from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timezone
from typing import List, Optional, Tuple, cast

from sqlalchemy import Select, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import StoreConflictError
from ..domain.repositories import BillRepository, ProfileRepository, ReservationStore
from ..models import Bill, Profile, ProfileRole, Reservation

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT = "excl_reservations_overlap"
EXCLUSION_VIOLATION = "23P01"


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _is_overlap_violation(exc: IntegrityError) -> bool:
    """True when the exclusion constraint refused the row, not some other integrity rule."""
    orig = exc.orig
    codes = {getattr(orig, "pgcode", None), getattr(orig, "sqlstate", None)}
    return EXCLUSION_VIOLATION in codes or OVERLAP_CONSTRAINT in str(orig)


class SqlAlchemyReservationStore(ReservationStore):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_by_resource_and_date(self, resource_name: str, reservation_date: date) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(
                Reservation.resource_name == resource_name,
                Reservation.reservation_date == reservation_date,
            )
            .order_by(Reservation.start_time)
        )
        return list((await self.session.scalars(stmt)).all())

    async def insert(
        self,
        *,
        resource_name: str,
        reservation_date: date,
        start_time: time,
        end_time: time,
        owner_id: uuid.UUID,
    ) -> Reservation:
        reservation = Reservation(
            resource_name=resource_name,
            reservation_date=reservation_date,
            start_time=start_time,
            end_time=end_time,
            user_id=owner_id,
            created_at=_utc_now_naive(),
        )
        # Savepoint keeps the outer transaction usable after a refused insert.
        try:
            async with self.session.begin_nested():
                self.session.add(reservation)
                await self.session.flush()
        except IntegrityError as exc:
            if not _is_overlap_violation(exc):
                raise
            logger.info(
                "store refused reservation %s %s %s-%s: %s",
                resource_name,
                reservation_date,
                start_time,
                end_time,
                exc.orig,
            )
            raise StoreConflictError("slot was booked by someone else") from exc
        return reservation

    async def list_by_owner(
        self,
        owner_id: uuid.UUID,
        *,
        resource_name: str | None = None,
        from_date: date | None = None,
    ) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.user_id == owner_id)
        if resource_name is not None:
            stmt = stmt.where(Reservation.resource_name == resource_name)
        if from_date is not None:
            stmt = stmt.where(Reservation.reservation_date >= from_date)
        stmt = stmt.order_by(Reservation.reservation_date, Reservation.start_time)
        return list((await self.session.scalars(stmt)).all())

    async def list_with_owner(
        self,
        *,
        resource_name: str | None = None,
        from_date: date | None = None,
    ) -> List[Tuple[Reservation, Profile]]:
        stmt: Select[Tuple[Reservation, Profile]] = select(Reservation, Profile).join(
            Profile, Reservation.user_id == Profile.id
        )
        if resource_name is not None:
            stmt = stmt.where(Reservation.resource_name == resource_name)
        if from_date is not None:
            stmt = stmt.where(Reservation.reservation_date >= from_date)
        stmt = stmt.order_by(Reservation.reservation_date, Reservation.start_time)
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Reservation, Profile]], list(rows.all()))

    async def delete_owned_by(self, reservation_id: int, owner_id: uuid.UUID) -> Optional[Reservation]:
        stmt = select(Reservation).where(Reservation.id == reservation_id, Reservation.user_id == owner_id)
        return await self._delete_first(stmt)

    async def delete_any(self, reservation_id: int) -> Optional[Reservation]:
        return await self._delete_first(select(Reservation).where(Reservation.id == reservation_id))

    async def _delete_first(self, stmt: Select[Tuple[Reservation]]) -> Optional[Reservation]:
        reservation = await self.session.scalar(stmt.with_for_update())
        if reservation is None:
            return None
        await self.session.delete(reservation)
        await self.session.flush()
        return reservation


class SqlAlchemyProfileRepository(ProfileRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, profile_id: uuid.UUID) -> Optional[Profile]:
        return await self.session.get(Profile, profile_id)

    async def create(
        self,
        *,
        profile_id: uuid.UUID,
        role: ProfileRole,
        full_name: str,
        block_number: str,
        apartment_number: str,
    ) -> Profile:
        profile = Profile(
            id=profile_id,
            role=role,
            full_name=full_name,
            block_number=block_number,
            apartment_number=apartment_number,
            created_at=_utc_now_naive(),
        )
        self.session.add(profile)
        await self.session.flush()
        return profile

    async def list_by_role(self, role: ProfileRole) -> List[Profile]:
        stmt = select(Profile).where(Profile.role == role).order_by(Profile.full_name)
        return list((await self.session.scalars(stmt)).all())

    async def delete(self, profile_id: uuid.UUID) -> None:
        await self.session.execute(delete(Profile).where(Profile.id == profile_id))


class SqlAlchemyBillRepository(BillRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, bill_id: int) -> Optional[Bill]:
        return await self.session.get(Bill, bill_id)

    async def create(
        self,
        *,
        tenant_id: uuid.UUID,
        uploader_id: uuid.UUID,
        file_path: str,
        reference_period: str,
    ) -> Bill:
        bill = Bill(
            tenant_id=tenant_id,
            uploader_id=uploader_id,
            file_path=file_path,
            reference_period=reference_period,
            uploaded_at=_utc_now_naive(),
        )
        self.session.add(bill)
        await self.session.flush()
        return bill

    async def list_for_tenant(self, tenant_id: uuid.UUID) -> List[Bill]:
        stmt = select(Bill).where(Bill.tenant_id == tenant_id).order_by(Bill.uploaded_at.desc())
        return list((await self.session.scalars(stmt)).all())

    async def list_with_tenant(self) -> List[Tuple[Bill, Profile]]:
        stmt: Select[Tuple[Bill, Profile]] = (
            select(Bill, Profile).join(Profile, Bill.tenant_id == Profile.id).order_by(Bill.uploaded_at.desc())
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Bill, Profile]], list(rows.all()))

    async def delete(self, bill: Bill) -> None:
        await self.session.delete(bill)
        await self.session.flush()
