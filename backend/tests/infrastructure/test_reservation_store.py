import uuid
from datetime import date, time
from typing import Any, Optional, cast

import pytest
from condo_portal.domain.errors import StoreConflictError
from condo_portal.infrastructure.repositories import SqlAlchemyReservationStore
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession


class DriverError(Exception):
    def __init__(self, message: str, pgcode: Optional[str]) -> None:
        super().__init__(message)
        self.pgcode = pgcode


class RefusingSession:
    """Session stub whose flush fails with the given driver error."""

    def __init__(self, orig: Exception) -> None:
        self.orig = orig
        self.added: list[Any] = []

    def begin_nested(self) -> "RefusingSession":
        return self

    async def __aenter__(self) -> "RefusingSession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def add(self, instance: Any) -> None:
        self.added.append(instance)

    async def flush(self) -> None:
        raise IntegrityError("INSERT INTO reservations ...", {}, self.orig)


async def _insert(session: RefusingSession) -> None:
    store = SqlAlchemyReservationStore(cast(AsyncSession, session))
    await store.insert(
        resource_name="barbecue_area",
        reservation_date=date(2030, 5, 10),
        start_time=time(10),
        end_time=time(12),
        owner_id=uuid.uuid4(),
    )


@pytest.mark.asyncio
async def test_exclusion_violation_is_a_store_conflict() -> None:
    orig = DriverError('conflicting key value violates exclusion constraint "excl_reservations_overlap"', "23P01")
    with pytest.raises(StoreConflictError):
        await _insert(RefusingSession(orig))


@pytest.mark.asyncio
async def test_foreign_key_violation_is_not_a_store_conflict() -> None:
    orig = DriverError('insert violates foreign key constraint "reservations_user_id_fkey"', "23503")
    with pytest.raises(IntegrityError):
        await _insert(RefusingSession(orig))
