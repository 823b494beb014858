import uuid
from datetime import date, datetime, time
from typing import List, Optional, Tuple

import pytest
from condo_portal.domain.errors import (
    ReservationDateInPastError,
    ReservationNotFoundError,
    SlotRejectedError,
    StoreConflictError,
)
from condo_portal.domain.slots import DEFAULT_RULES, SlotCandidate, TimeOfDay, TimeRange, ViolationKind
from condo_portal.models import Profile, Reservation
from condo_portal.usecases import reservations as uc

RESOURCE = "barbecue_area"
DAY = date(2030, 5, 10)
TODAY = date(2030, 5, 1)
OWNER = uuid.uuid4()


def _reservation(res_id: int, start: time, end: time, owner: uuid.UUID = OWNER, day: date = DAY) -> Reservation:
    return Reservation(
        id=res_id,
        resource_name=RESOURCE,
        reservation_date=day,
        start_time=start,
        end_time=end,
        user_id=owner,
        created_at=datetime(2030, 1, 1),
    )


class FakeStore:
    def __init__(self, rows: Optional[List[Reservation]] = None) -> None:
        self.rows: List[Reservation] = list(rows or [])
        self.inserted: List[Reservation] = []
        self.race_winner: Optional[Reservation] = None

    async def list_by_resource_and_date(self, resource_name: str, reservation_date: date) -> List[Reservation]:
        return sorted(
            (r for r in self.rows if r.resource_name == resource_name and r.reservation_date == reservation_date),
            key=lambda r: r.start_time,
        )

    async def insert(
        self,
        *,
        resource_name: str,
        reservation_date: date,
        start_time: time,
        end_time: time,
        owner_id: uuid.UUID,
    ) -> Reservation:
        if self.race_winner is not None:
            # another client committed between our read and our insert
            self.rows.append(self.race_winner)
            raise StoreConflictError("slot was booked by someone else")
        reservation = _reservation(len(self.rows) + 100, start_time, end_time, owner_id, reservation_date)
        self.rows.append(reservation)
        self.inserted.append(reservation)
        return reservation

    async def list_by_owner(
        self,
        owner_id: uuid.UUID,
        *,
        resource_name: Optional[str] = None,
        from_date: Optional[date] = None,
    ) -> List[Reservation]:
        return [
            r
            for r in self.rows
            if r.user_id == owner_id and (from_date is None or r.reservation_date >= from_date)
        ]

    async def list_with_owner(
        self,
        *,
        resource_name: Optional[str] = None,
        from_date: Optional[date] = None,
    ) -> List[Tuple[Reservation, Profile]]:  # pragma: no cover
        return []

    async def delete_owned_by(self, reservation_id: int, owner_id: uuid.UUID) -> Optional[Reservation]:
        for r in self.rows:
            if r.id == reservation_id and r.user_id == owner_id:
                self.rows.remove(r)
                return r
        return None

    async def delete_any(self, reservation_id: int) -> Optional[Reservation]:
        for r in self.rows:
            if r.id == reservation_id:
                self.rows.remove(r)
                return r
        return None


def _candidate(start: str, end: str, day: date = DAY) -> SlotCandidate:
    return SlotCandidate(reservation_date=day, start_time=start, end_time=end)


@pytest.mark.asyncio
async def test_create_inserts_validated_slot() -> None:
    store = FakeStore([_reservation(1, time(9), time(11))])
    reservation = await uc.create_reservation(
        store,
        DEFAULT_RULES,
        resource_name=RESOURCE,
        candidate=_candidate("11:00", "13:00"),
        owner_id=OWNER,
        today=TODAY,
    )
    assert store.inserted == [reservation]
    assert (reservation.start_time, reservation.end_time) == (time(11), time(13))


@pytest.mark.asyncio
async def test_create_rejects_overlap_without_inserting() -> None:
    store = FakeStore([_reservation(1, time(9), time(11))])
    with pytest.raises(SlotRejectedError) as excinfo:
        await uc.create_reservation(
            store,
            DEFAULT_RULES,
            resource_name=RESOURCE,
            candidate=_candidate("10:00", "12:00"),
            owner_id=OWNER,
            today=TODAY,
        )
    assert excinfo.value.violation.kind == ViolationKind.OVERLAPS_EXISTING_RESERVATION
    assert store.inserted == []


@pytest.mark.asyncio
async def test_other_resources_and_days_do_not_conflict() -> None:
    other_day = _reservation(1, time(9), time(11), day=date(2030, 5, 11))
    other_resource = _reservation(2, time(9), time(11))
    other_resource.resource_name = "party_room"
    store = FakeStore([other_day, other_resource])
    reservation = await uc.create_reservation(
        store,
        DEFAULT_RULES,
        resource_name=RESOURCE,
        candidate=_candidate("09:00", "11:00"),
        owner_id=OWNER,
        today=TODAY,
    )
    assert reservation in store.inserted


@pytest.mark.asyncio
async def test_create_rejects_past_dates() -> None:
    store = FakeStore()
    with pytest.raises(ReservationDateInPastError):
        await uc.create_reservation(
            store,
            DEFAULT_RULES,
            resource_name=RESOURCE,
            candidate=_candidate("09:00", "11:00", day=date(2030, 4, 30)),
            owner_id=OWNER,
            today=TODAY,
        )


@pytest.mark.asyncio
async def test_create_allows_today() -> None:
    store = FakeStore()
    reservation = await uc.create_reservation(
        store,
        DEFAULT_RULES,
        resource_name=RESOURCE,
        candidate=_candidate("09:00", "11:00", day=TODAY),
        owner_id=OWNER,
        today=TODAY,
    )
    assert reservation.reservation_date == TODAY


@pytest.mark.asyncio
async def test_lost_race_returns_refreshed_slots() -> None:
    store = FakeStore()
    store.race_winner = _reservation(7, time(10), time(12), owner=uuid.uuid4())
    with pytest.raises(StoreConflictError) as excinfo:
        await uc.create_reservation(
            store,
            DEFAULT_RULES,
            resource_name=RESOURCE,
            candidate=_candidate("11:00", "13:00"),
            owner_id=OWNER,
            today=TODAY,
        )
    assert excinfo.value.existing_slots == [TimeRange(TimeOfDay.of(10), TimeOfDay.of(12))]


@pytest.mark.asyncio
async def test_check_slot_does_not_insert() -> None:
    store = FakeStore([_reservation(1, time(9), time(11))])
    check = await uc.check_slot(store, DEFAULT_RULES, resource_name=RESOURCE, candidate=_candidate("11:00", "13:00"))
    assert check.ok
    assert store.inserted == []


@pytest.mark.asyncio
async def test_cancel_own_reservation_requires_ownership() -> None:
    stranger = uuid.uuid4()
    store = FakeStore([_reservation(1, time(9), time(11))])
    with pytest.raises(ReservationNotFoundError):
        await uc.cancel_own_reservation(store, reservation_id=1, owner_id=stranger)
    cancelled = await uc.cancel_own_reservation(store, reservation_id=1, owner_id=OWNER)
    assert cancelled.id == 1
    assert store.rows == []


@pytest.mark.asyncio
async def test_cancel_any_reservation() -> None:
    store = FakeStore([_reservation(1, time(9), time(11))])
    cancelled = await uc.cancel_any_reservation(store, reservation_id=1)
    assert cancelled.id == 1
    with pytest.raises(ReservationNotFoundError):
        await uc.cancel_any_reservation(store, reservation_id=1)


@pytest.mark.asyncio
async def test_list_user_reservations_filters_by_owner_and_date() -> None:
    mine_old = _reservation(1, time(9), time(11), day=date(2030, 4, 1))
    mine_new = _reservation(2, time(9), time(11))
    theirs = _reservation(3, time(12), time(14), owner=uuid.uuid4())
    store = FakeStore([mine_old, mine_new, theirs])
    rows = await uc.list_user_reservations(store, owner_id=OWNER, from_date=TODAY)
    assert rows == [mine_new]

