import logging
import uuid
from datetime import date

from ..domain.errors import (
    ReservationDateInPastError,
    ReservationNotFoundError,
    SlotRejectedError,
    StoreConflictError,
)
from ..domain.repositories import ReservationStore
from ..domain.slots import SlotCandidate, SlotCheck, SlotRules, TimeRange, validate_slot
from ..models import Profile, Reservation

logger = logging.getLogger(__name__)


def _slots_of(reservations: list[Reservation]) -> list[TimeRange]:
    return [TimeRange.from_times(r.start_time, r.end_time) for r in reservations]


async def existing_slots(store: ReservationStore, *, resource_name: str, reservation_date: date) -> list[TimeRange]:
    rows = await store.list_by_resource_and_date(resource_name, reservation_date)
    return _slots_of(rows)


async def check_slot(
    store: ReservationStore,
    rules: SlotRules,
    *,
    resource_name: str,
    candidate: SlotCandidate,
) -> SlotCheck:
    slots = await existing_slots(store, resource_name=resource_name, reservation_date=candidate.reservation_date)
    return validate_slot(candidate, slots, rules)


async def list_day(
    store: ReservationStore,
    *,
    resource_name: str,
    reservation_date: date,
) -> list[Reservation]:
    return await store.list_by_resource_and_date(resource_name, reservation_date)


async def create_reservation(
    store: ReservationStore,
    rules: SlotRules,
    *,
    resource_name: str,
    candidate: SlotCandidate,
    owner_id: uuid.UUID,
    today: date,
) -> Reservation:
    if candidate.reservation_date < today:
        raise ReservationDateInPastError("reservations cannot be made for past dates")

    check = await check_slot(store, rules, resource_name=resource_name, candidate=candidate)
    if check.violation is not None:
        raise SlotRejectedError(check.violation)
    assert check.slot is not None

    try:
        return await store.insert(
            resource_name=resource_name,
            reservation_date=candidate.reservation_date,
            start_time=check.slot.start.to_time(),
            end_time=check.slot.end.to_time(),
            owner_id=owner_id,
        )
    except StoreConflictError as exc:
        # Lost the race after a stale read: hand back the current picture of the day.
        refreshed = await existing_slots(
            store,
            resource_name=resource_name,
            reservation_date=candidate.reservation_date,
        )
        logger.info(
            "reservation %s on %s lost a booking race; %d slots now taken",
            check.slot,
            candidate.reservation_date,
            len(refreshed),
        )
        raise StoreConflictError(str(exc), refreshed) from exc


async def list_user_reservations(
    store: ReservationStore,
    *,
    owner_id: uuid.UUID,
    resource_name: str | None = None,
    from_date: date | None = None,
) -> list[Reservation]:
    return await store.list_by_owner(owner_id, resource_name=resource_name, from_date=from_date)


async def list_all_reservations(
    store: ReservationStore,
    *,
    resource_name: str | None = None,
    from_date: date | None = None,
) -> list[tuple[Reservation, Profile]]:
    return await store.list_with_owner(resource_name=resource_name, from_date=from_date)


async def cancel_own_reservation(
    store: ReservationStore,
    *,
    reservation_id: int,
    owner_id: uuid.UUID,
) -> Reservation:
    reservation = await store.delete_owned_by(reservation_id, owner_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return reservation


async def cancel_any_reservation(
    store: ReservationStore,
    *,
    reservation_id: int,
) -> Reservation:
    reservation = await store.delete_any(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return reservation
