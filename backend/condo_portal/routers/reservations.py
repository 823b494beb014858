from datetime import date
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user, get_session, get_slot_rules, get_today, require_admin
from ..domain.errors import (
    ReservationDateInPastError,
    ReservationNotFoundError,
    SlotRejectedError,
    StoreConflictError,
)
from ..domain.slots import SlotCandidate, SlotRules
from ..infrastructure.repositories import SqlAlchemyReservationStore
from ..models import Profile, ProfileRole, Reservation
from ..schemas import (
    DayScheduleRead,
    ReservationRead,
    ReservationWithOwnerRead,
    SlotCheckRead,
    SlotRequest,
    SlotRulesRead,
    TimeRangeRead,
    ViolationRead,
)
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="", tags=["reservations"], dependencies=[Depends(get_current_user)])
admin_router = APIRouter(prefix="/admin", tags=["reservations"], dependencies=[Depends(require_admin)])


def _candidate(payload: SlotRequest) -> SlotCandidate:
    return SlotCandidate(
        reservation_date=payload.reservation_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
    )


def _known_resource(name: Optional[str], *, status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY) -> str:
    """Only the configured resource can be listed or booked."""
    configured = get_settings().resource_name
    if name is not None and name != configured:
        raise HTTPException(
            status_code=status_code,
            detail={"code": "unknown_resource", "message": f"There is no bookable resource named {name!r}."},
        )
    return configured


def _audit_cancel(reservation: Reservation, user: Profile) -> None:
    try:
        emit_audit_log(
            action="reservation.cancelled",
            initiator="admin" if user.role == ProfileRole.ADMIN else "tenant",
            actor_id=user.id,
            subject_id=reservation.id,
            extra={
                "owner_id": reservation.user_id,
                "resource_name": reservation.resource_name,
                "reservation_date": reservation.reservation_date,
            },
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")


@router.post("/reservations/check", response_model=SlotCheckRead)
async def check_slot(
    payload: SlotRequest,
    session: AsyncSession = Depends(get_session),
    rules: SlotRules = Depends(get_slot_rules),
) -> SlotCheckRead:
    store = SqlAlchemyReservationStore(session)
    check = await reservation_usecase.check_slot(
        store,
        rules,
        resource_name=_known_resource(payload.resource_name),
        candidate=_candidate(payload),
    )
    return SlotCheckRead.from_check(check)


@router.get("/resources/{resource_name}/reservations", response_model=DayScheduleRead)
async def list_day(
    resource_name: str = Path(..., min_length=1, max_length=64),
    reservation_date: date = Query(..., alias="date", description="Day to list (YYYY-MM-DD)"),
    session: AsyncSession = Depends(get_session),
    rules: SlotRules = Depends(get_slot_rules),
    user: Profile = Depends(get_current_user),
) -> DayScheduleRead:
    resource_name = _known_resource(resource_name, status_code=status.HTTP_404_NOT_FOUND)
    store = SqlAlchemyReservationStore(session)
    rows = await reservation_usecase.list_day(store, resource_name=resource_name, reservation_date=reservation_date)
    return DayScheduleRead(
        resource_name=resource_name,
        reservation_date=reservation_date,
        rules=SlotRulesRead.from_rules(rules),
        reservations=[ReservationRead.from_db(reservation=r, viewer_id=user.id) for r in rows],
    )


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: SlotRequest,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
    rules: SlotRules = Depends(get_slot_rules),
    today: date = Depends(get_today),
) -> ReservationRead:
    store = SqlAlchemyReservationStore(session)
    async with session.begin():
        try:
            reservation = await reservation_usecase.create_reservation(
                store,
                rules,
                resource_name=_known_resource(payload.resource_name),
                candidate=_candidate(payload),
                owner_id=user.id,
                today=today,
            )
        except SlotRejectedError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=ViolationRead.from_violation(exc.violation).model_dump(),
            )
        except ReservationDateInPastError:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"code": "date_in_past", "message": "Reservations cannot be made for past dates."},
            )
        except StoreConflictError as exc:
            detail: dict[str, Any] = {
                "code": "store_conflict",
                "message": "This time was just booked by someone else. Pick another slot.",
                "existing_slots": [TimeRangeRead.from_range(s).model_dump() for s in exc.existing_slots],
            }
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

        try:
            emit_audit_log(
                action="reservation.created",
                initiator="admin" if user.role == ProfileRole.ADMIN else "tenant",
                actor_id=user.id,
                subject_id=reservation.id,
                extra={
                    "resource_name": reservation.resource_name,
                    "reservation_date": reservation.reservation_date,
                    "start_time": reservation.start_time,
                    "end_time": reservation.end_time,
                },
            )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    return ReservationRead.from_db(reservation=reservation, viewer_id=user.id)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    from_date: Optional[date] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
) -> list[ReservationRead]:
    store = SqlAlchemyReservationStore(session)
    rows = await reservation_usecase.list_user_reservations(store, owner_id=user.id, from_date=from_date)
    return [ReservationRead.from_db(reservation=r, viewer_id=user.id) for r in rows]


@router.delete("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def cancel_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
) -> ReservationRead:
    store = SqlAlchemyReservationStore(session)
    async with session.begin():
        try:
            reservation = await reservation_usecase.cancel_own_reservation(
                store,
                reservation_id=reservation_id,
                owner_id=user.id,
            )
        except ReservationNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
        _audit_cancel(reservation, user)

    return ReservationRead.from_db(reservation=reservation, viewer_id=user.id)


@admin_router.get("/reservations", response_model=List[ReservationWithOwnerRead])
async def list_all_reservations(
    resource_name: Optional[str] = Query(default=None),
    from_date: Optional[date] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> list[ReservationWithOwnerRead]:
    store = SqlAlchemyReservationStore(session)
    rows = await reservation_usecase.list_all_reservations(store, resource_name=resource_name, from_date=from_date)
    return [ReservationWithOwnerRead.from_row(reservation=r, owner=owner) for r, owner in rows]


@admin_router.delete("/reservations/{reservation_id}", response_model=ReservationRead)
async def cancel_any_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: Profile = Depends(require_admin),
) -> ReservationRead:
    store = SqlAlchemyReservationStore(session)
    async with session.begin():
        try:
            reservation = await reservation_usecase.cancel_any_reservation(store, reservation_id=reservation_id)
        except ReservationNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
        _audit_cancel(reservation, admin)

    return ReservationRead.from_db(reservation=reservation)
