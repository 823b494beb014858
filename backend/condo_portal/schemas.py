import uuid
from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from .domain.slots import SlotCheck, SlotRules, SlotViolation, TimeRange
from .models import Bill, Profile, ProfileRole, Reservation
from .usecases.tenants import TenantWithEmail


def _hhmm(value: time) -> str:
    return value.strftime("%H:%M")


class TimeRangeRead(BaseModel):
    start_time: str
    end_time: str

    @classmethod
    def from_range(cls, slot: TimeRange) -> "TimeRangeRead":
        return cls(start_time=str(slot.start), end_time=str(slot.end))


class SlotRequest(BaseModel):
    # times kept as text so that a bad value gets the specific validator message
    reservation_date: date
    resource_name: Optional[str] = Field(default=None, min_length=1, max_length=64)
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class ViolationRead(BaseModel):
    code: str
    message: str
    conflicting_slot: Optional[TimeRangeRead] = None

    @classmethod
    def from_violation(cls, violation: SlotViolation) -> "ViolationRead":
        return cls(
            code=violation.kind.value,
            message=violation.message,
            conflicting_slot=(
                TimeRangeRead.from_range(violation.conflicting_slot)
                if violation.conflicting_slot is not None
                else None
            ),
        )


class SlotCheckRead(BaseModel):
    ok: bool
    violation: Optional[ViolationRead] = None

    @classmethod
    def from_check(cls, check: SlotCheck) -> "SlotCheckRead":
        return cls(
            ok=check.ok,
            violation=ViolationRead.from_violation(check.violation) if check.violation is not None else None,
        )


class SlotRulesRead(BaseModel):
    min_duration_hours: float
    max_duration_hours: float
    available_start_hour: int
    available_end_hour: int

    @classmethod
    def from_rules(cls, rules: SlotRules) -> "SlotRulesRead":
        return cls(
            min_duration_hours=rules.min_duration_hours,
            max_duration_hours=rules.max_duration_hours,
            available_start_hour=rules.available_start_hour,
            available_end_hour=rules.available_end_hour,
        )


class ReservationRead(BaseModel):
    reservation_id: int
    resource_name: str
    reservation_date: date
    start_time: time
    end_time: time
    user_id: uuid.UUID
    mine: Optional[bool] = None

    @field_serializer("start_time", "end_time")
    def _ser_time(self, value: time) -> str:
        return _hhmm(value)

    @classmethod
    def from_db(cls, *, reservation: Reservation, viewer_id: Optional[uuid.UUID] = None) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            resource_name=reservation.resource_name,
            reservation_date=reservation.reservation_date,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            user_id=reservation.user_id,
            mine=None if viewer_id is None else reservation.user_id == viewer_id,
        )


class ReservationWithOwnerRead(ReservationRead):
    owner_name: Optional[str] = None
    block_number: Optional[str] = None
    apartment_number: Optional[str] = None

    @classmethod
    def from_row(cls, *, reservation: Reservation, owner: Profile) -> "ReservationWithOwnerRead":
        return cls(
            reservation_id=reservation.id,
            resource_name=reservation.resource_name,
            reservation_date=reservation.reservation_date,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            user_id=reservation.user_id,
            owner_name=owner.full_name,
            block_number=owner.block_number,
            apartment_number=owner.apartment_number,
        )


class DayScheduleRead(BaseModel):
    resource_name: str
    reservation_date: date
    rules: SlotRulesRead
    reservations: list[ReservationRead]


class ProfileRead(BaseModel):
    user_id: uuid.UUID
    role: ProfileRole
    full_name: Optional[str]
    block_number: Optional[str]
    apartment_number: Optional[str]
    created_at: datetime

    @classmethod
    def from_db(cls, *, profile: Profile) -> "ProfileRead":
        return cls(
            user_id=profile.id,
            role=profile.role,
            full_name=profile.full_name,
            block_number=profile.block_number,
            apartment_number=profile.apartment_number,
            created_at=profile.created_at,
        )


class TenantRead(ProfileRead):
    email: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: TenantWithEmail) -> "TenantRead":
        profile = entry.profile
        return cls(
            user_id=profile.id,
            role=profile.role,
            full_name=profile.full_name,
            block_number=profile.block_number,
            apartment_number=profile.apartment_number,
            created_at=profile.created_at,
            email=entry.email,
        )


class TenantCreate(BaseModel):
    email: str
    password: str
    full_name: str
    block_number: str
    apartment_number: str


class PasswordReset(BaseModel):
    new_password: str


class PasswordChange(BaseModel):
    new_password: str
    confirm_password: str


class BillRead(BaseModel):
    bill_id: int
    tenant_id: uuid.UUID
    reference_period: str
    file_name: str
    uploaded_at: datetime

    @classmethod
    def from_db(cls, *, bill: Bill) -> "BillRead":
        return cls(
            bill_id=bill.id,
            tenant_id=bill.tenant_id,
            reference_period=bill.reference_period,
            file_name=bill.file_path.rsplit("/", 1)[-1],
            uploaded_at=bill.uploaded_at,
        )


class BillWithTenantRead(BillRead):
    tenant_name: Optional[str] = None
    block_number: Optional[str] = None
    apartment_number: Optional[str] = None

    @classmethod
    def from_row(cls, *, bill: Bill, tenant: Profile) -> "BillWithTenantRead":
        return cls(
            **BillRead.from_db(bill=bill).model_dump(),
            tenant_name=tenant.full_name,
            block_number=tenant.block_number,
            apartment_number=tenant.apartment_number,
        )
