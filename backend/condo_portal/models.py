from __future__ import annotations

import uuid
from datetime import date, datetime, time
from enum import StrEnum
from typing import Optional

from sqlalchemy import DDL, CheckConstraint, Enum, ForeignKey, Index, event
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, String, Time, Uuid


class Base(DeclarativeBase):
    pass


class ProfileRole(StrEnum):
    ADMIN = "admin"
    TENANT = "tenant"


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (Index("idx_profiles_role", "role"),)

    # same id as the platform's auth user
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    role: Mapped[ProfileRole] = mapped_column(
        Enum(
            ProfileRole,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=ProfileRole.TENANT,
    )
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    block_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    apartment_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    reservations: Mapped[list["Reservation"]] = relationship(back_populates="owner", passive_deletes=True)
    bills: Mapped[list["Bill"]] = relationship(
        back_populates="tenant",
        foreign_keys="Bill.tenant_id",
        passive_deletes=True,
    )


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_reservations_time"),
        Index("idx_reservations_day", "resource_name", "reservation_date"),
        Index("idx_reservations_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    resource_name: Mapped[str] = mapped_column(String(64), nullable=False)
    reservation_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    end_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    owner: Mapped["Profile"] = relationship(back_populates="reservations")


class Bill(Base):
    __tablename__ = "bills"
    __table_args__ = (Index("idx_bills_tenant", "tenant_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    uploader_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    file_path: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    reference_period: Mapped[str] = mapped_column(String(50), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    tenant: Mapped["Profile"] = relationship(back_populates="bills", foreign_keys=[tenant_id])


# Store-level overlap arbiter: two reservations of the same resource and day
# may not share any instant. Needs the btree_gist extension.
event.listen(
    Reservation.__table__,
    "after_create",
    DDL(
        "ALTER TABLE reservations ADD CONSTRAINT excl_reservations_overlap "
        "EXCLUDE USING gist (resource_name WITH =, reservation_date WITH =, "
        "tsrange(reservation_date + start_time, reservation_date + end_time) WITH &&)"
    ).execute_if(dialect="postgresql"),
)
