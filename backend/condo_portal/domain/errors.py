from __future__ import annotations

from typing import Sequence

from .slots import SlotViolation, TimeRange


class DomainError(Exception):
    """Base class for expected business failures."""


class SlotRejectedError(DomainError):
    def __init__(self, violation: SlotViolation) -> None:
        super().__init__(violation.message)
        self.violation = violation


class ReservationDateInPastError(DomainError):
    pass


class StoreConflictError(DomainError):
    """The store refused an insert because another booking got there first."""

    def __init__(self, message: str, existing_slots: Sequence[TimeRange] = ()) -> None:
        super().__init__(message)
        self.existing_slots = list(existing_slots)


class ReservationNotFoundError(DomainError):
    pass


class TenantNotFoundError(DomainError):
    pass


class TenantAlreadyExistsError(DomainError):
    pass


class BillNotFoundError(DomainError):
    pass


class InvalidInputError(DomainError):
    pass
