from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, time
from enum import StrEnum
from typing import Iterable, Optional, Union

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """Time of day with minute granularity, stored as minutes since midnight."""

    minutes: int

    def __post_init__(self) -> None:
        if not 0 <= self.minutes <= MINUTES_PER_DAY:
            raise ValueError("minutes must be within a single day")

    @classmethod
    def of(cls, hour: int, minute: int = 0) -> "TimeOfDay":
        if not 0 <= minute < 60:
            raise ValueError("minute must be within 0..59")
        return cls(hour * 60 + minute)

    @classmethod
    def parse(cls, value: str) -> "TimeOfDay":
        match = _TIME_RE.match(value.strip())
        if match is None:
            raise ValueError(f"invalid time of day: {value!r}")
        hour, minute = int(match.group(1)), int(match.group(2))
        second = int(match.group(3) or 0)
        if hour > 23 or minute > 59 or second > 59:
            raise ValueError(f"invalid time of day: {value!r}")
        return cls.of(hour, minute)

    @classmethod
    def coerce(cls, value: TimeInput) -> Optional["TimeOfDay"]:
        """Convert boundary input to a TimeOfDay; None when unset or unparseable."""
        if value is None:
            return None
        if isinstance(value, TimeOfDay):
            return value
        if isinstance(value, time):
            return cls.of(value.hour, value.minute)
        if isinstance(value, str):
            try:
                return cls.parse(value)
            except ValueError:
                return None
        return None

    @property
    def hour(self) -> int:
        return self.minutes // 60

    @property
    def minute(self) -> int:
        return self.minutes % 60

    def to_time(self) -> time:
        return time(self.hour, self.minute)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


TimeInput = Union[TimeOfDay, time, str, None]


@dataclass(frozen=True, order=True)
class TimeRange:
    """Half-open interval [start, end) within one day."""

    start: TimeOfDay
    end: TimeOfDay

    @classmethod
    def from_times(cls, start: time, end: time) -> "TimeRange":
        return cls(TimeOfDay.of(start.hour, start.minute), TimeOfDay.of(end.hour, end.minute))

    @property
    def duration_minutes(self) -> int:
        return self.end.minutes - self.start.minutes

    def overlaps(self, other: "TimeRange") -> bool:
        return ranges_overlap(self, other)

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


def ranges_overlap(a: TimeRange, b: TimeRange) -> bool:
    # touching ranges (a.end == b.start) do not overlap
    return a.start.minutes < b.end.minutes and b.start.minutes < a.end.minutes


@dataclass(frozen=True)
class SlotRules:
    min_duration_hours: float = 2
    max_duration_hours: float = 4
    available_start_hour: int = 9
    available_end_hour: int = 22

    def __post_init__(self) -> None:
        if self.min_duration_hours <= 0 or self.min_duration_hours > self.max_duration_hours:
            raise ValueError("duration bounds must satisfy 0 < min <= max")
        if not 0 <= self.available_start_hour < self.available_end_hour <= 24:
            raise ValueError("available window must satisfy 0 <= start < end <= 24")


DEFAULT_RULES = SlotRules()


class ViolationKind(StrEnum):
    MISSING_OR_INVALID_TIME = "missing_or_invalid_time"
    END_NOT_AFTER_START = "end_not_after_start"
    DURATION_TOO_SHORT = "duration_too_short"
    DURATION_TOO_LONG = "duration_too_long"
    OUTSIDE_AVAILABLE_WINDOW = "outside_available_window"
    OVERLAPS_EXISTING_RESERVATION = "overlaps_existing_reservation"


@dataclass(frozen=True)
class SlotViolation:
    kind: ViolationKind
    message: str
    conflicting_slot: Optional[TimeRange] = None


@dataclass(frozen=True)
class SlotCandidate:
    reservation_date: date
    start_time: TimeInput = None
    end_time: TimeInput = None


@dataclass(frozen=True)
class SlotCheck:
    """Outcome of validate_slot: `violation` is None when the slot is admissible."""

    candidate: SlotCandidate
    slot: Optional[TimeRange] = None
    violation: Optional[SlotViolation] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.violation is None


def _hours_label(hours: float) -> str:
    return f"{hours:g}h"


def validate_slot(
    candidate: SlotCandidate,
    existing_slots: Iterable[TimeRange],
    rules: SlotRules = DEFAULT_RULES,
) -> SlotCheck:
    """
    Decide whether `candidate` can be booked next to `existing_slots`.

    `existing_slots` must already be restricted to the candidate's resource and date.
    Checks run in a fixed order and the first failing one is reported.
    """
    start = TimeOfDay.coerce(candidate.start_time)
    end = TimeOfDay.coerce(candidate.end_time)
    if start is None or end is None:
        return _reject(
            candidate,
            None,
            ViolationKind.MISSING_OR_INVALID_TIME,
            "Select a valid start and end time (HH:MM).",
        )

    if end <= start:
        return _reject(
            candidate,
            None,
            ViolationKind.END_NOT_AFTER_START,
            "The end time must be after the start time.",
        )

    slot = TimeRange(start, end)
    duration_hours = slot.duration_minutes / 60
    if duration_hours < rules.min_duration_hours:
        return _reject(
            candidate,
            slot,
            ViolationKind.DURATION_TOO_SHORT,
            f"Reservations must last at least {_hours_label(rules.min_duration_hours)}.",
        )
    if duration_hours > rules.max_duration_hours:
        return _reject(
            candidate,
            slot,
            ViolationKind.DURATION_TOO_LONG,
            f"Reservations may last at most {_hours_label(rules.max_duration_hours)}.",
        )

    ends_in_window = end.hour < rules.available_end_hour or (
        end.hour == rules.available_end_hour and end.minute == 0
    )
    if start.hour < rules.available_start_hour or not ends_in_window:
        return _reject(
            candidate,
            slot,
            ViolationKind.OUTSIDE_AVAILABLE_WINDOW,
            f"The area is available from {rules.available_start_hour:02d}:00 "
            f"to {rules.available_end_hour:02d}:00.",
        )

    for existing in sorted(existing_slots):
        if ranges_overlap(slot, existing):
            return SlotCheck(
                candidate=candidate,
                slot=slot,
                violation=SlotViolation(
                    kind=ViolationKind.OVERLAPS_EXISTING_RESERVATION,
                    message=f"This time overlaps an existing reservation ({existing}).",
                    conflicting_slot=existing,
                ),
            )

    return SlotCheck(candidate=candidate, slot=slot)


def _reject(
    candidate: SlotCandidate,
    slot: Optional[TimeRange],
    kind: ViolationKind,
    message: str,
) -> SlotCheck:
    return SlotCheck(candidate=candidate, slot=slot, violation=SlotViolation(kind=kind, message=message))
