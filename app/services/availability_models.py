from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum
import re
from typing import Any

_TIME_OF_DAY_PATTERN = re.compile(r"^([0-9]{2}):([0-9]{2})$")
_MINUTES_PER_DAY = 24 * 60


class AvailabilityValidationError(ValueError):
    pass


class DayOfWeek(StrEnum):
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"
    saturday = "saturday"
    sunday = "sunday"

    @classmethod
    def from_date(cls, value: date) -> DayOfWeek:
        return _DAYS_BY_ISO_WEEKDAY[value.isoweekday()]


_DAYS_BY_ISO_WEEKDAY: dict[int, DayOfWeek] = {
    index: day for index, day in enumerate(DayOfWeek, start=1)
}


class Confidence(StrEnum):
    high = "high"
    medium = "medium"
    low = "low"

    @classmethod
    def from_ratio(cls, ratio: float) -> Confidence:
        if ratio >= 0.8:
            return cls.high
        if ratio >= 0.5:
            return cls.medium
        return cls.low

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANKS[self]


_CONFIDENCE_RANKS: dict[Confidence, int] = {
    Confidence.low: 0,
    Confidence.medium: 1,
    Confidence.high: 2,
}


def parse_time_of_day(value: Any, *, allow_end_of_day: bool = False) -> int:
    """Convert an ``HH:MM`` string into minutes since midnight.

    ``24:00`` is only accepted when ``allow_end_of_day`` is set, so a slot can
    run until the end of the day.
    """
    if not isinstance(value, str):
        raise AvailabilityValidationError(f"Time of day must be a string in HH:MM format, got {value!r}.")
    match = _TIME_OF_DAY_PATTERN.match(value.strip())
    if not match:
        raise AvailabilityValidationError(f"Invalid time of day {value!r}; expected HH:MM.")

    hours = int(match.group(1))
    minutes = int(match.group(2))
    if allow_end_of_day and hours == 24 and minutes == 0:
        return _MINUTES_PER_DAY
    if hours > 23 or minutes > 59:
        raise AvailabilityValidationError(f"Invalid time of day {value!r}; expected HH:MM.")
    return hours * 60 + minutes


def format_time_of_day(minutes: int) -> str:
    hours, remainder = divmod(minutes, 60)
    return f"{hours:02d}:{remainder:02d}"


@dataclass(frozen=True)
class TimeSlot:
    start: str
    end: str

    def to_minutes(self) -> tuple[int, int]:
        start_minutes = parse_time_of_day(self.start)
        end_minutes = parse_time_of_day(self.end, allow_end_of_day=True)
        if start_minutes >= end_minutes:
            raise AvailabilityValidationError(
                f"Time slot {self.start}-{self.end} must start before it ends.",
            )
        return start_minutes, end_minutes

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class DayAvailability:
    enabled: bool = False
    time_slots: tuple[TimeSlot, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "time_slots": [slot.to_dict() for slot in self.time_slots],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> DayAvailability:
        if not isinstance(payload, Mapping):
            return cls()
        raw_slots = payload.get("time_slots")
        if raw_slots is None:
            raw_slots = payload.get("timeSlots")
        time_slots: list[TimeSlot] = []
        for raw_slot in raw_slots or []:
            if not isinstance(raw_slot, Mapping):
                raise AvailabilityValidationError("Each time slot must be an object with start and end.")
            time_slots.append(TimeSlot(start=raw_slot.get("start"), end=raw_slot.get("end")))
        enabled = payload.get("enabled", False)
        if not isinstance(enabled, bool):
            raise AvailabilityValidationError(f"Day flag enabled must be a boolean, got {enabled!r}.")
        return cls(enabled=enabled, time_slots=tuple(time_slots))


@dataclass(frozen=True)
class WeeklyAvailability:
    monday: DayAvailability = field(default_factory=DayAvailability)
    tuesday: DayAvailability = field(default_factory=DayAvailability)
    wednesday: DayAvailability = field(default_factory=DayAvailability)
    thursday: DayAvailability = field(default_factory=DayAvailability)
    friday: DayAvailability = field(default_factory=DayAvailability)
    saturday: DayAvailability = field(default_factory=DayAvailability)
    sunday: DayAvailability = field(default_factory=DayAvailability)

    def for_day(self, day: DayOfWeek) -> DayAvailability:
        return getattr(self, day.value)

    def to_dict(self) -> dict[str, Any]:
        return {day.value: self.for_day(day).to_dict() for day in DayOfWeek}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> WeeklyAvailability:
        return cls(
            **{day.value: DayAvailability.from_payload(payload.get(day.value)) for day in DayOfWeek},
        )


@dataclass(frozen=True)
class Participant:
    identifier: str
    availability: WeeklyAvailability | None = None


@dataclass(frozen=True)
class CandidateSlot:
    start: datetime
    end: datetime
    available_participants: tuple[str, ...]
    total_participants: int
    day: DayOfWeek
    confidence: Confidence

    @property
    def duration_minutes(self) -> int:
        return elapsed_minutes(self.start, self.end)


@dataclass(frozen=True)
class RoundRobinSlot:
    start: datetime
    end: datetime
    day: DayOfWeek
    assigned_participant: str
    available_participants: tuple[str, ...]


@dataclass(frozen=True)
class BookableSlot:
    start: datetime
    end: datetime
    day: DayOfWeek

    @property
    def duration_minutes(self) -> int:
        return elapsed_minutes(self.start, self.end)


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Real minutes between two aware datetimes, including DST shifts."""
    return int((end.astimezone(UTC) - start.astimezone(UTC)).total_seconds() // 60)


def validate_weekly_availability(availability: WeeklyAvailability) -> None:
    for day in DayOfWeek:
        day_availability = availability.for_day(day)
        if not day_availability.enabled:
            continue
        for slot in day_availability.time_slots:
            try:
                slot.to_minutes()
            except AvailabilityValidationError as exc:
                raise AvailabilityValidationError(f"{day.value}: {exc}") from exc
