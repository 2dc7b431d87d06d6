from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, date, datetime, time, timedelta, tzinfo
import logging

from app.services.availability_models import (
    AvailabilityValidationError,
    CandidateSlot,
    Confidence,
    DayOfWeek,
    Participant,
    RoundRobinSlot,
    format_time_of_day,
    validate_weekly_availability,
)

DEFAULT_ROUND_ROBIN_SLOT_MINUTES = 30
_MINUTES_PER_DAY = 24 * 60

logger = logging.getLogger(__name__)


class AvailabilityIntersector:
    """Finds the windows where members of a group are free.

    Each scanned day is split at every slot start and end of the people who are
    available that day. Every resulting interval is emitted with the subset of
    participants whose own slots cover it entirely, so no overlap finer than
    the declared slots is missed and no interval spans a change in who is free.
    """

    def __init__(
        self,
        *,
        timezone: tzinfo = UTC,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.timezone = timezone
        self._clock = clock or (lambda: datetime.now(self.timezone))

    def today(self) -> date:
        return self._clock().astimezone(self.timezone).date()

    def compute_slots(
        self,
        participants: Sequence[Participant],
        horizon_days: int,
        *,
        today: date | None = None,
    ) -> list[CandidateSlot]:
        eligible = [participant for participant in participants if participant.availability is not None]
        _validate_participants(eligible)
        if not eligible or horizon_days <= 0:
            return []

        anchor_date = today or self.today()
        validate_date_range(anchor_date, horizon_days)
        slots: list[CandidateSlot] = []
        for day_offset in range(horizon_days):
            current_date = anchor_date + timedelta(days=day_offset)
            slots.extend(self._compute_day_slots(current_date, eligible))

        slots.sort(key=lambda slot: slot.start.astimezone(UTC))
        logger.debug(
            "Computed group availability participants=%s horizon_days=%s slots=%s",
            len(eligible),
            horizon_days,
            len(slots),
        )
        return slots

    def assign_round_robin(
        self,
        participants: Sequence[Participant],
        horizon_days: int,
        *,
        today: date | None = None,
        slot_minutes: int = DEFAULT_ROUND_ROBIN_SLOT_MINUTES,
    ) -> list[RoundRobinSlot]:
        """Split availability into fixed blocks and hand each block to one person.

        A block goes to the available participant with the fewest assignments
        so far; ties go to the participant listed first.
        """
        if slot_minutes <= 0 or slot_minutes > _MINUTES_PER_DAY:
            raise AvailabilityValidationError(
                f"Round-robin slot length must be between 1 and {_MINUTES_PER_DAY} minutes.",
            )
        eligible = [participant for participant in participants if participant.availability is not None]
        _validate_participants(eligible)
        if not eligible or horizon_days <= 0:
            return []

        anchor_date = today or self.today()
        validate_date_range(anchor_date, horizon_days)
        assignment_counts = {participant.identifier: 0 for participant in eligible}
        assigned: list[RoundRobinSlot] = []
        for day_offset in range(horizon_days):
            current_date = anchor_date + timedelta(days=day_offset)
            day = DayOfWeek.from_date(current_date)
            members_by_block: dict[int, list[str]] = {}
            for participant in eligible:
                day_availability = participant.availability.for_day(day)
                if not day_availability.enabled:
                    continue
                for slot in day_availability.time_slots:
                    slot_start, slot_end = slot.to_minutes()
                    block_start = slot_start
                    while block_start + slot_minutes <= slot_end:
                        members = members_by_block.setdefault(block_start, [])
                        if participant.identifier not in members:
                            members.append(participant.identifier)
                        block_start += slot_minutes

            for block_start in sorted(members_by_block):
                start = local_instant(current_date, block_start, self.timezone)
                end = local_instant(current_date, block_start + slot_minutes, self.timezone)
                if end <= start:
                    continue
                members = members_by_block[block_start]
                selected = min(members, key=lambda identifier: assignment_counts[identifier])
                assignment_counts[selected] += 1
                assigned.append(
                    RoundRobinSlot(
                        start=start,
                        end=end,
                        day=day,
                        assigned_participant=selected,
                        available_participants=tuple(members),
                    ),
                )

        logger.debug(
            "Assigned round-robin slots participants=%s horizon_days=%s slots=%s",
            len(eligible),
            horizon_days,
            len(assigned),
        )
        return assigned

    def _compute_day_slots(
        self,
        current_date: date,
        eligible: Sequence[Participant],
    ) -> list[CandidateSlot]:
        day = DayOfWeek.from_date(current_date)
        ranges_by_participant: list[tuple[str, list[tuple[int, int]]]] = []
        for participant in eligible:
            day_availability = participant.availability.for_day(day)
            if not day_availability.enabled or not day_availability.time_slots:
                continue
            ranges_by_participant.append(
                (
                    participant.identifier,
                    [slot.to_minutes() for slot in day_availability.time_slots],
                ),
            )

        boundary_points = sorted(
            {
                minutes
                for _, ranges in ranges_by_participant
                for slot_range in ranges
                for minutes in slot_range
            },
        )
        total_participants = len(eligible)

        day_slots: list[CandidateSlot] = []
        for start_minutes, end_minutes in zip(boundary_points, boundary_points[1:]):
            available = tuple(
                identifier
                for identifier, ranges in ranges_by_participant
                if any(
                    slot_start <= start_minutes and slot_end >= end_minutes
                    for slot_start, slot_end in ranges
                )
            )
            if not available:
                continue
            start = local_instant(current_date, start_minutes, self.timezone)
            end = local_instant(current_date, end_minutes, self.timezone)
            if end <= start:
                logger.debug(
                    "Skipping %s-%s on %s, the interval does not exist in %s",
                    format_time_of_day(start_minutes),
                    format_time_of_day(end_minutes),
                    current_date.isoformat(),
                    self.timezone,
                )
                continue
            day_slots.append(
                CandidateSlot(
                    start=start,
                    end=end,
                    available_participants=available,
                    total_participants=total_participants,
                    day=day,
                    confidence=Confidence.from_ratio(len(available) / total_participants),
                ),
            )
        return day_slots


def local_instant(current_date: date, minutes: int, timezone: tzinfo) -> datetime:
    """Anchor a time of day to a date in ``timezone``.

    The wall-clock time is resolved through UTC. A time skipped by a DST gap
    maps to the instant the gap ends and an ambiguous time resolves to its
    first occurrence, so the mapping never runs backwards. The result always
    carries the real offset, which keeps differences between results equal to
    elapsed time.
    """
    wall_clock = datetime.combine(current_date, time.min) + timedelta(minutes=minutes)
    first = wall_clock.replace(tzinfo=timezone, fold=0).astimezone(UTC)
    second = wall_clock.replace(tzinfo=timezone, fold=1).astimezone(UTC)
    if second < first:
        first = _transition_instant(second, first, timezone)
    return first.astimezone(timezone)


def _transition_instant(before: datetime, after: datetime, timezone: tzinfo) -> datetime:
    # Offsets change on whole minutes.
    offset_before = before.astimezone(timezone).utcoffset()
    one_minute = timedelta(minutes=1)
    while after - before > one_minute:
        middle = before + one_minute * ((after - before) // one_minute // 2)
        if middle.astimezone(timezone).utcoffset() == offset_before:
            before = middle
        else:
            after = middle
    return after


def validate_date_range(anchor_date: date, horizon_days: int) -> None:
    # One spare day on each side for the 24:00 boundary and the UTC conversion.
    if anchor_date.toordinal() < 2 or anchor_date.toordinal() + horizon_days + 1 > date.max.toordinal():
        raise AvailabilityValidationError(
            f"Scheduling window starting {anchor_date.isoformat()} for {horizon_days} days "
            "falls outside the supported date range.",
        )


def filter_candidate_slots(
    slots: Iterable[CandidateSlot],
    *,
    min_duration_minutes: int = 0,
    min_confidence: Confidence | None = None,
    days: Iterable[DayOfWeek] | None = None,
    required_participants: Iterable[str] = (),
) -> list[CandidateSlot]:
    if min_duration_minutes < 0:
        raise AvailabilityValidationError("Minimum duration cannot be negative.")

    allowed_days = frozenset(days) if days is not None else None
    required = frozenset(required_participants)
    filtered: list[CandidateSlot] = []
    for slot in slots:
        if slot.duration_minutes < min_duration_minutes:
            continue
        if min_confidence is not None and slot.confidence.rank < min_confidence.rank:
            continue
        if allowed_days is not None and slot.day not in allowed_days:
            continue
        if not required.issubset(slot.available_participants):
            continue
        filtered.append(slot)
    return filtered


def _validate_participants(participants: Sequence[Participant]) -> None:
    seen_identifiers: set[str] = set()
    for participant in participants:
        identifier = participant.identifier
        if not isinstance(identifier, str) or not identifier.strip():
            raise AvailabilityValidationError("Participant identifier cannot be empty.")
        if identifier in seen_identifiers:
            raise AvailabilityValidationError(f"Duplicate participant {identifier!r}.")
        seen_identifiers.add(identifier)
        try:
            validate_weekly_availability(participant.availability)
        except AvailabilityValidationError as exc:
            raise AvailabilityValidationError(f"Invalid availability for {identifier}: {exc}") from exc
