from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, timedelta, tzinfo
import logging

from app.services.availability_intersector import local_instant, validate_date_range
from app.services.availability_models import (
    AvailabilityValidationError,
    BookableSlot,
    DayOfWeek,
    WeeklyAvailability,
    validate_weekly_availability,
)

DEFAULT_MIN_NOTICE_MINUTES = 15
MIN_MEETING_MINUTES = 15
MAX_MEETING_MINUTES = 480

logger = logging.getLogger(__name__)

BusyInterval = tuple[datetime, datetime]


class BookableSlotGenerator:
    """Cuts one person's weekly availability into bookable meetings.

    Inside each declared slot, meetings start at the slot start and repeat
    every ``meeting + buffer_before + buffer_after`` minutes for as long as the
    meeting itself still fits before the slot ends. Meetings starting within
    the minimum notice, or overlapping a busy interval, are left out.
    """

    def __init__(
        self,
        *,
        timezone: tzinfo = UTC,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.timezone = timezone
        self._clock = clock or (lambda: datetime.now(self.timezone))

    def generate(
        self,
        availability: WeeklyAvailability,
        horizon_days: int,
        *,
        meeting_minutes: int,
        buffer_before_minutes: int = 0,
        buffer_after_minutes: int = 0,
        min_notice_minutes: int = DEFAULT_MIN_NOTICE_MINUTES,
        busy_intervals: Iterable[BusyInterval] = (),
        today: date | None = None,
    ) -> list[BookableSlot]:
        if meeting_minutes < MIN_MEETING_MINUTES or meeting_minutes > MAX_MEETING_MINUTES:
            raise AvailabilityValidationError(
                f"Meeting duration must be between {MIN_MEETING_MINUTES} and {MAX_MEETING_MINUTES} minutes.",
            )
        if buffer_before_minutes < 0 or buffer_after_minutes < 0:
            raise AvailabilityValidationError("Buffer times cannot be negative.")
        if min_notice_minutes < 0:
            raise AvailabilityValidationError("Minimum notice cannot be negative.")
        validate_weekly_availability(availability)
        busy = [self._normalize_busy_interval(start, end) for start, end in busy_intervals]
        if horizon_days <= 0:
            return []

        now = self._clock()
        anchor_date = today or now.astimezone(self.timezone).date()
        validate_date_range(anchor_date, horizon_days)
        earliest_start = now.astimezone(UTC) + timedelta(minutes=min_notice_minutes)
        step_minutes = meeting_minutes + buffer_before_minutes + buffer_after_minutes

        slots: list[BookableSlot] = []
        skipped_notice = 0
        skipped_busy = 0
        for day_offset in range(horizon_days):
            current_date = anchor_date + timedelta(days=day_offset)
            day = DayOfWeek.from_date(current_date)
            day_availability = availability.for_day(day)
            if not day_availability.enabled:
                continue
            for time_slot in day_availability.time_slots:
                slot_start, slot_end = time_slot.to_minutes()
                current = slot_start
                while current + meeting_minutes <= slot_end:
                    start = local_instant(current_date, current, self.timezone)
                    end = local_instant(current_date, current + meeting_minutes, self.timezone)
                    current += step_minutes
                    if end <= start:
                        continue
                    if start.astimezone(UTC) <= earliest_start:
                        skipped_notice += 1
                        continue
                    if any(busy_start < end and busy_end > start for busy_start, busy_end in busy):
                        skipped_busy += 1
                        continue
                    slots.append(BookableSlot(start=start, end=end, day=day))

        slots.sort(key=lambda slot: slot.start.astimezone(UTC))
        logger.debug(
            "Generated bookable slots horizon_days=%s slots=%s skipped_notice=%s skipped_busy=%s",
            horizon_days,
            len(slots),
            skipped_notice,
            skipped_busy,
        )
        return slots

    def _normalize_busy_interval(self, start: datetime, end: datetime) -> BusyInterval:
        if start.tzinfo is None:
            start = start.replace(tzinfo=self.timezone)
        if end.tzinfo is None:
            end = end.replace(tzinfo=self.timezone)
        if end <= start:
            raise AvailabilityValidationError(
                f"Busy interval {start.isoformat()} - {end.isoformat()} must start before it ends.",
            )
        return start, end
