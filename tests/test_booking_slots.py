from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import pytest

from app.services.availability_models import (
    AvailabilityValidationError,
    DayAvailability,
    DayOfWeek,
    TimeSlot,
    WeeklyAvailability,
)
from app.services.booking_slots import BookableSlotGenerator

MONDAY = date(2026, 10, 19)
SUNDAY_BEFORE = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def _weekly(**days: list[tuple[str, str]]) -> WeeklyAvailability:
    return WeeklyAvailability(
        **{
            day: DayAvailability(
                enabled=True,
                time_slots=tuple(TimeSlot(start=start, end=end) for start, end in slots),
            )
            for day, slots in days.items()
        },
    )


def _generator(now: datetime = SUNDAY_BEFORE, **kwargs) -> BookableSlotGenerator:
    return BookableSlotGenerator(clock=lambda: now, **kwargs)


def _times(slots) -> list[tuple[str, str]]:
    return [(slot.start.strftime("%H:%M"), slot.end.strftime("%H:%M")) for slot in slots]


def test_meetings_are_packed_from_slot_start() -> None:
    availability = _weekly(monday=[("09:00", "11:00")])

    slots = _generator().generate(availability, 1, meeting_minutes=30, today=MONDAY)

    assert _times(slots) == [("09:00", "09:30"), ("09:30", "10:00"), ("10:00", "10:30"), ("10:30", "11:00")]
    assert all(slot.day == DayOfWeek.monday and slot.duration_minutes == 30 for slot in slots)


def test_buffers_widen_the_step_between_meetings() -> None:
    availability = _weekly(monday=[("09:00", "11:00")])

    slots = _generator().generate(
        availability,
        1,
        meeting_minutes=30,
        buffer_before_minutes=10,
        buffer_after_minutes=5,
        today=MONDAY,
    )

    assert _times(slots) == [("09:00", "09:30"), ("09:45", "10:15"), ("10:30", "11:00")]


def test_last_meeting_only_needs_its_own_duration_to_fit() -> None:
    availability = _weekly(monday=[("09:00", "10:10")])

    slots = _generator().generate(
        availability,
        1,
        meeting_minutes=30,
        buffer_after_minutes=10,
        today=MONDAY,
    )

    assert _times(slots) == [("09:00", "09:30"), ("09:40", "10:10")]


def test_meetings_inside_minimum_notice_are_skipped() -> None:
    availability = _weekly(monday=[("09:00", "11:00")])
    now = datetime(2026, 10, 19, 9, 15, tzinfo=UTC)

    slots = _generator(now).generate(availability, 1, meeting_minutes=30, today=MONDAY)

    assert _times(slots) == [("10:00", "10:30"), ("10:30", "11:00")]


def test_meeting_starting_exactly_at_notice_boundary_is_skipped() -> None:
    availability = _weekly(monday=[("09:00", "10:00")])
    now = datetime(2026, 10, 19, 9, 15, tzinfo=UTC)

    slots = _generator(now).generate(
        availability,
        1,
        meeting_minutes=15,
        min_notice_minutes=15,
        today=MONDAY,
    )

    assert _times(slots) == [("09:45", "10:00")]


def test_busy_intervals_remove_overlapping_meetings() -> None:
    availability = _weekly(monday=[("09:00", "11:00")])
    busy = [
        (datetime(2026, 10, 19, 9, 40, tzinfo=UTC), datetime(2026, 10, 19, 10, 0, tzinfo=UTC)),
        (datetime(2026, 10, 19, 10, 30), datetime(2026, 10, 19, 10, 45)),
    ]

    slots = _generator().generate(availability, 1, meeting_minutes=30, busy_intervals=busy, today=MONDAY)

    assert _times(slots) == [("09:00", "09:30"), ("10:00", "10:30")]


def test_busy_interval_touching_a_meeting_does_not_conflict() -> None:
    availability = _weekly(monday=[("09:00", "10:00")])
    busy = [(datetime(2026, 10, 19, 9, 30, tzinfo=UTC), datetime(2026, 10, 19, 10, 0, tzinfo=UTC))]

    slots = _generator().generate(availability, 1, meeting_minutes=30, busy_intervals=busy, today=MONDAY)

    assert _times(slots) == [("09:00", "09:30")]


def test_disabled_days_and_horizon_limit_output() -> None:
    availability = WeeklyAvailability(
        monday=DayAvailability(enabled=True, time_slots=(TimeSlot("09:00", "09:30"),)),
        tuesday=DayAvailability(enabled=False, time_slots=(TimeSlot("09:00", "09:30"),)),
        wednesday=DayAvailability(enabled=True, time_slots=(TimeSlot("09:00", "09:30"),)),
    )

    slots = _generator().generate(availability, 2, meeting_minutes=30, today=MONDAY)

    assert [slot.day for slot in slots] == [DayOfWeek.monday]


def test_anchor_date_defaults_to_clock_in_timezone() -> None:
    bogota = ZoneInfo("America/Bogota")
    availability = _weekly(monday=[("20:00", "21:00")], tuesday=[("20:00", "21:00")])
    now = datetime(2026, 10, 20, 0, 0, tzinfo=UTC)

    slots = _generator(now, timezone=bogota).generate(availability, 1, meeting_minutes=60)

    assert [slot.start for slot in slots] == [datetime(2026, 10, 19, 20, 0, tzinfo=bogota)]


def test_meeting_inside_spring_forward_gap_is_dropped() -> None:
    new_york = ZoneInfo("America/New_York")
    availability = _weekly(sunday=[("01:30", "03:30")])

    slots = _generator(datetime(2026, 3, 1, tzinfo=UTC), timezone=new_york).generate(
        availability,
        1,
        meeting_minutes=30,
        today=date(2026, 3, 8),
    )

    assert [slot.start.astimezone(UTC).strftime("%H:%M") for slot in slots] == ["06:30", "07:00"]
    assert all(slot.duration_minutes == 30 for slot in slots)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"meeting_minutes": 10},
        {"meeting_minutes": 481},
        {"meeting_minutes": 30, "buffer_before_minutes": -5},
        {"meeting_minutes": 30, "min_notice_minutes": -1},
    ],
)
def test_invalid_settings_raise_validation_error(kwargs: dict[str, int]) -> None:
    with pytest.raises(AvailabilityValidationError):
        _generator().generate(_weekly(monday=[("09:00", "10:00")]), 1, today=MONDAY, **kwargs)


def test_inverted_busy_interval_raises_validation_error() -> None:
    busy = [(datetime(2026, 10, 19, 10, 0, tzinfo=UTC), datetime(2026, 10, 19, 9, 0, tzinfo=UTC))]

    with pytest.raises(AvailabilityValidationError, match="Busy interval"):
        _generator().generate(
            _weekly(monday=[("09:00", "10:00")]),
            1,
            meeting_minutes=30,
            busy_intervals=busy,
            today=MONDAY,
        )


def test_malformed_availability_raises_validation_error() -> None:
    with pytest.raises(AvailabilityValidationError, match="monday"):
        _generator().generate(_weekly(monday=[("10:00", "09:00")]), 1, meeting_minutes=30, today=MONDAY)


def test_window_outside_supported_dates_raises_validation_error() -> None:
    with pytest.raises(AvailabilityValidationError, match="supported date range"):
        _generator().generate(
            _weekly(monday=[("09:00", "10:00")]),
            5,
            meeting_minutes=30,
            today=date(9999, 12, 30),
        )
