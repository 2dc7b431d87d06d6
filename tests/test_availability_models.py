from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import pytest

from app.services.availability_models import (
    AvailabilityValidationError,
    Confidence,
    DayAvailability,
    DayOfWeek,
    TimeSlot,
    WeeklyAvailability,
    elapsed_minutes,
    format_time_of_day,
    parse_time_of_day,
    validate_weekly_availability,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (date(2026, 10, 19), DayOfWeek.monday),
        (date(2026, 10, 21), DayOfWeek.wednesday),
        (date(2026, 10, 24), DayOfWeek.saturday),
        (date(2026, 10, 25), DayOfWeek.sunday),
    ],
)
def test_day_of_week_from_date(value: date, expected: DayOfWeek) -> None:
    assert DayOfWeek.from_date(value) == expected


@pytest.mark.parametrize(
    ("ratio", "expected"),
    [
        (1.0, Confidence.high),
        (0.8, Confidence.high),
        (0.79, Confidence.medium),
        (0.5, Confidence.medium),
        (0.49, Confidence.low),
        (0.1, Confidence.low),
    ],
)
def test_confidence_from_ratio_uses_inclusive_lower_bounds(ratio: float, expected: Confidence) -> None:
    assert Confidence.from_ratio(ratio) == expected


def test_parse_time_of_day_returns_minutes_since_midnight() -> None:
    assert parse_time_of_day("00:00") == 0
    assert parse_time_of_day("09:30") == 570
    assert parse_time_of_day("23:59") == 1439
    assert parse_time_of_day("24:00", allow_end_of_day=True) == 1440
    assert format_time_of_day(570) == "09:30"


@pytest.mark.parametrize("value", ["24:00", "7:00", "07:5", "07-00", "ab:cd", None, 900])
def test_parse_time_of_day_rejects_malformed_values(value: object) -> None:
    with pytest.raises(AvailabilityValidationError):
        parse_time_of_day(value)


def test_weekly_availability_round_trips_through_documents() -> None:
    availability = WeeklyAvailability.from_payload(
        {
            "monday": {"enabled": True, "time_slots": [{"start": "09:00", "end": "17:00"}]},
            "friday": {"enabled": False, "timeSlots": [{"start": "10:00", "end": "11:00"}]},
        },
    )

    assert availability.monday == DayAvailability(enabled=True, time_slots=(TimeSlot("09:00", "17:00"),))
    assert availability.friday.time_slots == (TimeSlot("10:00", "11:00"),)
    assert availability.for_day(DayOfWeek.sunday) == DayAvailability()

    document = availability.to_dict()
    assert list(document) == [day.value for day in DayOfWeek]
    assert document["monday"] == {"enabled": True, "time_slots": [{"start": "09:00", "end": "17:00"}]}


def test_validate_weekly_availability_names_the_offending_day() -> None:
    availability = WeeklyAvailability(
        wednesday=DayAvailability(enabled=True, time_slots=(TimeSlot("12:00", "11:00"),)),
    )

    with pytest.raises(AvailabilityValidationError, match="wednesday"):
        validate_weekly_availability(availability)


@pytest.mark.parametrize("value", ["٠٩:٠٠", "０９:００", "09:٣٠"])
def test_parse_time_of_day_rejects_non_ascii_digits(value: str) -> None:
    with pytest.raises(AvailabilityValidationError):
        parse_time_of_day(value)


@pytest.mark.parametrize("enabled", ["false", "true", 1, 0, None])
def test_day_flag_must_be_a_boolean(enabled: object) -> None:
    with pytest.raises(AvailabilityValidationError, match="enabled"):
        DayAvailability.from_payload({"enabled": enabled, "time_slots": []})


def test_missing_day_flag_defaults_to_disabled() -> None:
    assert DayAvailability.from_payload({"time_slots": [{"start": "09:00", "end": "10:00"}]}).enabled is False


def test_elapsed_minutes_counts_real_time_across_dst_changes() -> None:
    new_york = ZoneInfo("America/New_York")
    before_gap = datetime(2026, 3, 8, 1, 0, tzinfo=new_york)
    after_gap = datetime(2026, 3, 8, 3, 0, tzinfo=new_york)

    assert elapsed_minutes(before_gap, after_gap) == 60
    assert elapsed_minutes(datetime(2026, 3, 8, 1, 0, tzinfo=UTC), datetime(2026, 3, 8, 3, 0, tzinfo=UTC)) == 120
