from __future__ import annotations

from datetime import UTC, date, datetime, tzinfo
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import HTTPException, status

from app.core.config import Settings, get_settings
from app.schemas.availability import UserAvailabilityResponse, WeeklyAvailabilitySchema
from app.schemas.scheduling import (
    BookableSlotItem,
    BookableSlotsRequest,
    BookableSlotsResponse,
    GroupAvailabilityRequest,
    GroupAvailabilityResponse,
    RoundRobinAssignment,
    RoundRobinRequest,
    RoundRobinResponse,
    SchedulingSlot,
)
from app.services.availability_intersector import AvailabilityIntersector, filter_candidate_slots
from app.services.availability_models import (
    AvailabilityValidationError,
    BookableSlot,
    CandidateSlot,
    Participant,
    RoundRobinSlot,
    WeeklyAvailability,
    validate_weekly_availability,
)
from app.services.availability_store import AvailabilityStore, create_availability_store
from app.services.booking_slots import BookableSlotGenerator

logger = logging.getLogger(__name__)


class SchedulingService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        availability_store: AvailabilityStore | None = None,
        intersector: AvailabilityIntersector | None = None,
        booking_slot_generator: BookableSlotGenerator | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.availability_store = availability_store or create_availability_store(self.settings)
        self.timezone = _to_zoneinfo(self.settings.scheduling_timezone)
        self.intersector = intersector or AvailabilityIntersector(timezone=self.timezone)
        self.booking_slot_generator = booking_slot_generator or BookableSlotGenerator(timezone=self.timezone)

    def get_user_availability(self, email: str) -> UserAvailabilityResponse:
        record = self.availability_store.get_availability(_normalize_email(email))
        if not record:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Availability not found.",
            )
        return _map_availability_record(record)

    def set_user_availability(
        self,
        email: str,
        payload: WeeklyAvailabilitySchema,
    ) -> UserAvailabilityResponse:
        normalized_email = _normalize_email(email)
        if not normalized_email:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Email cannot be empty.",
            )

        try:
            availability = WeeklyAvailability.from_payload(payload.model_dump(mode="json"))
            validate_weekly_availability(availability)
        except AvailabilityValidationError as exc:
            logger.warning("Rejected availability email=%s reason=%s", normalized_email, exc)
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

        record = self.availability_store.upsert_availability(normalized_email, availability.to_dict())
        logger.info("Stored availability email=%s", normalized_email)
        return _map_availability_record(record)

    def delete_user_availability(self, email: str) -> None:
        normalized_email = _normalize_email(email)
        if not self.availability_store.delete_availability(normalized_email):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Availability not found.",
            )
        logger.info("Deleted availability email=%s", normalized_email)

    def calculate_group_availability(
        self,
        request: GroupAvailabilityRequest,
    ) -> GroupAvailabilityResponse:
        horizon_days = self._resolve_horizon(request.horizon_days)
        start_date = self._resolve_start_date(request.start_date)
        try:
            participants = self._resolve_participants(request)
            slots = self.intersector.compute_slots(participants, horizon_days, today=start_date)
            slots = filter_candidate_slots(
                slots,
                min_duration_minutes=request.min_duration_minutes,
                min_confidence=request.min_confidence,
                days=request.days,
                required_participants=[
                    _normalize_email(identifier) for identifier in request.required_participants
                ],
            )
        except AvailabilityValidationError as exc:
            logger.warning("Rejected group availability request reason=%s", exc)
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

        without_availability = [
            participant.identifier for participant in participants if participant.availability is None
        ]
        total_participants = len(participants) - len(without_availability)
        logger.info(
            "Computed group availability participants=%s without_availability=%s horizon_days=%s slots=%s",
            total_participants,
            len(without_availability),
            horizon_days,
            len(slots),
        )
        return GroupAvailabilityResponse(
            items=[_map_slot(slot) for slot in slots],
            total_participants=total_participants,
            participants_without_availability=without_availability,
            horizon_days=horizon_days,
            start_date=start_date,
            timezone=str(self.timezone),
        )

    def assign_round_robin(self, request: RoundRobinRequest) -> RoundRobinResponse:
        horizon_days = self._resolve_horizon(request.horizon_days)
        start_date = self._resolve_start_date(request.start_date)
        slot_minutes = request.slot_minutes or self.settings.round_robin_slot_minutes
        try:
            participants = self._resolve_participants(request)
            assignments = self.intersector.assign_round_robin(
                participants,
                horizon_days,
                today=start_date,
                slot_minutes=slot_minutes,
            )
        except AvailabilityValidationError as exc:
            logger.warning("Rejected round-robin request reason=%s", exc)
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

        assignment_counts = {
            participant.identifier: 0 for participant in participants if participant.availability is not None
        }
        for assignment in assignments:
            assignment_counts[assignment.assigned_participant] += 1
        without_availability = [
            participant.identifier for participant in participants if participant.availability is None
        ]
        logger.info(
            "Assigned round-robin slots participants=%s horizon_days=%s slot_minutes=%s slots=%s",
            len(assignment_counts),
            horizon_days,
            slot_minutes,
            len(assignments),
        )
        return RoundRobinResponse(
            items=[_map_round_robin_slot(assignment) for assignment in assignments],
            assignment_counts=assignment_counts,
            participants_without_availability=without_availability,
            horizon_days=horizon_days,
            start_date=start_date,
            slot_minutes=slot_minutes,
            timezone=str(self.timezone),
        )

    def generate_bookable_slots(self, request: BookableSlotsRequest) -> BookableSlotsResponse:
        horizon_days = self._resolve_horizon(request.horizon_days)
        start_date = self._resolve_start_date(request.start_date)
        try:
            availability = self._resolve_booking_availability(request)
            slots = self.booking_slot_generator.generate(
                availability,
                horizon_days,
                meeting_minutes=request.meeting_minutes,
                buffer_before_minutes=request.buffer_before_minutes,
                buffer_after_minutes=request.buffer_after_minutes,
                min_notice_minutes=self.settings.booking_min_notice_minutes,
                busy_intervals=[(interval.starts_at, interval.ends_at) for interval in request.busy],
                today=start_date,
            )
        except AvailabilityValidationError as exc:
            logger.warning("Rejected bookable slots request reason=%s", exc)
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

        logger.info(
            "Generated bookable slots horizon_days=%s meeting_minutes=%s busy=%s slots=%s",
            horizon_days,
            request.meeting_minutes,
            len(request.busy),
            len(slots),
        )
        return BookableSlotsResponse(
            items=[_map_bookable_slot(slot) for slot in slots],
            horizon_days=horizon_days,
            start_date=start_date,
            meeting_minutes=request.meeting_minutes,
            timezone=str(self.timezone),
        )

    def _resolve_horizon(self, requested_horizon_days: int | None) -> int:
        horizon_days = requested_horizon_days
        if horizon_days is None:
            horizon_days = self.settings.group_availability_horizon_days
        max_horizon_days = self.settings.group_availability_max_horizon_days
        if horizon_days < 0 or horizon_days > max_horizon_days:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Horizon must be between 0 and {max_horizon_days} days.",
            )
        return horizon_days

    def _resolve_start_date(self, requested_start_date: date | None) -> date:
        return requested_start_date or datetime.now(self.timezone).date()

    def _resolve_booking_availability(self, request: BookableSlotsRequest) -> WeeklyAvailability:
        if request.availability is not None:
            return WeeklyAvailability.from_payload(request.availability.model_dump(mode="json"))

        email = _normalize_email(request.email or "")
        if not email:
            raise AvailabilityValidationError("Provide an email or an inline availability.")
        record = self.availability_store.get_availability(email)
        if not record:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Availability not found.",
            )
        return WeeklyAvailability.from_payload(record.get("availability") or {})

    def _resolve_participants(
        self,
        request: GroupAvailabilityRequest | RoundRobinRequest,
    ) -> list[Participant]:
        participants: dict[str, Participant] = {}

        requested_emails: list[str] = []
        for email in request.participant_emails:
            normalized_email = _normalize_email(email)
            if not normalized_email:
                raise AvailabilityValidationError("Participant email cannot be empty.")
            if normalized_email not in requested_emails:
                requested_emails.append(normalized_email)

        records = self.availability_store.get_availability_for_emails(requested_emails)
        for email in requested_emails:
            record = records.get(email)
            availability = None
            if record:
                availability = WeeklyAvailability.from_payload(record.get("availability") or {})
            participants[email] = Participant(identifier=email, availability=availability)

        inline_identifiers: set[str] = set()
        for inline_participant in request.participants:
            identifier = _normalize_email(inline_participant.identifier)
            if not identifier:
                raise AvailabilityValidationError("Participant identifier cannot be empty.")
            if identifier in inline_identifiers:
                raise AvailabilityValidationError(f"Duplicate participant {identifier!r}.")
            inline_identifiers.add(identifier)

            availability = None
            if inline_participant.availability is not None:
                availability = WeeklyAvailability.from_payload(
                    inline_participant.availability.model_dump(mode="json"),
                )
            participants[identifier] = Participant(identifier=identifier, availability=availability)

        return list(participants.values())


def _map_slot(slot: CandidateSlot) -> SchedulingSlot:
    return SchedulingSlot(
        starts_at=slot.start,
        ends_at=slot.end,
        day=slot.day,
        available_participants=list(slot.available_participants),
        total_participants=slot.total_participants,
        confidence=slot.confidence,
        duration_minutes=slot.duration_minutes,
    )


def _map_round_robin_slot(slot: RoundRobinSlot) -> RoundRobinAssignment:
    return RoundRobinAssignment(
        starts_at=slot.start,
        ends_at=slot.end,
        day=slot.day,
        assigned_participant=slot.assigned_participant,
        available_participants=list(slot.available_participants),
    )


def _map_bookable_slot(slot: BookableSlot) -> BookableSlotItem:
    return BookableSlotItem(
        starts_at=slot.start,
        ends_at=slot.end,
        day=slot.day,
        duration_minutes=slot.duration_minutes,
    )


def _map_availability_record(record: dict) -> UserAvailabilityResponse:
    return UserAvailabilityResponse(
        email=str(record.get("email", "")),
        availability=WeeklyAvailabilitySchema.model_validate(record.get("availability") or {}),
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


def _to_zoneinfo(timezone_name: str) -> tzinfo:
    cleaned = timezone_name.strip()
    if not cleaned or cleaned.upper() in {"UTC", "GMT"}:
        return UTC
    try:
        return ZoneInfo(cleaned)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown scheduling timezone=%s, falling back to UTC", cleaned)
        return UTC


def _normalize_email(email: str) -> str:
    return email.strip().lower()
