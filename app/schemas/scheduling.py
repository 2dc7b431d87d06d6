from datetime import date, datetime

from pydantic import BaseModel, Field

from app.schemas.availability import WeeklyAvailabilitySchema
from app.services.availability_models import Confidence, DayOfWeek


class GroupParticipant(BaseModel):
    identifier: str
    availability: WeeklyAvailabilitySchema | None = None


class GroupAvailabilityRequest(BaseModel):
    participant_emails: list[str] = Field(default_factory=list)
    participants: list[GroupParticipant] = Field(default_factory=list)
    horizon_days: int | None = None
    start_date: date | None = None
    min_duration_minutes: int = Field(default=0, ge=0)
    min_confidence: Confidence | None = None
    days: list[DayOfWeek] | None = None
    required_participants: list[str] = Field(default_factory=list)


class SchedulingSlot(BaseModel):
    starts_at: datetime
    ends_at: datetime
    day: DayOfWeek
    available_participants: list[str]
    total_participants: int
    confidence: Confidence
    duration_minutes: int


class GroupAvailabilityResponse(BaseModel):
    items: list[SchedulingSlot]
    total_participants: int
    participants_without_availability: list[str] = Field(default_factory=list)
    horizon_days: int
    start_date: date
    timezone: str


class RoundRobinRequest(BaseModel):
    participant_emails: list[str] = Field(default_factory=list)
    participants: list[GroupParticipant] = Field(default_factory=list)
    horizon_days: int | None = None
    start_date: date | None = None
    slot_minutes: int | None = Field(default=None, ge=1, le=1440)


class RoundRobinAssignment(BaseModel):
    starts_at: datetime
    ends_at: datetime
    day: DayOfWeek
    assigned_participant: str
    available_participants: list[str]


class RoundRobinResponse(BaseModel):
    items: list[RoundRobinAssignment]
    assignment_counts: dict[str, int] = Field(default_factory=dict)
    participants_without_availability: list[str] = Field(default_factory=list)
    horizon_days: int
    start_date: date
    slot_minutes: int
    timezone: str


class BusyInterval(BaseModel):
    starts_at: datetime
    ends_at: datetime


class BookableSlotsRequest(BaseModel):
    email: str | None = None
    availability: WeeklyAvailabilitySchema | None = None
    horizon_days: int | None = None
    start_date: date | None = None
    meeting_minutes: int = Field(default=30, ge=15, le=480)
    buffer_before_minutes: int = Field(default=0, ge=0)
    buffer_after_minutes: int = Field(default=0, ge=0)
    busy: list[BusyInterval] = Field(default_factory=list)


class BookableSlotItem(BaseModel):
    starts_at: datetime
    ends_at: datetime
    day: DayOfWeek
    duration_minutes: int


class BookableSlotsResponse(BaseModel):
    items: list[BookableSlotItem]
    horizon_days: int
    start_date: date
    meeting_minutes: int
    timezone: str
