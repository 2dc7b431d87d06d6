from datetime import datetime

from pydantic import BaseModel, Field


class TimeSlotSchema(BaseModel):
    start: str
    end: str


class DayAvailabilitySchema(BaseModel):
    enabled: bool = False
    time_slots: list[TimeSlotSchema] = Field(default_factory=list)


class WeeklyAvailabilitySchema(BaseModel):
    monday: DayAvailabilitySchema = Field(default_factory=DayAvailabilitySchema)
    tuesday: DayAvailabilitySchema = Field(default_factory=DayAvailabilitySchema)
    wednesday: DayAvailabilitySchema = Field(default_factory=DayAvailabilitySchema)
    thursday: DayAvailabilitySchema = Field(default_factory=DayAvailabilitySchema)
    friday: DayAvailabilitySchema = Field(default_factory=DayAvailabilitySchema)
    saturday: DayAvailabilitySchema = Field(default_factory=DayAvailabilitySchema)
    sunday: DayAvailabilitySchema = Field(default_factory=DayAvailabilitySchema)


class UserAvailabilityResponse(BaseModel):
    email: str
    availability: WeeklyAvailabilitySchema
    created_at: datetime
    updated_at: datetime
