from fastapi import APIRouter

from app.schemas.scheduling import (
    BookableSlotsRequest,
    BookableSlotsResponse,
    GroupAvailabilityRequest,
    GroupAvailabilityResponse,
    RoundRobinRequest,
    RoundRobinResponse,
)
from app.services.scheduling_service import SchedulingService

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


@router.post("/group-availability", response_model=GroupAvailabilityResponse)
def calculate_group_availability(payload: GroupAvailabilityRequest) -> GroupAvailabilityResponse:
    service = SchedulingService()
    return service.calculate_group_availability(payload)


@router.post("/round-robin", response_model=RoundRobinResponse)
def assign_round_robin(payload: RoundRobinRequest) -> RoundRobinResponse:
    service = SchedulingService()
    return service.assign_round_robin(payload)


@router.post("/bookable-slots", response_model=BookableSlotsResponse)
def generate_bookable_slots(payload: BookableSlotsRequest) -> BookableSlotsResponse:
    service = SchedulingService()
    return service.generate_bookable_slots(payload)
