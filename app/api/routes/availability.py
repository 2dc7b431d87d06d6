from fastapi import APIRouter, Response, status

from app.schemas.availability import UserAvailabilityResponse, WeeklyAvailabilitySchema
from app.services.scheduling_service import SchedulingService

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/{email}", response_model=UserAvailabilityResponse)
def get_user_availability(email: str) -> UserAvailabilityResponse:
    service = SchedulingService()
    return service.get_user_availability(email)


@router.put("/{email}", response_model=UserAvailabilityResponse)
def set_user_availability(
    email: str,
    payload: WeeklyAvailabilitySchema,
) -> UserAvailabilityResponse:
    service = SchedulingService()
    return service.set_user_availability(email, payload)


@router.delete("/{email}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user_availability(email: str) -> Response:
    service = SchedulingService()
    service.delete_user_availability(email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
