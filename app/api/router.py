from fastapi import APIRouter

from app.api.routes.availability import router as availability_router
from app.api.routes.health import router as health_router
from app.api.routes.scheduling import router as scheduling_router

api_router = APIRouter()
v1_router = APIRouter(prefix="/v1")

api_router.include_router(health_router)
api_router.include_router(availability_router)
api_router.include_router(scheduling_router)

v1_router.include_router(availability_router)
v1_router.include_router(scheduling_router)
api_router.include_router(v1_router)
