from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str
    environment: str
    availability_store: str
    timestamp: datetime
