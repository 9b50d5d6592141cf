from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class EventOut(BaseModel):
    id: str
    timestamp: datetime
    event_type: str
    message: str
    device_id: Optional[str] = None
    severity: str = "info"

    class Config:
        from_attributes = True
