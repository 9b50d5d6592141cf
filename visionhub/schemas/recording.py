from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class RecordingOut(BaseModel):
    id: str
    device_id: str
    device_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    file_path: str
    thumbnail_path: Optional[str] = None
    trigger_type: str = "manual"
    file_size: Optional[int] = None

    class Config:
        from_attributes = True


class RecordingStarted(BaseModel):
    success: bool = True
    recording: bool = True
    recording_id: str
    file_path: str
