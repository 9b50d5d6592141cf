from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class DeviceCreate(BaseModel):
    name: str = Field(min_length=1)
    ip_address: str = Field(min_length=1)
    stream_url: str = Field(min_length=1)
    onvif_port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    motion_detection: bool = False
    motion_sensitivity: int = Field(default=50, ge=0, le=100)
    location: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None


class DeviceOut(BaseModel):
    """Detached snapshot of a device row. Carries credentials for the capture
    supervisor but never serializes the password."""
    id: str
    name: str
    ip_address: str
    stream_url: str
    onvif_port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, exclude=True)
    status: str = "unknown"
    motion_detection: bool = False
    motion_sensitivity: int = 50
    location: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    is_recording: bool = False
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class RecordCommand(BaseModel):
    record: bool
