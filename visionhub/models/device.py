# visionhub/models/device.py
"""
Devices table — every networked video source the system knows about.
status is written by the fleet monitor, is_recording by the capture supervisor.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from visionhub.database import Base


class Device(Base):
    __tablename__ = "devices"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False)
    ip_address = Column(String(100), nullable=False, index=True)
    stream_url = Column(String(500), nullable=False)
    onvif_port = Column(Integer)
    username = Column(String(100))
    password = Column(String(200))
    status = Column(String(20), default="unknown", nullable=False)  # unknown | active | offline
    motion_detection = Column(Boolean, default=False, nullable=False)
    motion_sensitivity = Column(Integer, default=50, nullable=False)  # 0–100
    location = Column(String(200))
    manufacturer = Column(String(100))
    model = Column(String(100))
    is_recording = Column(Boolean, default=False, nullable=False)
    last_updated = Column(DateTime)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Device {self.id} name={self.name} status={self.status} recording={self.is_recording}>"
