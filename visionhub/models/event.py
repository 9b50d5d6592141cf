# visionhub/models/event.py
"""
Events table — immutable audit trail of every notable transition
(device online/offline, recording started/stopped/failed, ...).
"""

from sqlalchemy import Column, DateTime, String, Text
from visionhub.database import Base

# Event types
DEVICE_ONLINE = "device_online"
DEVICE_OFFLINE = "device_offline"
DEVICE_ADDED = "device_added"
DEVICE_REMOVED = "device_removed"
RECORDING_STARTED = "recording_started"
RECORDING_STOPPED = "recording_stopped"
RECORDING_ERROR = "recording_error"
STORAGE_FALLBACK = "storage_fallback"

# Severities
INFO = "info"
WARNING = "warning"
ERROR = "error"


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    event_type = Column(String(50), nullable=False, index=True)
    message = Column(Text, nullable=False)
    device_id = Column(String(36), index=True)
    severity = Column(String(10), default=INFO, nullable=False)

    def __repr__(self):
        return f"<Event {self.id} type={self.event_type} severity={self.severity}>"
