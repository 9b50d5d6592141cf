# visionhub/models/recording.py
"""
Recordings table — one row per recording session.
Inserted when capture starts; end_time, duration and file_size are filled in
exactly once when the session is finalized. device_name is denormalized so the
row stays readable after the device is deleted.
"""

from sqlalchemy import BigInteger, Column, DateTime, Integer, String
from visionhub.database import Base


class Recording(Base):
    __tablename__ = "recordings"

    id = Column(String(36), primary_key=True)
    device_id = Column(String(36), nullable=False, index=True)
    device_name = Column(String(200), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime)                      # NULL while live
    duration = Column(Integer)                       # seconds
    file_path = Column(String(1000), nullable=False)
    thumbnail_path = Column(String(1000))
    trigger_type = Column(String(20), default="manual", nullable=False)  # manual | motion | scheduled
    file_size = Column(BigInteger)                   # bytes

    def __repr__(self):
        return f"<Recording {self.id} device={self.device_id} end={self.end_time}>"
