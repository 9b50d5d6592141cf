# visionhub/services/record_store.py
"""
Record store — the persistence boundary used by the fleet monitor and the
capture supervisor.

Every call opens a fresh DB session, commits immediately and returns detached
Pydantic snapshots, so callers never hold an ORM object across an await.
Errors propagate; callers decide whether a failed write is fatal.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import text

from visionhub.database import SessionLocal
from visionhub.models.device import Device
from visionhub.models.event import Event
from visionhub.models.recording import Recording
from visionhub.schemas.device import DeviceCreate, DeviceOut
from visionhub.schemas.event import EventOut
from visionhub.schemas.recording import RecordingOut


class RecordStore:
    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    # ── Devices ───────────────────────────────────────────────────────────
    def get_device(self, device_id: str) -> Optional[DeviceOut]:
        db = self._session_factory()
        try:
            device = db.get(Device, device_id)
            return DeviceOut.model_validate(device) if device else None
        finally:
            db.close()

    def list_devices(self) -> list[DeviceOut]:
        db = self._session_factory()
        try:
            rows = db.query(Device).order_by(Device.created_at).all()
            return [DeviceOut.model_validate(row) for row in rows]
        finally:
            db.close()

    def add_device(self, payload: DeviceCreate) -> DeviceOut:
        now = datetime.utcnow()
        db = self._session_factory()
        try:
            device = Device(
                id=str(uuid4()),
                status="unknown",
                is_recording=False,
                last_updated=now,
                created_at=now,
                **payload.model_dump(),
            )
            db.add(device)
            db.commit()
            return DeviceOut.model_validate(device)
        finally:
            db.close()

    def delete_device(self, device_id: str) -> bool:
        db = self._session_factory()
        try:
            deleted = db.query(Device).filter(Device.id == device_id).delete()
            db.commit()
            return deleted > 0
        finally:
            db.close()

    def update_device_status(self, device_id: str, status: str, timestamp: datetime):
        self._update_device(device_id, status=status, last_updated=timestamp)

    def set_recording_flag(self, device_id: str, recording: bool, timestamp: datetime):
        self._update_device(device_id, is_recording=recording, last_updated=timestamp)

    def _update_device(self, device_id: str, **values):
        db = self._session_factory()
        try:
            db.query(Device).filter(Device.id == device_id).update(values)
            db.commit()
        finally:
            db.close()

    # ── Recordings ────────────────────────────────────────────────────────
    def insert_recording(self, recording: RecordingOut):
        db = self._session_factory()
        try:
            db.add(Recording(**recording.model_dump()))
            db.commit()
        finally:
            db.close()

    def update_recording_on_finalize(self, recording_id: str, end_time: datetime,
                                     duration: int, file_size: int):
        db = self._session_factory()
        try:
            db.query(Recording).filter(Recording.id == recording_id).update({
                "end_time": end_time,
                "duration": duration,
                "file_size": file_size,
            })
            db.commit()
        finally:
            db.close()

    def list_unfinished_recordings(self) -> list[RecordingOut]:
        """Rows still marked live (no end_time), oldest first."""
        db = self._session_factory()
        try:
            rows = (db.query(Recording)
                    .filter(Recording.end_time.is_(None))
                    .order_by(Recording.start_time)
                    .all())
            return [RecordingOut.model_validate(row) for row in rows]
        finally:
            db.close()

    def list_recordings(self, device_id: Optional[str] = None, limit: int = 100) -> list[RecordingOut]:
        db = self._session_factory()
        try:
            q = db.query(Recording)
            if device_id:
                q = q.filter(Recording.device_id == device_id)
            rows = q.order_by(Recording.start_time.desc()).limit(limit).all()
            return [RecordingOut.model_validate(row) for row in rows]
        finally:
            db.close()

    # ── Events ────────────────────────────────────────────────────────────
    def insert_event(self, event: EventOut):
        db = self._session_factory()
        try:
            db.add(Event(**event.model_dump()))
            db.commit()
        finally:
            db.close()

    def list_events(self, limit: int = 50, device_id: Optional[str] = None,
                    event_type: Optional[str] = None) -> list[EventOut]:
        db = self._session_factory()
        try:
            q = db.query(Event)
            if device_id:
                q = q.filter(Event.device_id == device_id)
            if event_type:
                q = q.filter(Event.event_type == event_type)
            rows = q.order_by(Event.timestamp.desc()).limit(limit).all()
            return [EventOut.model_validate(row) for row in rows]
        finally:
            db.close()

    # ── Health ────────────────────────────────────────────────────────────
    def ping(self):
        db = self._session_factory()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
