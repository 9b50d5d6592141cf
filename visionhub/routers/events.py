"""
Event log viewer.
GET /events — lists the audit trail with optional device_id and event_type filters.
Live events are pushed over the /ws WebSocket as they happen.
"""

from fastapi import APIRouter, Depends
from visionhub.dependencies import get_store
from visionhub.schemas.event import EventOut
from typing import Optional

router = APIRouter()


@router.get("/events", response_model=list[EventOut], summary="List events")
def list_events(limit: int = 50, device_id: Optional[str] = None, event_type: Optional[str] = None,
                store=Depends(get_store)):
    """Returns the event log, newest first."""
    return store.list_events(limit=limit, device_id=device_id, event_type=event_type)
