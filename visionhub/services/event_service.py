# visionhub/services/event_service.py
"""
Shared event creation service.
Used by the fleet monitor, the capture supervisor and the device routes.
Persists the event, logs it at its severity and broadcasts it to observers.
A failed write is logged and the broadcast still goes out.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from visionhub.models.event import INFO
from visionhub.schemas.event import EventOut
from visionhub.utils.logger import get_logger

logger = get_logger(__name__)

_LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


async def record_event(store, hub, event_type: str, message: str,
                       device_id: Optional[str] = None, severity: str = INFO) -> EventOut:
    event = EventOut(
        id=str(uuid4()),
        timestamp=datetime.utcnow(),
        event_type=event_type,
        message=message,
        device_id=device_id,
        severity=severity,
    )
    try:
        store.insert_event(event)
    except Exception as e:
        logger.error(f"Failed to persist {event_type} event: {e}", exc_info=True)

    logger.log(_LEVELS.get(severity, logging.INFO), f"[EVENT][{event_type.upper()}] {message}")
    await hub.broadcast_event(event)
    return event
