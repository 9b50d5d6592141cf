# visionhub/services/notification_hub.py
"""
Notification hub — pushes typed messages to every connected observer
(dashboard WebSocket clients).

Delivery is fire-and-forget: there is no persistence or replay, and an observer
whose send fails or times out is dropped from the set. Broadcasting never raises.

Message envelope: {"type": ..., "data": ..., "timestamp": ISO-8601}
"""

import asyncio
from datetime import datetime
from uuid import uuid4

from visionhub.config import settings
from visionhub.schemas.event import EventOut
from visionhub.utils.logger import get_logger

logger = get_logger(__name__)


class NotificationHub:
    def __init__(self, send_timeout: float = settings.NOTIFY_SEND_TIMEOUT_SECONDS):
        self._send_timeout = send_timeout
        self._clients = {}   # observer -> client id
        self._lock = asyncio.Lock()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, observer) -> str:
        """Register an observer (anything with an async send_json) and greet it."""
        client_id = uuid4().hex
        async with self._lock:
            self._clients[observer] = client_id
        logger.info(f"🔌 Observer connected: {client_id} ({self.client_count} total)")
        await self._send(observer, {"type": "connection", "status": "connected", "clientId": client_id})
        return client_id

    async def disconnect(self, observer):
        async with self._lock:
            client_id = self._clients.pop(observer, None)
        if client_id:
            logger.info(f"🔌 Observer disconnected: {client_id}")

    async def broadcast(self, message_type: str, data: dict):
        message = {
            "type": message_type,
            "data": data,
            "timestamp": datetime.utcnow().isoformat(),
        }
        async with self._lock:
            observers = list(self._clients)
        if not observers:
            return
        await asyncio.gather(*(self._send(observer, message) for observer in observers))

    async def broadcast_status(self, device_id: str, status: str, recording: bool):
        await self.broadcast("device_status", {
            "id": device_id,
            "status": status,
            "isRecording": recording,
            "updatedAt": datetime.utcnow().isoformat(),
        })

    async def broadcast_event(self, event: EventOut):
        await self.broadcast("event", event.model_dump(mode="json"))

    async def _send(self, observer, message: dict):
        try:
            await asyncio.wait_for(observer.send_json(message), timeout=self._send_timeout)
        except Exception as e:
            logger.debug(f"Dropping observer after failed send: {e!r}")
            await self.disconnect(observer)
