"""WebSocket endpoint — observers receive device status and event messages in real time."""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from visionhub.utils.logger import get_logger

router = APIRouter(tags=["live"])
logger = get_logger(__name__)


@router.websocket("/ws")
async def live_ws(websocket: WebSocket):
    await websocket.accept()
    hub = websocket.app.state.hub
    await hub.connect(websocket)
    try:
        while True:
            # Observers only listen; anything they send is logged and ignored
            message = await websocket.receive_text()
            logger.debug(f"Ignoring observer message: {message[:200]}")
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(websocket)
