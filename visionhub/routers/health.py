"""
System health check endpoint.
Returns status of backend + DB + storage, the live status of every monitored
device and the set of active recordings.
"""

from datetime import datetime
from fastapi import APIRouter, Depends
from visionhub.dependencies import get_hub, get_monitor, get_storage, get_store, get_supervisor

router = APIRouter()


@router.get("/health", summary="System health check")
async def health_check(store=Depends(get_store), storage=Depends(get_storage),
                       monitor=Depends(get_monitor), supervisor=Depends(get_supervisor),
                       hub=Depends(get_hub)):
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "storage": {},
        "devices": {},
        "recordings": [],
        "observers": hub.client_count,
    }

    try:
        store.ping()
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    try:
        result["storage"] = {"network": storage.is_network_storage, **storage.usage()}
    except OSError as e:
        result["storage"] = {"path": storage.current_storage_root(), "error": str(e)}
        result["status"] = "degraded"

    for entry in await monitor.entries():
        result["devices"][entry.device_id] = entry.status

    result["recordings"] = [
        {"device_id": s.device_id, "recording_id": s.recording_id, "started_at": s.started_at.isoformat()}
        for s in await supervisor.live_sessions()
    ]
    return result
