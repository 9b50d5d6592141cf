from fastapi import APIRouter, Depends
from visionhub.dependencies import get_store
from visionhub.schemas.recording import RecordingOut
from typing import Optional

router = APIRouter()


@router.get("/recordings", response_model=list[RecordingOut], summary="List recordings, newest first")
def list_recordings(device_id: Optional[str] = None, limit: int = 100, store=Depends(get_store)):
    return store.list_recordings(device_id=device_id, limit=limit)
