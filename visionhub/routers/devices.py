"""
Device routes — the thin HTTP layer over the fleet monitor and capture supervisor.
Creating a device starts monitoring it; deleting one force-stops its recording
and stops monitoring before the row is removed.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from visionhub.dependencies import get_hub, get_monitor, get_store, get_supervisor
from visionhub.models.event import DEVICE_ADDED, DEVICE_REMOVED
from visionhub.schemas.device import DeviceCreate, DeviceOut, RecordCommand
from visionhub.schemas.recording import RecordingStarted
from visionhub.services.capture_supervisor import AlreadyRecording, NotRecording, SpawnFailed
from visionhub.services.event_service import record_event

router = APIRouter()


def _get_or_404(store, device_id: str) -> DeviceOut:
    device = store.get_device(device_id)
    if device is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    return device


@router.get("/devices", response_model=list[DeviceOut], summary="List all devices")
def list_devices(store=Depends(get_store)):
    return store.list_devices()


@router.post("/devices", response_model=DeviceOut, status_code=status.HTTP_201_CREATED,
             summary="Add a device and start monitoring it")
async def add_device(payload: DeviceCreate, store=Depends(get_store),
                     monitor=Depends(get_monitor), hub=Depends(get_hub)):
    device = store.add_device(payload)
    await monitor.register(device)
    await record_event(store, hub, DEVICE_ADDED, f'Device "{device.name}" added to system', device.id)
    return device


@router.get("/devices/{device_id}", response_model=DeviceOut, summary="Get one device")
def get_device(device_id: str, store=Depends(get_store)):
    return _get_or_404(store, device_id)


@router.delete("/devices/{device_id}", summary="Remove a device")
async def remove_device(device_id: str, store=Depends(get_store), hub=Depends(get_hub),
                        monitor=Depends(get_monitor), supervisor=Depends(get_supervisor)):
    device = _get_or_404(store, device_id)
    if supervisor.is_recording(device_id):
        try:
            await supervisor.stop_recording(device_id)
        except NotRecording:
            pass  # finished on its own in the meantime
    await monitor.deregister(device_id)
    store.delete_device(device_id)
    await record_event(store, hub, DEVICE_REMOVED, f'Device "{device.name}" removed from system', device_id)
    return {"success": True}


@router.put("/devices/{device_id}/record", summary="Start or stop recording")
async def set_recording(device_id: str, command: RecordCommand, store=Depends(get_store),
                        supervisor=Depends(get_supervisor)):
    device = _get_or_404(store, device_id)
    if command.record:
        try:
            handle = await supervisor.start_recording(device)
        except AlreadyRecording as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        except SpawnFailed as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
        return RecordingStarted(recording_id=handle.recording_id, file_path=handle.file_path)

    try:
        delivered = await supervisor.stop_recording(device_id)
    except NotRecording as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return {"success": True, "recording": False, "terminated": delivered}
