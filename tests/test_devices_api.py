"""HTTP tests for the device routes, with the core services swapped for fakes."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import MagicMock, AsyncMock
from visionhub.database import create_tables
from visionhub.routers import devices
from visionhub.services.capture_supervisor import (
    AlreadyRecording,
    NotRecording,
    RecordingHandle,
    SpawnFailed,
)
from visionhub.services.record_store import RecordStore

NEW_CAMERA = {"name": "Front Door", "ip_address": "192.168.1.10",
              "stream_url": "rtsp://192.168.1.10/stream1", "password": "s3cret"}


@pytest.fixture
def app():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_tables(bind=engine)

    app = FastAPI()
    app.include_router(devices.router, prefix="/api/v1")
    app.state.store = RecordStore(sessionmaker(bind=engine))
    app.state.hub = MagicMock(broadcast_event=AsyncMock(), broadcast_status=AsyncMock())
    app.state.monitor = MagicMock(register=AsyncMock(), deregister=AsyncMock())
    app.state.supervisor = MagicMock(start_recording=AsyncMock(), stop_recording=AsyncMock())
    app.state.supervisor.is_recording.return_value = False
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def create_camera(client):
    response = client.post("/api/v1/devices", json=NEW_CAMERA)
    assert response.status_code == 201
    return response.json()


class TestDeviceCrud:
    def test_create_registers_with_monitor_and_hides_password(self, app, client):
        body = create_camera(client)

        assert body["status"] == "unknown"
        assert body["is_recording"] is False
        assert "password" not in body
        app.state.monitor.register.assert_awaited_once()
        event = app.state.hub.broadcast_event.call_args.args[0]
        assert event.event_type == "device_added"

    def test_invalid_sensitivity_is_rejected(self, client):
        response = client.post("/api/v1/devices", json={**NEW_CAMERA, "motion_sensitivity": 150})
        assert response.status_code == 422

    def test_get_and_list(self, client):
        device = create_camera(client)

        assert client.get(f"/api/v1/devices/{device['id']}").json()["name"] == "Front Door"
        assert [d["id"] for d in client.get("/api/v1/devices").json()] == [device["id"]]
        assert client.get("/api/v1/devices/missing").status_code == 404

    def test_delete_stops_recording_and_deregisters(self, app, client):
        device = create_camera(client)
        app.state.supervisor.is_recording.return_value = True
        app.state.supervisor.stop_recording.side_effect = NotRecording(device["id"])

        response = client.delete(f"/api/v1/devices/{device['id']}")

        assert response.status_code == 200
        app.state.supervisor.stop_recording.assert_awaited_once_with(device["id"])
        app.state.monitor.deregister.assert_awaited_once_with(device["id"])
        assert client.get(f"/api/v1/devices/{device['id']}").status_code == 404
        event = app.state.hub.broadcast_event.call_args.args[0]
        assert event.event_type == "device_removed"


class TestRecordCommand:
    def test_start_returns_recording_handle(self, app, client):
        device = create_camera(client)
        app.state.supervisor.start_recording.return_value = RecordingHandle("rec-1", "/r/a.mp4", "/r/a_thumb.jpg")

        response = client.put(f"/api/v1/devices/{device['id']}/record", json={"record": True})

        assert response.status_code == 200
        assert response.json() == {"success": True, "recording": True,
                                   "recording_id": "rec-1", "file_path": "/r/a.mp4"}
        started_with = app.state.supervisor.start_recording.call_args.args[0]
        assert started_with.password == "s3cret"

    def test_start_conflict_and_spawn_failure(self, app, client):
        device = create_camera(client)
        url = f"/api/v1/devices/{device['id']}/record"

        app.state.supervisor.start_recording.side_effect = AlreadyRecording(device["id"])
        assert client.put(url, json={"record": True}).status_code == 409

        app.state.supervisor.start_recording.side_effect = SpawnFailed(device["id"], "ffmpeg not found")
        response = client.put(url, json={"record": True})
        assert response.status_code == 502
        assert "ffmpeg not found" in response.json()["detail"]

    def test_stop(self, app, client):
        device = create_camera(client)
        url = f"/api/v1/devices/{device['id']}/record"

        app.state.supervisor.stop_recording.return_value = True
        assert client.put(url, json={"record": False}).json() == {
            "success": True, "recording": False, "terminated": True,
        }

        app.state.supervisor.stop_recording.side_effect = NotRecording(device["id"])
        assert client.put(url, json={"record": False}).status_code == 409

    def test_unknown_device(self, client):
        assert client.put("/api/v1/devices/missing/record", json={"record": True}).status_code == 404
