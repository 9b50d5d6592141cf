# visionhub/services/capture_supervisor.py
"""
Capture supervisor — runs at most one ffmpeg capture process per device and
keeps the matching Recording row in step with it.

Lifecycle of one recording:
  start_recording  reserve the device slot → spawn ffmpeg and its exit watcher →
                   insert Recording row, set the device's recording flag →
                   recording_started event → schedule the one-shot thumbnail
  stop_recording   SIGTERM → wait for exit (SIGKILL after the grace period) → finalize
  process exit     finalize (cancelling a pending thumbnail); a non-zero exit other
                   than the signal exit of a requested stop also emits a
                   recording_error event
  startup          recover_stale_recordings closes rows and flags left live by a crash

Finalization is guarded by removing the session from the live registry, so it
runs exactly once per recording no matter whether stop_recording or the exit
watcher gets there first.
"""

import asyncio
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4

from visionhub.config import settings
from visionhub.models.event import ERROR, INFO, RECORDING_ERROR, RECORDING_STARTED, RECORDING_STOPPED
from visionhub.schemas.recording import RecordingOut
from visionhub.services.capture_command import (
    build_input_url,
    build_record_command,
    build_thumbnail_command,
    recording_paths,
)
from visionhub.services.event_service import record_event
from visionhub.services.process_launcher import Exited, Failed, ProcessLauncher, Spawned
from visionhub.services.registry import Registry
from visionhub.utils.logger import get_logger

logger = get_logger(__name__)


# ── Errors ───────────────────────────────────────────────────────────────────
class CaptureError(Exception):
    def __init__(self, device_id: str, message: str):
        super().__init__(message)
        self.device_id = device_id


class AlreadyRecording(CaptureError):
    def __init__(self, device_id: str):
        super().__init__(device_id, f"Recording already active for device {device_id}")


class NotRecording(CaptureError):
    def __init__(self, device_id: str):
        super().__init__(device_id, f"No active recording for device {device_id}")


class SpawnFailed(CaptureError):
    def __init__(self, device_id: str, reason: str):
        super().__init__(device_id, f"Could not start capture for device {device_id}: {reason}")
        self.reason = reason


class ProcessError(CaptureError):
    def __init__(self, device_id: str, reason: str):
        super().__init__(device_id, f"Capture process for device {device_id} failed: {reason}")
        self.reason = reason


# ffmpeg exits with 255 when it handles SIGTERM; a negative code means killed by a signal
FFMPEG_SIGNAL_EXIT = 255


def _stopped_by_signal(outcome: Exited) -> bool:
    return outcome.code == FFMPEG_SIGNAL_EXIT or outcome.code < 0


def _file_end_state(file_path: str, started_at: datetime) -> tuple[datetime, int]:
    """(last write time as naive UTC, size) of a recording file; (started_at, 0) if it is gone."""
    try:
        stat = os.stat(file_path)
    except OSError:
        return started_at, 0
    modified = datetime.utcfromtimestamp(stat.st_mtime)
    return max(modified, started_at), stat.st_size


# ── Session bookkeeping ──────────────────────────────────────────────────────
@dataclass
class LiveSession:
    recording_id: str
    device_id: str
    device_name: str
    file_path: str
    thumbnail_path: str
    input_url: str
    started_at: datetime
    spawned: Optional[Spawned] = None
    stop_requested: bool = False
    thumbnail_task: Optional[asyncio.Task] = None
    launched: asyncio.Event = field(default_factory=asyncio.Event)
    exited: asyncio.Event = field(default_factory=asyncio.Event)


@dataclass(frozen=True)
class RecordingHandle:
    recording_id: str
    file_path: str
    thumbnail_path: str


class CaptureSupervisor:
    def __init__(self, store, hub, storage,
                 launcher: Optional[ProcessLauncher] = None,
                 registry: Optional[Registry] = None,
                 ffmpeg: str = settings.FFMPEG_PATH,
                 thumbnail_delay: float = settings.THUMBNAIL_DELAY_SECONDS,
                 thumbnail_timeout: float = settings.THUMBNAIL_TIMEOUT_SECONDS,
                 stop_timeout: float = settings.STOP_TIMEOUT_SECONDS,
                 on_recording_change=None,
                 now=datetime.utcnow):
        self._store = store
        self._hub = hub
        self._storage = storage
        self._launcher = launcher or ProcessLauncher()
        self._live = registry if registry is not None else Registry()
        self._ffmpeg = ffmpeg
        self._thumbnail_delay = thumbnail_delay
        self._thumbnail_timeout = thumbnail_timeout
        self._stop_timeout = stop_timeout
        self._on_recording_change = on_recording_change
        self._now = now
        self._watchers = set()
        self._thumbnails = set()

    # ── Queries ───────────────────────────────────────────────────────────
    def is_recording(self, device_id: str) -> bool:
        return device_id in self._live

    async def live_session(self, device_id: str) -> Optional[LiveSession]:
        return await self._live.get(device_id)

    async def live_sessions(self) -> list[LiveSession]:
        snapshot = await self._live.snapshot()
        return list(snapshot.values())

    # ── Start ─────────────────────────────────────────────────────────────
    async def start_recording(self, device) -> RecordingHandle:
        """
        Launch capture for a device. Raises AlreadyRecording if a session is
        live for it, SpawnFailed if ffmpeg could not be started (nothing is
        persisted in that case).
        """
        started_at = self._now()
        device_dir, file_path, thumbnail_path = recording_paths(
            self._storage.current_storage_root(), device.id, device.name, started_at,
        )
        session = LiveSession(
            recording_id=str(uuid4()),
            device_id=device.id,
            device_name=device.name,
            file_path=file_path,
            thumbnail_path=thumbnail_path,
            input_url=build_input_url(device.stream_url, device.username, device.password),
            started_at=started_at,
        )
        if not await self._live.put_if_absent(device.id, session):
            logger.info(f"Recording already active for device {device.name}")
            raise AlreadyRecording(device.id)

        try:
            try:
                os.makedirs(device_dir, exist_ok=True)
            except OSError as e:
                await self._live.pop_if(device.id, session)
                raise SpawnFailed(device.id, f"cannot create {device_dir}: {e}") from e

            argv = build_record_command(
                self._ffmpeg, session.input_url, file_path, device.name,
                motion_detection=bool(device.motion_detection),
                motion_sensitivity=device.motion_sensitivity or 0,
            )
            outcome = await self._launcher.spawn(argv, label=device.name)
            if isinstance(outcome, Failed):
                await self._live.pop_if(device.id, session)
                logger.error(f"❌ Failed to start recording for {device.name}: {outcome.reason}")
                raise SpawnFailed(device.id, outcome.reason)

            session.spawned = outcome
            self._track(self._watchers, self._watch(session), f"capture-{device.id}")
            logger.info(f"🔴 Recording started for {device.name} → {file_path}")

            self._persist("recording row", self._store.insert_recording, RecordingOut(
                id=session.recording_id,
                device_id=device.id,
                device_name=device.name,
                start_time=started_at,
                file_path=file_path,
                thumbnail_path=thumbnail_path,
                trigger_type="manual",
            ))
            self._persist("recording flag", self._store.set_recording_flag, device.id, True, started_at)
            await self._recording_changed(device.id, True)
            await record_event(self._store, self._hub, RECORDING_STARTED,
                               f"Recording started on device {device.name}", device.id, INFO)
            await self._hub.broadcast_status(device.id, "recording", True)

            session.thumbnail_task = self._track(
                self._thumbnails, self._capture_thumbnail(session), f"thumbnail-{device.id}",
            )
        finally:
            session.launched.set()

        return RecordingHandle(session.recording_id, file_path, thumbnail_path)

    # ── Stop ──────────────────────────────────────────────────────────────
    async def stop_recording(self, device_id: str) -> bool:
        """
        Terminate the capture process and finalize its recording.
        Returns whether the termination signal was delivered; False means the
        process had already exited on its own. Raises NotRecording.
        """
        session = await self._live.get(device_id)
        if session is None:
            logger.info(f"No active recording for device {device_id}")
            raise NotRecording(device_id)

        await session.launched.wait()
        if session.spawned is None:
            raise NotRecording(device_id)

        session.stop_requested = True
        delivered = self._launcher.terminate(session.spawned)
        logger.info(f"⏹  Stopping recording for {session.device_name}")

        if not await self._wait_exit(session):
            logger.warning(f"⚠️  {session.device_name} capture ignored SIGTERM — killing")
            self._launcher.kill(session.spawned)
            if not await self._wait_exit(session):
                logger.error(f"Capture process {session.spawned.pid} for {session.device_name} did not exit")

        await self._finalize(session)
        return delivered

    async def stop_all(self):
        """Stop every live recording. Awaited at shutdown so no ffmpeg is orphaned."""
        snapshot = await self._live.snapshot()
        device_ids = list(snapshot)
        if device_ids:
            logger.info(f"🛑 Stopping all {len(device_ids)} active recordings")
            results = await asyncio.gather(
                *(self.stop_recording(device_id) for device_id in device_ids),
                return_exceptions=True,
            )
            for device_id, result in zip(device_ids, results):
                if isinstance(result, Exception) and not isinstance(result, NotRecording):
                    logger.error(f"Failed to stop recording for {device_id}: {result}")

        for task in list(self._thumbnails):
            task.cancel()
        if self._thumbnails:
            await asyncio.gather(*self._thumbnails, return_exceptions=True)

    # ── Restart recovery ──────────────────────────────────────────────────
    async def recover_stale_recordings(self) -> int:
        """
        Close out recording state left behind by an unclean shutdown. Run once
        at startup, before the sweep loop loads devices:
          - recording rows without an end_time and no live session are finalized
            from the file on disk (size, and duration up to its last write)
          - device recording flags without a live session are cleared
        Returns the number of recording rows closed.
        """
        try:
            unfinished = self._store.list_unfinished_recordings()
            devices = self._store.list_devices()
        except Exception as e:
            logger.error(f"Failed to read recording state for recovery: {e}", exc_info=True)
            return 0

        live = await self._live.snapshot()
        live_recordings = {session.recording_id for session in live.values()}

        closed = 0
        for recording in unfinished:
            if recording.id in live_recordings:
                continue
            end_time, file_size = _file_end_state(recording.file_path, recording.start_time)
            duration = max(0, int((end_time - recording.start_time).total_seconds()))
            self._persist("recovered recording", self._store.update_recording_on_finalize,
                          recording.id, end_time, duration, file_size)
            logger.warning(f"♻️  Closed unfinished recording for {recording.device_name}: "
                           f"{duration}s, {file_size} bytes")
            closed += 1

        now = self._now()
        for device in devices:
            if device.is_recording and device.id not in live:
                self._persist("recording flag", self._store.set_recording_flag, device.id, False, now)
                await self._recording_changed(device.id, False)
                logger.warning(f"♻️  Cleared stale recording flag on {device.name}")
        return closed

    # ── Process exit ──────────────────────────────────────────────────────
    async def handle_process_exit(self, session: LiveSession, outcome) -> bool:
        """
        Exit callback for a capture process. Finalizes the session if it is
        still live; returns False when it was already finalized.
        """
        if isinstance(outcome, Exited) and (
                outcome.ok or (session.stop_requested and _stopped_by_signal(outcome))):
            logger.info(f"Capture for {session.device_name} exited with code {outcome.code}")
            return await self._finalize(session)

        if isinstance(outcome, Failed):
            reason = outcome.reason
            if session.spawned is not None:
                self._launcher.kill(session.spawned)
        else:
            last_line = outcome.stderr_tail[-1] if outcome.stderr_tail else "no output"
            reason = f"exit code {outcome.code}: {last_line}"
        error = ProcessError(session.device_id, reason)

        if not await self._finalize(session):
            return False
        logger.error(f"❌ {error}")
        await record_event(self._store, self._hub, RECORDING_ERROR,
                           f"Recording error on device {session.device_name}: {reason}",
                           session.device_id, ERROR)
        return True

    async def _watch(self, session: LiveSession):
        outcome = await self._launcher.wait(session.spawned)
        session.exited.set()
        # the start sequence (row insert, started event) must land before finalization
        await session.launched.wait()
        try:
            await self.handle_process_exit(session, outcome)
        except Exception as e:
            logger.error(f"Exit handling failed for {session.device_name}: {e}", exc_info=True)

    async def _wait_exit(self, session: LiveSession) -> bool:
        try:
            await asyncio.wait_for(session.exited.wait(), timeout=self._stop_timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # ── Finalization ──────────────────────────────────────────────────────
    async def _finalize(self, session: LiveSession) -> bool:
        if not await self._live.pop_if(session.device_id, session):
            return False
        if session.thumbnail_task is not None:
            session.thumbnail_task.cancel()

        end_time = self._now()
        duration = max(0, int((end_time - session.started_at).total_seconds()))
        try:
            file_size = os.path.getsize(session.file_path)
        except OSError:
            file_size = 0

        self._persist("finalized recording", self._store.update_recording_on_finalize,
                      session.recording_id, end_time, duration, file_size)
        self._persist("recording flag", self._store.set_recording_flag,
                      session.device_id, False, end_time)
        await self._recording_changed(session.device_id, False)

        logger.info(f"💾 Recording finished for {session.device_name}: {duration}s, {file_size} bytes")
        await record_event(self._store, self._hub, RECORDING_STOPPED,
                           f"Recording stopped on device {session.device_name}",
                           session.device_id, INFO)
        await self._hub.broadcast_status(session.device_id, "active", False)
        return True

    # ── Thumbnail ─────────────────────────────────────────────────────────
    async def _capture_thumbnail(self, session: LiveSession):
        """Best effort: every failure is logged and swallowed here."""
        await asyncio.sleep(self._thumbnail_delay)
        label = f"{session.device_name} thumbnail"
        argv = build_thumbnail_command(self._ffmpeg, session.input_url, session.thumbnail_path)
        try:
            spawned = await self._launcher.spawn(argv, label=label)
            if isinstance(spawned, Failed):
                logger.warning(f"[THUMBNAIL] Could not start for {session.device_name}: {spawned.reason}")
                return
            try:
                result = await asyncio.wait_for(self._launcher.wait(spawned), timeout=self._thumbnail_timeout)
            except asyncio.TimeoutError:
                self._launcher.kill(spawned)
                logger.warning(f"[THUMBNAIL] Timed out for {session.device_name}")
                return
            except asyncio.CancelledError:
                self._launcher.kill(spawned)
                raise

            if isinstance(result, Exited) and result.ok:
                logger.info(f"🖼  Generated thumbnail for {session.device_name}")
            else:
                detail = result.reason if isinstance(result, Failed) else f"code {result.code}"
                logger.warning(f"[THUMBNAIL] Failed for {session.device_name}, {detail}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[THUMBNAIL] Error for {session.device_name}: {e}", exc_info=True)

    # ── Helpers ───────────────────────────────────────────────────────────
    def _track(self, tasks: set, coro, name: str):
        task = asyncio.create_task(coro, name=name)
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        return task

    def _persist(self, what: str, write, *args):
        try:
            write(*args)
        except Exception as e:
            logger.error(f"Failed to persist {what}: {e}", exc_info=True)

    async def _recording_changed(self, device_id: str, recording: bool):
        if self._on_recording_change is None:
            return
        try:
            await self._on_recording_change(device_id, recording)
        except Exception as e:
            logger.error(f"Recording-change hook failed for {device_id}: {e}", exc_info=True)
