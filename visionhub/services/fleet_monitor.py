# visionhub/services/fleet_monitor.py
"""
Fleet monitor — tracks liveness of every registered device.

A sweep probes all tracked devices concurrently (bounded by a semaphore), then
applies status transitions one device at a time under the registry lock:

  unknown → active | offline,   active ⇄ offline

A successful probe refreshes last_seen and makes the device active. A failed
probe only takes a device offline once it has been unseen for longer than the
offline threshold, so a single dropped ping does not flap the status.

Transitions are edge-triggered: each one is persisted, emitted as an Event and
broadcast exactly once; sweeps that leave a status unchanged stay silent.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from visionhub.config import settings
from visionhub.models.event import DEVICE_OFFLINE, DEVICE_ONLINE, INFO, WARNING
from visionhub.services.event_service import record_event
from visionhub.services.registry import Registry
from visionhub.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_UNKNOWN = "unknown"
STATUS_ACTIVE = "active"
STATUS_OFFLINE = "offline"

EVENT_TRANSITIONS = {
    (STATUS_UNKNOWN, STATUS_ACTIVE),
    (STATUS_UNKNOWN, STATUS_OFFLINE),
    (STATUS_ACTIVE, STATUS_OFFLINE),
    (STATUS_OFFLINE, STATUS_ACTIVE),
}


@dataclass
class MonitorEntry:
    device_id: str
    name: str
    ip_address: str
    stream_url: Optional[str]
    is_recording: bool
    last_seen: float
    status: str = STATUS_UNKNOWN


@dataclass(frozen=True)
class StatusTransition:
    device_id: str
    device_name: str
    previous: str
    status: str
    is_recording: bool


class FleetMonitor:
    def __init__(self, store, hub, prober,
                 registry: Optional[Registry] = None,
                 offline_threshold: float = settings.OFFLINE_THRESHOLD_SECONDS,
                 max_concurrent_probes: int = settings.MAX_CONCURRENT_PROBES,
                 clock=time.monotonic, now=datetime.utcnow):
        self._store = store
        self._hub = hub
        self._prober = prober
        self._entries = registry if registry is not None else Registry()
        self._offline_threshold = offline_threshold
        self._probe_slots = asyncio.Semaphore(max_concurrent_probes)
        self._clock = clock
        self._now = now

    # ── Registration ──────────────────────────────────────────────────────
    async def register(self, device):
        """Start tracking a device, or refresh cached fields without touching its status."""
        async with self._entries.locked() as entries:
            existing = entries.get(device.id)
            if existing:
                existing.name = device.name
                existing.ip_address = device.ip_address
                existing.stream_url = device.stream_url
                existing.is_recording = bool(device.is_recording)
                return
            entries[device.id] = MonitorEntry(
                device_id=device.id,
                name=device.name,
                ip_address=device.ip_address,
                stream_url=device.stream_url,
                is_recording=bool(device.is_recording),
                last_seen=self._clock(),
            )
        logger.info(f"👁  Started monitoring device: {device.name} ({device.ip_address})")

    async def deregister(self, device_id: str):
        if await self._entries.pop(device_id) is not None:
            logger.info(f"Stopped monitoring device: {device_id}")

    async def note_recording(self, device_id: str, recording: bool):
        """Keep the cached recording flag used in status notifications current."""
        async with self._entries.locked() as entries:
            entry = entries.get(device_id)
            if entry:
                entry.is_recording = recording

    async def load_devices(self) -> int:
        """Register every persisted device. Used once before the first sweep."""
        try:
            devices = self._store.list_devices()
        except Exception as e:
            logger.error(f"Failed to load devices for monitoring: {e}", exc_info=True)
            return 0
        for device in devices:
            await self.register(device)
        logger.info(f"📡 Monitoring {len(devices)} devices")
        return len(devices)

    # ── Introspection ─────────────────────────────────────────────────────
    async def entries(self) -> list[MonitorEntry]:
        snapshot = await self._entries.snapshot()
        return list(snapshot.values())

    async def status_of(self, device_id: str) -> Optional[str]:
        entry = await self._entries.get(device_id)
        return entry.status if entry else None

    # ── Sweep ─────────────────────────────────────────────────────────────
    async def sweep(self) -> list[StatusTransition]:
        """Probe every tracked device once and publish the resulting transitions."""
        entries = await self._entries.snapshot()
        if not entries:
            return []

        results = await asyncio.gather(*(
            self._probe(entry.device_id, entry.ip_address) for entry in entries.values()
        ))

        transitions = []
        for device_id, reachable in results:
            transition = await self._apply(device_id, reachable)
            if transition is None:
                continue
            transitions.append(transition)
            try:
                await self._publish(transition)
            except Exception as e:
                logger.error(f"Failed to publish status of {device_id}: {e}", exc_info=True)
        return transitions

    async def _probe(self, device_id: str, address: str) -> tuple[str, bool]:
        async with self._probe_slots:
            try:
                reachable = await self._prober.probe(address)
            except Exception as e:
                logger.warning(f"Probe of {device_id} ({address}) raised: {e}")
                reachable = False
        if not reachable:
            logger.debug(f"{device_id} ({address}) unreachable")
        return device_id, reachable

    async def _apply(self, device_id: str, reachable: bool) -> Optional[StatusTransition]:
        async with self._entries.locked() as entries:
            entry = entries.get(device_id)
            if entry is None:
                return None  # deregistered while the probe was in flight

            now = self._clock()
            previous = entry.status
            if reachable:
                entry.last_seen = now
                entry.status = STATUS_ACTIVE
            elif now - entry.last_seen > self._offline_threshold:
                entry.status = STATUS_OFFLINE

            if entry.status == previous:
                return None
            return StatusTransition(
                device_id=device_id,
                device_name=entry.name,
                previous=previous,
                status=entry.status,
                is_recording=entry.is_recording,
            )

    async def _publish(self, transition: StatusTransition):
        timestamp = self._now()
        try:
            self._store.update_device_status(transition.device_id, transition.status, timestamp)
        except Exception as e:
            logger.error(f"Failed to update status of {transition.device_id}: {e}", exc_info=True)

        if (transition.previous, transition.status) in EVENT_TRANSITIONS:
            if transition.status == STATUS_ACTIVE:
                await record_event(self._store, self._hub, DEVICE_ONLINE,
                                   f"Device {transition.device_name} is now online",
                                   transition.device_id, INFO)
            else:
                await record_event(self._store, self._hub, DEVICE_OFFLINE,
                                   f"Device {transition.device_name} is offline",
                                   transition.device_id, WARNING)

        await self._hub.broadcast_status(transition.device_id, transition.status, transition.is_recording)

    # ── Background loop ───────────────────────────────────────────────────
    def start_sweep_loop(self, interval: float = settings.MONITOR_INTERVAL_SECONDS) -> "SweepLoop":
        """Load all devices, then sweep every `interval` seconds until cancelled."""
        return SweepLoop(self, interval)


class SweepLoop:
    """Handle for the background sweep task. cancel() stops scheduling new
    sweeps; a sweep already in flight runs to completion."""

    def __init__(self, monitor: FleetMonitor, interval: float):
        self.interval = interval
        self._monitor = monitor
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="fleet-sweep")

    @property
    def running(self) -> bool:
        return not self._task.done()

    def cancel(self):
        self._stop.set()

    async def wait(self):
        await self._task

    async def _run(self):
        await self._monitor.load_devices()
        logger.info(f"🚀 Sweep loop started (every {self.interval}s)")
        while not self._stop.is_set():
            try:
                await self._monitor.sweep()
            except Exception as e:
                logger.error(f"Sweep failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        logger.info("🛑 Sweep loop stopped")
