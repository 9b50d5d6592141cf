# visionhub/main.py
"""
FastAPI application entry point.
Builds the core services (notification hub, record store, storage locator,
fleet monitor, capture supervisor), wires them onto app.state and includes
the routers. Startup begins the sweep loop; shutdown stops every recording.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from visionhub.routers import devices, events, health, live, recordings
from visionhub.database import create_tables
from visionhub.config import settings
from visionhub.models.event import STORAGE_FALLBACK, WARNING
from visionhub.services.capture_supervisor import CaptureSupervisor
from visionhub.services.event_service import record_event
from visionhub.services.fleet_monitor import FleetMonitor
from visionhub.services.liveness_prober import LivenessProber
from visionhub.services.notification_hub import NotificationHub
from visionhub.services.record_store import RecordStore
from visionhub.services.storage_locator import StorageLocator
from visionhub.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="VisionHub API",
    description="Device fleet monitoring and recording orchestration.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── Core services ────────────────────────────────────────────────────────────
hub = NotificationHub()
store = RecordStore()
storage = StorageLocator()
monitor = FleetMonitor(store, hub, LivenessProber())
supervisor = CaptureSupervisor(store, hub, storage, on_recording_change=monitor.note_recording)

app.state.hub = hub
app.state.store = store
app.state.storage = storage
app.state.monitor = monitor
app.state.supervisor = supervisor
app.state.sweep_loop = None

# ── CORS (allow the dashboard on the same LAN to call the API) ──────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth for the HTTP API.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(devices.router,    prefix="/api/v1", tags=["📷 Devices"])
app.include_router(recordings.router, prefix="/api/v1", tags=["🎞  Recordings"])
app.include_router(events.router,     prefix="/api/v1", tags=["📡 Events"])
app.include_router(health.router,     prefix="/api/v1", tags=["💚 Health"])
app.include_router(live.router)


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 VisionHub backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")

    if not storage.initialize():
        await record_event(store, hub, STORAGE_FALLBACK,
                           f"Network storage unavailable, recording to {storage.current_storage_root()}",
                           severity=WARNING)

    # must run before the sweep loop caches each device's recording flag
    await supervisor.recover_stale_recordings()
    app.state.sweep_loop = monitor.start_sweep_loop(settings.MONITOR_INTERVAL_SECONDS)
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 VisionHub backend shutting down...")
    sweep_loop = app.state.sweep_loop
    if sweep_loop is not None:
        sweep_loop.cancel()
    await supervisor.stop_all()
    if sweep_loop is not None:
        await sweep_loop.wait()
