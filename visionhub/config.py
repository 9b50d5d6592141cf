# visionhub/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./visionhub.db"

    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_IP: str = "0.0.0.0"
    BACKEND_PORT: int = 3000

    # ── Security ──────────────────────────────────────────────────────────
    API_KEY: Optional[str] = None   # Set in .env to enable auth on API endpoints

    # ── Storage ───────────────────────────────────────────────────────────
    STORAGE_TYPE: str = "local"     # local | nas
    LOCAL_STORAGE_PATH: str = "/var/visionhub/recordings"
    NAS_MOUNT_POINT: str = "/mnt/visionhub"

    # ── Fleet monitoring ──────────────────────────────────────────────────
    MONITOR_INTERVAL_SECONDS: float = 30.0
    OFFLINE_THRESHOLD_SECONDS: float = 60.0   # Unreachable this long → offline
    PROBE_METHOD: str = "ping"                # ping | tcp | http
    PROBE_TIMEOUT_SECONDS: float = 1.0
    PROBE_TCP_PORT: int = 554                 # RTSP
    MAX_CONCURRENT_PROBES: int = 32

    # ── Capture ───────────────────────────────────────────────────────────
    FFMPEG_PATH: str = "ffmpeg"
    THUMBNAIL_DELAY_SECONDS: float = 5.0      # Let the stream settle first
    THUMBNAIL_TIMEOUT_SECONDS: float = 30.0
    STOP_TIMEOUT_SECONDS: float = 10.0        # SIGTERM grace before SIGKILL

    # ── Notifications ─────────────────────────────────────────────────────
    NOTIFY_SEND_TIMEOUT_SECONDS: float = 2.0

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"                     # Relative to the working directory
    LOG_MAX_BYTES: int = 5 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 10

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
