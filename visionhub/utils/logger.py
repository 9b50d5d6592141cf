# visionhub/utils/logger.py
"""
Centralised logging configuration for the entire application.
Logs to the console and to a rotating visionhub.log in LOG_DIR. When LOG_DIR
cannot be created the service keeps running with console logging only.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from visionhub.config import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_FILE_NAME = "visionhub.log"

# Chatty at INFO: one line per probe request / per HTTP access
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

_configured = False


def _file_handler(log_dir: str, fmt: logging.Formatter) -> Optional[RotatingFileHandler]:
    try:
        os.makedirs(log_dir, exist_ok=True)
        handler = RotatingFileHandler(
            filename=os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError:
        return None
    handler.setLevel(LOG_LEVEL)
    handler.setFormatter(fmt)
    return handler


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setLevel(LOG_LEVEL)
    console.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(LOG_LEVEL)
    root.addHandler(console)

    file_handler = _file_handler(settings.LOG_DIR, fmt)
    if file_handler is not None:
        root.addHandler(file_handler)
    else:
        root.warning(f"Cannot write logs to {settings.LOG_DIR}, logging to console only")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    _configure_root_logger()
    return logging.getLogger(name)
