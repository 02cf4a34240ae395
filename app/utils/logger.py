# app/utils/logger.py
"""
Logging setup shared by every module (get_logger(__name__)).

Console always; with LOG_TO_FILE, two rotating files in LOG_DIR:
  smartengo.log — everything at LOG_LEVEL
  alerts.log    — overstay / security alerts only (WARNING and up from alert_service)
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from app.config import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()
LOG_DIR = settings.LOG_DIR or os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs"
)
ALERT_LOGGER = "app.services.alert_service"

FORMATTER = logging.Formatter(
    fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

_configured = False


def _file_handler(filename: str, level) -> RotatingFileHandler:
    # 10 × 5MB per file
    handler = RotatingFileHandler(
        filename=os.path.join(LOG_DIR, filename),
        maxBytes=5 * 1024 * 1024,
        backupCount=10,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(FORMATTER)
    return handler


def _configure():
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger()
    root.setLevel(LOG_LEVEL)

    console = logging.StreamHandler()
    console.setLevel(LOG_LEVEL)
    console.setFormatter(FORMATTER)
    root.addHandler(console)

    # SQL echo is controlled by the engine, not LOG_LEVEL
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    if not settings.LOG_TO_FILE:
        return

    os.makedirs(LOG_DIR, exist_ok=True)
    root.addHandler(_file_handler("smartengo.log", LOG_LEVEL))
    logging.getLogger(ALERT_LOGGER).addHandler(_file_handler("alerts.log", logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    _configure()
    return logging.getLogger(name)
