# app/services/overstay_monitor.py
"""
Overstay monitor — periodically evaluates the overstay rule and persists alerts.

The alert is derived from occupied_since, so nothing would ever be written down
unless someone looks. This loop looks every OVERSTAY_SCAN_INTERVAL_SECONDS and
lets alert_service.scan_overstays flag the access logs.
"""

import asyncio
from typing import Optional

from app.config import settings
from app.database import SessionLocal
from app.services.alert_service import scan_overstays
from app.utils.logger import get_logger

logger = get_logger(__name__)


async def run_scan_once() -> int:
    """One scan with a fresh DB session. Returns the number of new alerts."""
    db = SessionLocal()
    try:
        alerts = await scan_overstays(db)
        return len(alerts)
    finally:
        db.close()


async def _monitor_loop(interval: int):
    logger.info(f"⏱  Overstay monitor running every {interval}s "
                f"(threshold {settings.OVERSTAY_THRESHOLD_MINUTES} min)")
    while True:
        try:
            await run_scan_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ Overstay scan error: {e}", exc_info=True)
        await asyncio.sleep(interval)


def start_overstay_monitor(interval: Optional[int] = None) -> Optional[asyncio.Task]:
    """
    Launch the monitor as a background task on the running loop.
    Called once at backend startup. Returns None when disabled.
    """
    interval = settings.OVERSTAY_SCAN_INTERVAL_SECONDS if interval is None else interval
    if interval <= 0:
        logger.warning("Overstay monitor disabled (OVERSTAY_SCAN_INTERVAL_SECONDS=0)")
        return None
    return asyncio.create_task(_monitor_loop(interval), name="overstay-monitor")
