# app/routers/changes.py
"""
Realtime change stream for the dashboard.
WS /ws/changes?tables=toilets,payments — one JSON message per committed row change.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.config import settings
from app.errors import ValidationError
from app.services.change_feed import change_feed
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.websocket("/ws/changes")
async def stream_changes(websocket: WebSocket, tables: Optional[str] = None, api_key: Optional[str] = None):
    if settings.API_KEY and api_key != settings.API_KEY:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    wanted = [t.strip() for t in tables.split(",") if t.strip()] if tables else None
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    try:
        # Publishers run on worker threads; hand events over to this loop
        subscription = change_feed.subscribe(
            lambda event: loop.call_soon_threadsafe(queue.put_nowait, event), wanted
        )
    except ValidationError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    async def _forward():
        while True:
            event = await queue.get()
            await websocket.send_json(event.to_dict())

    await websocket.accept()
    logger.info(f"[WS] Dashboard subscribed to {sorted(subscription.tables)}")
    sender = asyncio.create_task(_forward())
    try:
        # Inbound messages are ignored; receiving is how a disconnect is noticed
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("[WS] Dashboard disconnected")
    finally:
        sender.cancel()
        subscription.cancel()
