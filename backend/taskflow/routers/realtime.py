"""Notification push channel (WebSocket)."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..config import settings
from ..realtime.delivery import HANDSHAKE_TIMEOUT_REASON, DeliveryLayer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def _receive_text_frame(websocket: WebSocket) -> Optional[str]:
    """Next inbound frame as text; None for a binary frame."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    return message.get("text")


def _token_from_frame(raw: Optional[str]) -> Optional[str]:
    """Pull ``auth.token`` out of the handshake frame; anything else means no token."""
    if raw is None:
        return None
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(frame, dict):
        return None
    auth = frame.get("auth")
    if not isinstance(auth, dict):
        return None
    token = auth.get("token")
    return token if isinstance(token, str) else None


@router.websocket("/ws")
async def notification_channel(websocket: WebSocket):
    delivery: DeliveryLayer = websocket.app.state.delivery
    await websocket.accept()

    try:
        raw = await asyncio.wait_for(_receive_text_frame(websocket), timeout=settings.WS_AUTH_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.info("Channel handshake timed out")
        await delivery.reject(websocket, HANDSHAKE_TIMEOUT_REASON)
        return
    except WebSocketDisconnect:
        return

    connection = await delivery.connect(websocket, _token_from_frame(raw))
    if connection is None:
        return

    try:
        while True:
            delivery.handle_client_frame(connection, await _receive_text_frame(websocket))
    except WebSocketDisconnect:
        pass
    finally:
        delivery.disconnect(connection)
