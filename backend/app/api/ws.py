"""WebSocket endpoint carrying the signaling protocol."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket
from fastapi.websockets import WebSocketDisconnect

from app.monitoring.metrics import signaling_connections
from rendezvous.realtime.managers import get_router

router = APIRouter(tags=["ws"])

logger = logging.getLogger(__name__)

signal_router = get_router()


async def _receive_frame(websocket: WebSocket) -> str | bytes:
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))
    if message.get("text") is not None:
        return message["text"]
    return message.get("bytes") or b""


@router.websocket("/ws")
@router.websocket("/")
async def websocket_signaling(websocket: WebSocket) -> None:
    """Relay join/offer/answer/ice-candidate/leave frames between room members."""

    await websocket.accept()
    signaling_connections.labels().inc()
    logger.info("New WebSocket connection")
    try:
        while True:
            raw_message = await _receive_frame(websocket)
            await signal_router.handle_message(websocket, raw_message)
    except WebSocketDisconnect:
        pass
    except RuntimeError:
        logger.warning("WebSocket error", exc_info=logger.isEnabledFor(logging.DEBUG))
    finally:
        await signal_router.disconnect(websocket)
        signaling_connections.labels().dec()
