"""Realtime relay WebSocket entrypoint: ``/ws/{instance_id}``."""

import logging

from fastapi import APIRouter, WebSocket

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Relay"])


@router.websocket("/ws/{instance_id}")
async def relay_socket(websocket: WebSocket, instance_id: str) -> None:
    """Attach a downstream client to the relay for ``instance_id``."""
    relay = websocket.app.state.relays.get(instance_id)
    await websocket.accept()
    await relay.attach(websocket)
