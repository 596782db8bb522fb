from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import List
import asyncio
import json
import logging

from capability_loader.capabilities.models import LoadState
from capability_loader.core.dependencies import get_capability_manager

router = APIRouter()
_log = logging.getLogger(__name__)


class ConnectionManager:
    """Lightweight websocket connection manager."""
    def __init__(self):
        self.active: List[WebSocket] = []

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.active.append(ws)

    def remove(self, ws: WebSocket):
        if ws in self.active:
            self.active.remove(ws)

    async def broadcast(self, message: dict):
        data = json.dumps(message)
        stale = []
        for ws in list(self.active):
            try:
                await ws.send_text(data)
            except Exception:
                stale.append(ws)
        for ws in stale:
            self.remove(ws)


ws_manager = ConnectionManager()


def _state_message(kind: str, name: str, state: LoadState) -> dict:
    return {'type': f'capability.{kind}', 'capability': name, 'state': state.summary()}


def capability_state_listener(name: str, state: LoadState) -> None:
    """Forward state transitions to connected websockets without blocking the manager."""
    if not ws_manager.active:
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        _log.debug("no running loop; dropping websocket update for %s", name)
        return
    loop.create_task(ws_manager.broadcast(_state_message('state', name, state)))


@router.websocket('/ws/capabilities')
async def capabilities_ws(ws: WebSocket):
    """Websocket endpoint that sends a state snapshot then streams updates."""
    manager = get_capability_manager()
    await ws_manager.connect(ws)
    for name, state in manager.snapshot().items():
        try:
            await ws.send_text(json.dumps(_state_message('snapshot', name, state)))
        except Exception:
            ws_manager.remove(ws)
            return
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        ws_manager.remove(ws)
    except Exception:
        ws_manager.remove(ws)
