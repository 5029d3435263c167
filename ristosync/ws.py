# ristosync/ws.py
import asyncio
import json
import logging
from typing import Dict, Optional, Set

from fastapi import WebSocket

from .notifications import Notice

log = logging.getLogger(__name__)

ALL = "all"


class ConnectionManager:
    """Connessioni WebSocket raggruppate per canale ("all", "kds:Cucina", "waiter", "monitor")."""

    def __init__(self) -> None:
        self.channels: Dict[str, Set[WebSocket]] = {}

    @property
    def active_connections(self) -> Set[WebSocket]:
        out: Set[WebSocket] = set()
        for conns in self.channels.values():
            out |= conns
        return out

    async def connect(self, websocket: WebSocket, channel: str = ALL):
        await websocket.accept()
        self.channels.setdefault(channel, set()).add(websocket)

    def disconnect(self, websocket: WebSocket):
        for conns in self.channels.values():
            conns.discard(websocket)

    async def broadcast_text(self, message: str, channel: Optional[str] = None):
        """Invia testo al canale (o a tutti); rimuove i client morti."""
        targets = self.active_connections if channel is None else set(self.channels.get(channel, ()))
        if channel not in (None, ALL):
            targets |= self.channels.get(ALL, set())
        dead = []
        for ws in list(targets):
            try:
                await ws.send_text(message)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)

    async def broadcast_json(self, payload: dict, channel: Optional[str] = None):
        await self.broadcast_text(json.dumps(payload), channel)


class WebSocketSink:
    """Sink notifiche → WebSocket. Chiamabile anche da thread esterni (worker backup)."""

    def __init__(self, manager: ConnectionManager, loop: asyncio.AbstractEventLoop) -> None:
        self.manager = manager
        self.loop = loop

    def __call__(self, notice: Notice) -> None:
        if self.loop.is_closed():
            return
        channel = notice.channel or (f"kds:{notice.department}" if notice.department else None)
        coro = self.manager.broadcast_json({"type": "notice", "notice": notice.to_dict()}, channel)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            self.loop.create_task(coro)
        else:
            asyncio.run_coroutine_threadsafe(coro, self.loop)


manager = ConnectionManager()
