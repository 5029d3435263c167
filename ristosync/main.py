# ristosync/main.py
import asyncio
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.responses import PlainTextResponse
from fastapi.websockets import WebSocketDisconnect

from . import views_admin, views_kds, views_monitor, views_waiter
from .deps import department_or_404
from .logs import setup_logging
from .runtime import Runtime
from .ws import ALL, ConnectionManager, WebSocketSink, manager as default_manager


def _wire_broadcasts(rt: Runtime, manager: ConnectionManager) -> None:
    """Ogni vista spinge il proprio payload sul suo canale quando cambia."""
    for board in rt.boards.values():
        channel = board.channel
        board.on_change = (lambda b=board, c=channel: manager.broadcast_json({"type": "board", **b.payload()}, c))
    rt.waiter.on_change = lambda: manager.broadcast_json({"type": "waiter", **rt.waiter.payload()}, rt.waiter.channel)
    rt.monitor.on_change = lambda: manager.broadcast_json(
        {"type": "monitor", "tables": rt.monitor.overview(), "counts": rt.monitor.counts()}, "monitor")


def create_app(runtime: Optional[Runtime] = None, manager: Optional[ConnectionManager] = None) -> FastAPI:
    app = FastAPI(title="RistoSync · Ordini e Reparti")
    manager = manager or default_manager

    @app.on_event("startup")
    async def on_startup():
        setup_logging()
        rt = runtime or Runtime()
        rt.setup()
        rt.sink.add(WebSocketSink(manager, asyncio.get_running_loop()))
        _wire_broadcasts(rt, manager)
        await rt.start()
        app.state.runtime = rt

    @app.on_event("shutdown")
    async def on_shutdown():
        rt = getattr(app.state, "runtime", None)
        if rt is not None:
            await rt.stop()

    @app.get("/health", response_class=PlainTextResponse)
    def health():
        return "OK"

    async def _hold(websocket: WebSocket, channel: str):
        await manager.connect(websocket, channel)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            manager.disconnect(websocket)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await _hold(websocket, ALL)

    @app.websocket("/ws/waiter")
    async def websocket_waiter(websocket: WebSocket):
        await _hold(websocket, "waiter")

    @app.websocket("/ws/monitor")
    async def websocket_monitor(websocket: WebSocket):
        await _hold(websocket, "monitor")

    @app.websocket("/ws/kds/{department}")
    async def websocket_kds(websocket: WebSocket, department: str):
        """Canale del reparto. I messaggi di testo in arrivo sono trascrizioni vocali."""
        try:
            dept = department_or_404(department)
        except HTTPException:
            await websocket.close(code=1008)
            return
        rt: Runtime = app.state.runtime
        await manager.connect(websocket, f"kds:{dept.value}")
        try:
            while True:
                text = await websocket.receive_text()
                source, sup = rt.listener(dept)
                if sup.enabled:
                    source.push(text)
                else:
                    rt.voice[dept].handle(text)
        except WebSocketDisconnect:
            manager.disconnect(websocket)

    # include di tutti i router DOPO la creazione dell'app
    app.include_router(views_kds.router)
    app.include_router(views_waiter.router)
    app.include_router(views_monitor.router)
    app.include_router(views_admin.router)
    return app


app = create_app()
