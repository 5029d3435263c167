# ristosync/views_kds.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from .deps import RuntimeDep, department_or_404, http_error
from .errors import EngineError
from .models import Department
from .schemas import ListenIn, ReorderIn, VoiceIn

router = APIRouter()

# --- helpers ----------------------------------------------------------------

def _order_response(order) -> JSONResponse:
    resp = JSONResponse({"ok": True, "order": order.model_dump(mode="json")})
    resp.headers["Cache-Control"] = "no-store, max-age=0"
    return resp

# --- coda reparto -----------------------------------------------------------

@router.get("/kds")
def kds_index(rt: RuntimeDep):
    """Reparti disponibili e parametri per il client (riconoscimento vocale, durata toast)."""
    return {
        "departments": [d.value for d in Department],
        "voice": {"language": rt.config.voice.language, "keywords": list(rt.config.voice.keywords)},
        "toast_seconds": rt.config.engine.toast_seconds,
    }

@router.get("/kds/{department}")
async def kds_board(department: str, rt: RuntimeDep):
    """Comande visibili per il reparto, nell'ordine della coda."""
    dept = department_or_404(department)
    board = rt.boards[dept]
    board.refresh()
    resp = JSONResponse(board.payload())
    resp.headers["Cache-Control"] = "no-store, max-age=0"
    return resp

@router.post("/kds/{department}/reorder")
async def kds_reorder(department: str, body: ReorderIn, rt: RuntimeDep):
    dept = department_or_404(department)
    board = rt.boards[dept]
    board.refresh()
    return {"ok": True, "order_ids": board.reorder(body.dragged, body.target)}

# --- azioni KDS -------------------------------------------------------------

@router.post("/kds/{department}/orders/{order_id}/start")
async def kds_start(department: str, order_id: str, rt: RuntimeDep):
    department_or_404(department)
    try:
        return _order_response(rt.service.start(order_id))
    except EngineError as e:
        raise http_error(e)

@router.post("/kds/{department}/orders/{order_id}/ready")
async def kds_ready(department: str, order_id: str, rt: RuntimeDep):
    department_or_404(department)
    try:
        return _order_response(rt.service.force_ready(order_id))
    except EngineError as e:
        raise http_error(e)

@router.post("/kds/{department}/orders/{order_id}/deliver")
async def kds_deliver(department: str, order_id: str, rt: RuntimeDep):
    department_or_404(department)
    try:
        return _order_response(rt.service.deliver(order_id))
    except EngineError as e:
        raise http_error(e)

@router.post("/kds/{department}/orders/{order_id}/items/{index}/toggle")
async def kds_toggle_item(department: str, order_id: str, index: int, rt: RuntimeDep, sub: Optional[str] = None):
    department_or_404(department)
    try:
        return _order_response(rt.service.toggle_item(order_id, index, sub))
    except EngineError as e:
        raise http_error(e)

@router.post("/kds/{department}/orders/{order_id}/print")
async def kds_print(department: str, order_id: str, rt: RuntimeDep):
    """Ristampa manuale della comanda di reparto."""
    dept = department_or_404(department)
    try:
        order = rt.service.get(order_id)
    except EngineError as e:
        raise http_error(e)
    if not rt.printer.print_order(order, dept):
        raise HTTPException(status_code=409, detail="Stampa non eseguita")
    return {"ok": True}

# --- comandi vocali -----------------------------------------------------------

@router.post("/kds/{department}/voice")
async def kds_voice(department: str, body: VoiceIn, rt: RuntimeDep):
    """Trascrizione singola (già riconosciuta dal client)."""
    dept = department_or_404(department)
    out = rt.voice[dept].handle(body.transcript)
    return {
        "result": out.result.value,
        "text": out.text,
        "order_id": out.order.id if out.order else None,
        "item_index": out.item_index,
        "sub_item_id": out.sub_item_id,
    }

@router.post("/kds/{department}/voice/listen")
async def kds_voice_listen(department: str, body: ListenIn, rt: RuntimeDep):
    dept = department_or_404(department)
    sup = await rt.toggle_listening(dept, body.enabled)
    return {"enabled": sup.enabled, "stopped_reason": sup.stopped_reason}
