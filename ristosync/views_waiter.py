# ristosync/views_waiter.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException

from .deps import RuntimeDep, http_error
from .errors import EngineError
from .models import OrderItem
from .schemas import CartIn

router = APIRouter()


@router.get("/menu")
def menu(rt: RuntimeDep):
    items = rt.catalog.get_menu_items()
    return {"items": [m.model_dump(mode="json") for m in items]}


@router.get("/waiter")
async def waiter_pad(rt: RuntimeDep):
    """Palmare: tutti gli ordini attivi di tutti i reparti."""
    rt.waiter.refresh()
    return rt.waiter.payload()


@router.get("/waiter/tables/{table}")
def table_order(table: str, rt: RuntimeDep):
    order = rt.service.active_for_table(table)
    return {"table": table, "order": order.model_dump(mode="json") if order else None}


@router.post("/waiter/orders")
async def submit_cart(body: CartIn, rt: RuntimeDep):
    """Invio carrello: se il tavolo ha già un ordine aperto le righe vengono aggiunte lì."""
    lines = []
    for line in body.items:
        menu_item = rt.catalog.get(line.menu_item_id)
        if menu_item is None:
            raise HTTPException(status_code=404, detail=f"Piatto {line.menu_item_id} non trovato")
        lines.append(OrderItem(menu_item=menu_item, quantity=line.quantity, notes=line.notes))
    try:
        order = rt.service.submit_cart(body.table_number, lines, body.waiter_name, **body.meta())
    except EngineError as e:
        raise http_error(e)
    return {"ok": True, "order": order.model_dump(mode="json")}


@router.post("/waiter/orders/{order_id}/separator")
async def add_separator(order_id: str, rt: RuntimeDep):
    try:
        order = rt.service.add_separator(order_id)
    except EngineError as e:
        raise http_error(e)
    return {"ok": True, "order": order.model_dump(mode="json")}


@router.post("/waiter/orders/{order_id}/items/{index}/serve")
async def serve_item(order_id: str, index: int, rt: RuntimeDep, sub: Optional[str] = None):
    try:
        order = rt.service.serve_item(order_id, index, sub)
    except EngineError as e:
        raise http_error(e)
    return {"ok": True, "order": order.model_dump(mode="json")}


@router.post("/waiter/tables/{table}/free")
async def free_table(table: str, rt: RuntimeDep):
    archived = rt.service.free_table(table)
    return {"ok": True, "archived": [o.id for o in archived]}
