# ristosync/deps.py
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from .errors import EmptyCart, EngineError, InvalidTransition, ItemNotCompletable, OrderNotFound
from .models import Department
from .runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


# Dipendenza tipizzata
RuntimeDep = Annotated[Runtime, Depends(get_runtime)]


def department_or_404(name: str) -> Department:
    for d in Department:
        if d.value.lower() == (name or "").strip().lower():
            return d
    raise HTTPException(status_code=404, detail="Reparto non trovato")


def http_error(e: EngineError) -> HTTPException:
    if isinstance(e, OrderNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransition):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (ItemNotCompletable, EmptyCart)):
        return HTTPException(status_code=422, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))
