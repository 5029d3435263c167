# ristosync/views_monitor.py
from __future__ import annotations

from fastapi import APIRouter

from .deps import RuntimeDep

router = APIRouter()


@router.get("/monitor")
async def tables_overview(rt: RuntimeDep):
    rt.monitor.refresh()
    return {"tables": rt.monitor.overview(), "counts": rt.monitor.counts()}
