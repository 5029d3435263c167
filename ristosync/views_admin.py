# ristosync/views_admin.py
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from .deps import RuntimeDep
from .models import Category, Department
from .schemas import DepartmentsIn

router = APIRouter(prefix="/admin")


def _check_department(name: str) -> None:
    if name not in {d.value for d in Department}:
        raise HTTPException(status_code=422, detail=f"Reparto sconosciuto: {name}")


@router.get("/departments")
def get_departments(rt: RuntimeDep):
    return asdict(rt.settings.get_settings())


@router.patch("/departments")
def update_departments(body: DepartmentsIn, rt: RuntimeDep):
    """Modifica instradamento / stampa: le viste aperte si aggiornano da sole."""
    changes = body.model_dump(exclude_none=True)
    categories = {c.value for c in Category}
    for cat, dest in (changes.get("category_destinations") or {}).items():
        if cat not in categories:
            raise HTTPException(status_code=422, detail=f"Categoria sconosciuta: {cat}")
        _check_department(dest)
    if "default_department" in changes:
        _check_department(changes["default_department"])
    for dept in changes.get("auto_complete_departments") or []:
        _check_department(dept)
    return asdict(rt.settings.update(**changes))
