# ristosync/catalog.py
from __future__ import annotations

from time import time
from typing import Dict, Iterable, List, Optional

from sqlmodel import Session, select

from .models import Category, Department, MenuItem
from .models_store import MenuItemRow


def row_to_item(row: MenuItemRow) -> MenuItem:
    return MenuItem(
        id=row.id,
        name=row.name,
        price=float(row.price or 0),
        category=Category(row.category),
        description=row.description,
        ingredients=row.ingredients,
        allergens=list(row.allergens or []),
        combo_items=list(row.combo_items or []),
        specific_department=Department(row.specific_department) if row.specific_department else None,
    )


class StaticCatalog:
    """Catalogo da lista in memoria (snapshot del menu)."""

    def __init__(self, items: Iterable[MenuItem]) -> None:
        self._items: List[MenuItem] = list(items)
        self._by_id: Dict[str, MenuItem] = {m.id: m for m in self._items}

    def get_menu_items(self) -> List[MenuItem]:
        return list(self._items)

    def get(self, item_id: str) -> Optional[MenuItem]:
        return self._by_id.get(item_id)


class MenuCatalog:
    """Catalogo su DB, sola lettura. Micro-cache per non rileggere il menu ad ogni notifica."""

    def __init__(self, engine, ttl: float = 5.0) -> None:
        self._engine = engine
        self._ttl = ttl
        self._cache: Optional[StaticCatalog] = None
        self._loaded_at = 0.0

    def refresh(self) -> StaticCatalog:
        with Session(self._engine) as session:
            rows = session.exec(select(MenuItemRow).order_by(MenuItemRow.category, MenuItemRow.name)).all()
            self._cache = StaticCatalog(row_to_item(r) for r in rows)
        self._loaded_at = time()
        return self._cache

    def _snapshot(self) -> StaticCatalog:
        if self._cache is None or (time() - self._loaded_at) >= self._ttl:
            return self.refresh()
        return self._cache

    def get_menu_items(self) -> List[MenuItem]:
        return self._snapshot().get_menu_items()

    def get(self, item_id: str) -> Optional[MenuItem]:
        return self._snapshot().get(item_id)
