# ristosync/routing.py
from __future__ import annotations

from typing import List, Optional

from .combo import expand
from .config import DepartmentSettings
from .models import Department, MenuItem, Order, OrderItem


class DepartmentRouter:
    """Decide a quale reparto appartiene una riga d'ordine e se è finita per quel reparto.

    `department=None` vuol dire "tutti i reparti" (palmare cameriere, monitor tavoli).
    Le impostazioni vengono rilette ad ogni chiamata: possono cambiare mentre
    le viste sono aperte.
    """

    def __init__(self, settings, catalog) -> None:
        # DepartmentSettings oppure un provider con get_settings()
        self._settings = settings
        self.catalog = catalog

    @property
    def settings(self) -> DepartmentSettings:
        if isinstance(self._settings, DepartmentSettings):
            return self._settings
        return self._settings.get_settings()

    # --- singolo piatto ------------------------------------------------------

    def resolve_department(self, item: MenuItem) -> Department:
        return self.settings.destination_for(item.category, item.specific_department)

    def sub_items_for(self, department: Optional[Department], item: OrderItem) -> List[MenuItem]:
        subs = expand(item, self.catalog)
        if department is None:
            return subs
        return [s for s in subs if self.resolve_department(s) == department]

    # --- righe d'ordine --------------------------------------------------------

    def is_relevant(self, item: OrderItem, department: Optional[Department]) -> bool:
        if item.is_separator:
            return True
        if department is None:
            return True
        if not item.is_combo:
            return self.resolve_department(item.menu_item) == department
        return any(self.resolve_department(sub) == department for sub in expand(item, self.catalog))

    def is_fully_done_for(self, item: OrderItem, department: Optional[Department]) -> bool:
        if item.is_separator:
            return False
        if not item.is_combo:
            return bool(item.completed)
        parts = set(item.combo_completed_parts or [])
        # nessun sotto-piatto per questo reparto → vacuamente finito
        return all(sub.id in parts for sub in self.sub_items_for(department, item))

    # --- ordine intero ---------------------------------------------------------

    def relevant_items(self, order: Order, department: Optional[Department]) -> List[OrderItem]:
        """Righe vere (separatori esclusi) che riguardano il reparto."""
        return [
            i for i in (order.items or [])
            if not i.is_separator and self.is_relevant(i, department)
        ]

    def ticket_items(self, order: Order, department: Optional[Department]) -> List[OrderItem]:
        """Righe da mostrare/stampare sulla comanda del reparto, separatori compresi."""
        return [i for i in (order.items or []) if self.is_relevant(i, department)]

    def has_relevant_items(self, order: Order, department: Optional[Department]) -> bool:
        return bool(self.relevant_items(order, department))

    def all_done_for(self, order: Order, department: Optional[Department]) -> bool:
        relevant = self.relevant_items(order, department)
        return bool(relevant) and all(self.is_fully_done_for(i, department) for i in relevant)

    def is_auto_completed(self, item: MenuItem) -> bool:
        """Piatti che nascono già pronti (reparto in auto_complete_departments)."""
        if item.is_combo:
            return False
        dest = self.resolve_department(item)
        return dest.value in self.settings.auto_complete_departments
