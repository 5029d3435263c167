# ristosync/queue_sort.py
from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from sqlmodel import Session

from .models import Department, Order
from .models_store import QueueSortRecord

log = logging.getLogger(__name__)


def merge_queue_order(saved_ids: Sequence[str], orders: Iterable[Order]) -> List[Order]:
    """Ordine manuale salvato + ordini nuovi in coda (per timestamp).

    Gli id salvati che non sono più presenti vengono ignorati.
    """
    orders = list(orders)
    by_id = {o.id: o for o in orders}
    out = [by_id[i] for i in dict.fromkeys(saved_ids) if i in by_id]
    known = {o.id for o in out}
    newcomers = sorted((o for o in orders if o.id not in known), key=lambda o: (o.timestamp, o.created_at))
    return out + newcomers


def move(ids: Sequence[str], dragged: str, target: str) -> List[str]:
    """Drag & drop: la comanda trascinata prende il posto del bersaglio."""
    ids = list(ids)
    if dragged == target or dragged not in ids or target not in ids:
        return ids
    target_index = ids.index(target)
    ids.remove(dragged)
    ids.insert(target_index, dragged)
    return ids


class QueueSortStore:
    """Ordinamento manuale delle comande, uno per reparto."""

    def __init__(self, engine) -> None:
        self._engine = engine

    def load(self, department: Department) -> List[str]:
        with Session(self._engine) as session:
            rec = session.get(QueueSortRecord, department.value)
            return list(rec.order_ids or []) if rec else []

    def save(self, department: Department, order_ids: Sequence[str]) -> None:
        with Session(self._engine) as session:
            rec = session.get(QueueSortRecord, department.value)
            if rec is None:
                rec = QueueSortRecord(department=department.value, order_ids=list(order_ids))
            else:
                rec.order_ids = list(order_ids)
            session.add(rec)
            session.commit()
        log.debug("Ordinamento %s salvato (%d comande)", department.value, len(order_ids))
