# ristosync/store.py
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from sqlmodel import Session, select

from .models import Order
from .models_store import OrderRecord

log = logging.getLogger(__name__)

Listener = Callable[[], None]


def order_to_record(order: Order) -> OrderRecord:
    return OrderRecord(
        id=order.id,
        table_number=order.table_number,
        status=order.status.value,
        created_at=order.created_at,
        timestamp=order.timestamp,
        payload=order.model_dump(mode="json"),
    )


def record_to_order(rec: OrderRecord) -> Order:
    return Order.model_validate(rec.payload)


class OrderStore:
    """Raccolta condivisa degli ordini.

    `write` è locale e sincrona (upsert per id, l'ultima scrittura vince), poi
    avvisa tutti gli iscritti. La notifica non porta dati: chi ascolta
    rilegge sempre tutto con `read_all()` e fa il diff per conto suo.
    """

    def __init__(self, engine) -> None:
        self._engine = engine
        self._lock = threading.RLock()  # un solo writer alla volta
        self._listeners: List[Listener] = []

    def read_all(self) -> List[Order]:
        with Session(self._engine) as session:
            rows = session.exec(select(OrderRecord).order_by(OrderRecord.created_at, OrderRecord.id)).all()
            out: List[Order] = []
            for rec in rows:
                try:
                    out.append(record_to_order(rec))
                except Exception:
                    # record corrotto: inerte per le viste, non deve farle cadere
                    log.exception("Ordine %s illeggibile: ignorato", rec.id)
            return out

    def get(self, order_id: str) -> Optional[Order]:
        with Session(self._engine) as session:
            rec = session.get(OrderRecord, order_id)
            return record_to_order(rec) if rec else None

    def write(self, order: Order) -> Order:
        with self._lock:
            with Session(self._engine) as session:
                rec = session.get(OrderRecord, order.id)
                fresh = order_to_record(order)
                if rec is None:
                    session.add(fresh)
                else:
                    rec.table_number = fresh.table_number
                    rec.status = fresh.status
                    rec.timestamp = fresh.timestamp
                    rec.payload = fresh.payload  # created_at resta quello della creazione
                    session.add(rec)
                session.commit()
        log.debug("Ordine %s salvato (%s)", order.id, order.status.value)
        self.notify()
        return order

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                log.exception("Listener ordini fallito")
