# ristosync/delay.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .models import Order, OrderStatus

WARNING_MINUTES = 15
CRITICAL_MINUTES = 25


class DelayBand(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


def elapsed_minutes(reference_ms: int, now_ms: int) -> int:
    """Minuti interi trascorsi (mai negativi)."""
    return max(0, int((now_ms - reference_ms) // 60000))


def classify(minutes: float, warning: float = WARNING_MINUTES, critical: float = CRITICAL_MINUTES) -> DelayBand:
    if minutes >= critical:
        return DelayBand.CRITICAL
    if minutes >= warning:
        return DelayBand.WARNING
    return DelayBand.NORMAL


def is_monitored(order: Order) -> bool:
    # Pronto e Servito non sono più "in ritardo"
    return order.status in (OrderStatus.PENDING, OrderStatus.COOKING)


def ticket_reference(order: Order) -> int:
    return order.timestamp


def table_reference(orders: Iterable[Order]) -> Optional[int]:
    """created_at dell'ordine attivo più vecchio del tavolo."""
    refs = [o.created_at for o in orders if o.is_active]
    return min(refs) if refs else None


@dataclass
class DelayEvent:
    order: Order
    band: DelayBand
    minutes: int


class DelayMonitor:
    """Classificatore a soglie con notifica al cambio di fascia.

    Per ogni ordine si ricorda la fascia del tick precedente: l'evento parte
    solo quando la fascia cambia verso warning o critical, quindi finché
    l'ordine resta oltre la soglia non si ripete. Se il riferimento riparte
    (l'ordine viene modificato) la fascia torna normale e il prossimo
    attraversamento notifica di nuovo. La prima osservazione conta come
    attraversamento.
    """

    def __init__(self, warning: float = WARNING_MINUTES, critical: float = CRITICAL_MINUTES) -> None:
        self.warning = warning
        self.critical = critical
        self._seen: Dict[str, DelayBand] = {}

    def band_for(self, order: Order, now: int) -> DelayBand:
        return classify(elapsed_minutes(ticket_reference(order), now), self.warning, self.critical)

    def observe(self, order: Order, minutes: float) -> Optional[DelayEvent]:
        if not is_monitored(order):
            return None
        band = classify(minutes, self.warning, self.critical)
        prev = self._seen.get(order.id, DelayBand.NORMAL)
        self._seen[order.id] = band
        if band == prev or band == DelayBand.NORMAL:
            return None
        return DelayEvent(order=order, band=band, minutes=int(minutes))

    def tick(self, orders: Iterable[Order], now: int) -> List[DelayEvent]:
        events = []
        for o in orders:
            ev = self.observe(o, elapsed_minutes(ticket_reference(o), now))
            if ev is not None:
                events.append(ev)
        return events

    def forget(self, order_id: str) -> None:
        self._seen.pop(order_id, None)

    def prune(self, live_ids: Iterable[str]) -> None:
        live = set(live_ids)
        for oid in [k for k in self._seen if k not in live]:
            del self._seen[oid]
