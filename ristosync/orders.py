# ristosync/orders.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .errors import OrderNotFound
from .models import Order, OrderItem, separator_item
from .state_machine import OrderStateMachine
from .sync import SyncCoordinator, WriteResult

log = logging.getLogger(__name__)


class OrderService:
    """Azioni di sala e cucina: legge l'ordine, applica la transizione, scrive.

    Nessuno stato proprio: tutto passa dallo store condiviso, così ogni vista
    aperta riceve la modifica dalla notifica.
    """

    def __init__(self, coordinator: SyncCoordinator, machine: OrderStateMachine) -> None:
        self.coordinator = coordinator
        self.machine = machine
        self.last_write: Optional[WriteResult] = None

    # --- lettura -----------------------------------------------------------------

    def orders(self) -> List[Order]:
        return self.coordinator.read_all()

    def active_orders(self) -> List[Order]:
        return [o for o in self.orders() if o.is_active]

    def get(self, order_id: str) -> Order:
        for o in self.orders():
            if o.id == order_id:
                return o
        raise OrderNotFound(order_id)

    def active_for_table(self, table_number: str) -> Optional[Order]:
        # al massimo un ordine attivo per tavolo: si prende il primo
        return next((o for o in self.active_orders() if o.table_number == table_number), None)

    def _save(self, order: Order) -> Order:
        self.last_write = self.coordinator.write(order)
        return order

    # --- cameriere -------------------------------------------------------------

    def submit_cart(self, table_number: str, items: Iterable[OrderItem],
                    waiter_name: Optional[str] = None, **meta) -> Order:
        """Invia il carrello: aggiunge all'ordine attivo del tavolo oppure ne crea uno nuovo."""
        items = list(items)
        current = self.active_for_table(table_number)
        if current is not None:
            log.info("Tavolo %s: aggiunte %d righe all'ordine %s", table_number, len(items), current.id)
            return self._save(self.machine.add_items(current, items))
        order = self.machine.create_order(table_number, items, waiter_name, **meta)
        log.info("Tavolo %s: nuovo ordine %s (%d righe)", table_number, order.id, len(items))
        return self._save(order)

    def add_separator(self, order_id: str) -> Order:
        order = self.get(order_id)
        return self._save(self.machine.add_items(order, [separator_item(self.machine.clock())]))

    def serve_item(self, order_id: str, index: int, sub_item_id: Optional[str] = None) -> Order:
        return self._save(self.machine.serve_item(self.get(order_id), index, sub_item_id))

    def free_table(self, table_number: str) -> List[Order]:
        """Libera il tavolo: gli ordini ancora attivi finiscono nello storico."""
        archived = [self.machine.archive(o) for o in self.active_orders() if o.table_number == table_number]
        for o in archived:
            self._save(o)
        if archived:
            log.info("Tavolo %s liberato (%d ordini archiviati)", table_number, len(archived))
        return archived

    # --- cucina ----------------------------------------------------------------

    def start(self, order_id: str) -> Order:
        return self._save(self.machine.start(self.get(order_id)))

    def force_ready(self, order_id: str) -> Order:
        return self._save(self.machine.force_ready(self.get(order_id)))

    def deliver(self, order_id: str) -> Order:
        return self._save(self.machine.deliver(self.get(order_id)))

    def toggle_item(self, order_id: str, index: int, sub_item_id: Optional[str] = None) -> Order:
        return self._save(self.machine.toggle_item(self.get(order_id), index, sub_item_id))

    def complete_item(self, order_id: str, index: int, sub_item_id: Optional[str] = None) -> Order:
        order = self.get(order_id)
        done = self.machine.complete_item(order, index, sub_item_id)
        if done is order:
            return order
        return self._save(done)

    def promote_ready(self, order_id: str) -> Order:
        order = self.get(order_id)
        ready = self.machine.promote_ready(order)
        if ready is order:
            return order
        return self._save(ready)
