# ristosync/state_machine.py
from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from .errors import EmptyCart, InvalidTransition, ItemNotCompletable
from .models import (
    HISTORY_SUFFIX,
    Order,
    OrderItem,
    OrderStatus,
    new_order_id,
    now_ms,
)

# Sequenza ammessa: nessun salto, nessun ritorno indietro
NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.COOKING,
    OrderStatus.COOKING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.DELIVERED,
}


class OrderStateMachine:
    """Ciclo di vita dell'ordine: In Attesa → In Preparazione → Pronto → Servito.

    Ogni operazione restituisce un *nuovo* Order; quello in ingresso non viene
    mai modificato. Le transizioni non ammesse sollevano InvalidTransition.

    Il toggle dei singoli piatti non cambia mai lo stato dell'ordine: quando un
    reparto ha finito i suoi piatti la comanda sparisce solo dalla sua coda.
    Lo stato passa a Pronto soltanto con `force_ready` (o col fallback vocale).
    """

    def __init__(self, router=None, clock: Callable[[], int] = now_ms) -> None:
        self.router = router
        self.clock = clock

    # --- helpers ---------------------------------------------------------------

    def _touch(self, order: Order, **updates) -> Order:
        now = self.clock()
        updates["timestamp"] = max(now, order.created_at)
        return order.model_copy(update=updates)

    @staticmethod
    def _copy_items(order: Order) -> List[OrderItem]:
        return [i.model_copy(deep=True) for i in order.items]

    @staticmethod
    def _item_at(items: List[OrderItem], index: int) -> OrderItem:
        if index < 0 or index >= len(items):
            raise ItemNotCompletable(f"Riga {index} inesistente")
        item = items[index]
        if item.is_separator:
            raise ItemNotCompletable("Il separatore 'a seguire' non è completabile")
        return item

    @staticmethod
    def _check_sub(item: OrderItem, sub_item_id: str) -> None:
        if not item.is_combo or sub_item_id not in (item.menu_item.combo_items or []):
            raise ItemNotCompletable(f"'{sub_item_id}' non fa parte di {item.menu_item.name}")

    @staticmethod
    def _complete_everything(items: Iterable[OrderItem]) -> List[OrderItem]:
        out = []
        for i in items:
            if i.is_separator:
                out.append(i.model_copy(deep=True))
                continue
            parts = list(i.combo_completed_parts or [])
            if i.is_combo:
                parts += [sid for sid in i.menu_item.combo_items if sid not in parts]
            out.append(i.model_copy(update={"completed": True, "combo_completed_parts": parts}, deep=True))
        return out

    def _advance(self, order: Order, operation: str, expected: OrderStatus, **updates) -> Order:
        if order.status != expected:
            raise InvalidTransition(operation, order.status)
        return self._touch(order, status=NEXT_STATUS[expected], **updates)

    # --- transizioni di stato ----------------------------------------------------

    def start(self, order: Order) -> Order:
        return self._advance(order, "start", OrderStatus.PENDING)

    def force_ready(self, order: Order) -> Order:
        """Override manuale ("ho finito, salta il resto"): tutti i piatti di tutti i reparti completati."""
        return self._advance(order, "force_ready", OrderStatus.COOKING, items=self._complete_everything(order.items))

    def deliver(self, order: Order) -> Order:
        return self._advance(order, "deliver", OrderStatus.READY)

    def promote_ready(self, order: Order) -> Order:
        """Come force_ready ma accettato anche da In Attesa. Usato solo dal comando vocale."""
        if order.status == OrderStatus.READY:
            return order
        if order.status not in (OrderStatus.PENDING, OrderStatus.COOKING):
            raise InvalidTransition("promote_ready", order.status)
        return self._touch(order, status=OrderStatus.READY, items=self._complete_everything(order.items))

    def archive(self, order: Order) -> Order:
        """Liberazione tavolo: l'ordine attivo finisce nello storico (`<tavolo>_HISTORY`)."""
        if order.status == OrderStatus.DELIVERED:
            raise InvalidTransition("archive", order.status)
        table = order.table_number
        if not table.endswith(HISTORY_SUFFIX):
            table = f"{table}{HISTORY_SUFFIX}"
        return self._touch(order, status=OrderStatus.DELIVERED, table_number=table)

    # --- piatti ----------------------------------------------------------------

    def toggle_item(self, order: Order, index: int, sub_item_id: Optional[str] = None) -> Order:
        items = self._copy_items(order)
        item = self._item_at(items, index)
        if item.is_combo:
            combo_ids = list(item.menu_item.combo_items or [])
            parts = list(item.combo_completed_parts or [])
            if sub_item_id is not None:
                self._check_sub(item, sub_item_id)
                parts = [p for p in parts if p != sub_item_id] if sub_item_id in parts else parts + [sub_item_id]
            elif combo_ids and all(sid in parts for sid in combo_ids):
                parts = []
            else:
                parts = parts + [sid for sid in combo_ids if sid not in parts]
            item.combo_completed_parts = parts
            item.completed = bool(combo_ids) and all(sid in parts for sid in combo_ids)
        else:
            item.completed = not item.completed
        return self._touch(order, items=items)

    def complete_item(self, order: Order, index: int, sub_item_id: Optional[str] = None) -> Order:
        """Segna come pronto (idempotente): se era già pronto l'ordine torna invariato."""
        item = self._item_at(order.items, index)
        if sub_item_id is not None:
            self._check_sub(item, sub_item_id)
            if sub_item_id in (item.combo_completed_parts or []):
                return order
        elif item.completed:
            return order
        return self.toggle_item(order, index, sub_item_id)

    def serve_item(self, order: Order, index: int, sub_item_id: Optional[str] = None) -> Order:
        items = self._copy_items(order)
        item = self._item_at(items, index)
        if sub_item_id is not None:
            self._check_sub(item, sub_item_id)
            served = list(item.combo_served_parts or [])
            if sub_item_id not in served:
                served.append(sub_item_id)
            item.combo_served_parts = served
            if all(sid in served for sid in item.menu_item.combo_items):
                item.served = True
        else:
            item.served = True
        return self._touch(order, items=items)

    # --- creazione / aggiunte ----------------------------------------------------

    def _fresh_item(self, item: OrderItem, added_later: bool) -> OrderItem:
        auto = False
        if self.router is not None and not item.is_separator:
            auto = self.router.is_auto_completed(item.menu_item)
        return item.model_copy(
            update={
                "completed": auto,
                "served": False,
                "is_added_later": added_later,
                "combo_completed_parts": [],
                "combo_served_parts": [],
            },
            deep=True,
        )

    def create_order(self, table_number: str, items: Iterable[OrderItem], waiter_name: Optional[str] = None, **meta) -> Order:
        items = list(items)
        if not items:
            raise EmptyCart()
        now = self.clock()
        return Order(
            id=new_order_id(now),
            table_number=table_number,
            items=[self._fresh_item(i, added_later=False) for i in items],
            status=OrderStatus.PENDING,
            created_at=now,
            timestamp=now,
            waiter_name=waiter_name or "Staff",
            **meta,
        )

    def add_items(self, order: Order, new_items: Iterable[OrderItem]) -> Order:
        """Aggiunte del cameriere: stesso piatto con stesse note → somma quantità, altrimenti nuova riga.

        Lo stato non torna indietro: le righe nuove (non completate) fanno
        ricomparire la comanda nelle code dei reparti interessati.
        """
        new_items = list(new_items)
        if not new_items:
            raise EmptyCart()
        if order.status == OrderStatus.DELIVERED:
            raise InvalidTransition("add_items", order.status)
        merged = self._copy_items(order)
        for new in new_items:
            idx = next(
                (
                    n for n, old in enumerate(merged)
                    if not old.is_separator and not new.is_separator
                    and old.menu_item.id == new.menu_item.id
                    and list(old.notes) == list(new.notes)
                ),
                -1,
            )
            if idx >= 0:
                old = merged[idx]
                merged[idx] = old.model_copy(update={
                    "quantity": old.quantity + new.quantity,
                    "completed": False,
                    "served": False,
                    "combo_completed_parts": [],
                    "combo_served_parts": [],
                    "is_added_later": True,
                })
            else:
                merged.append(self._fresh_item(new, added_later=True))
        return self._touch(order, items=merged)
