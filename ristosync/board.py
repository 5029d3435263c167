# ristosync/board.py
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from .config import EngineConfig
from .delay import DelayBand, DelayMonitor, classify, elapsed_minutes, table_reference, ticket_reference
from .models import Department, Order, OrderStatus, now_ms
from .notifications import EventType, Notice, dispatch
from .queue_sort import QueueSortStore, merge_queue_order, move
from .routing import DepartmentRouter
from .sync import LingeringSet, SnapshotDiff, SyncCoordinator, diff_snapshots

log = logging.getLogger(__name__)

ChangeCallback = Callable[[], Optional[Awaitable[None]]]


def _age_human(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    h, m = divmod(minutes, 60)
    return f"{h}h {m}m"


class _LiveView:
    """Parte comune delle viste: iscrizione allo store e timer periodici.

    Ogni vista vive nel proprio event loop; la notifica dello store può
    arrivare da un altro thread e viene riportata nel loop con
    call_soon_threadsafe.
    """

    def __init__(self, coordinator: SyncCoordinator, cfg: EngineConfig, clock: Callable[[], int]) -> None:
        self.coordinator = coordinator
        self.cfg = cfg
        self.clock = clock
        self.on_change: Optional[ChangeCallback] = None
        self._tasks: List[asyncio.Task] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # implementate dalle sottoclassi
    def refresh(self, now: Optional[int] = None):
        raise NotImplementedError

    def tick(self, now: Optional[int] = None):
        raise NotImplementedError

    async def _changed(self) -> None:
        if self.on_change is None:
            return
        try:
            res = self.on_change()
            if inspect.isawaitable(res):
                await res
        except Exception:
            log.exception("Aggiornamento vista fallito")

    def _on_store_change(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_refresh)

    def _schedule_refresh(self) -> None:
        self.refresh()
        self._tasks = [t for t in self._tasks if not t.done()]
        self._tasks.append(asyncio.ensure_future(self._changed()))

    async def _every(self, seconds: float, fn) -> None:
        while True:
            await asyncio.sleep(seconds)
            try:
                fn()
            except Exception:
                log.exception("Timer vista fallito")
            await self._changed()

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self.refresh()
        self._unsubscribe = self.coordinator.subscribe(self._on_store_change)
        self._tasks.append(asyncio.ensure_future(self._every(self.cfg.tick_seconds, self.tick)))

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for t in self._tasks:
            t.cancel()
        for t in self._tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
            except Exception:
                log.exception("Task vista terminato con errore")
        self._tasks = []
        self._loop = None


class TicketBoard(_LiveView):
    """Coda comande di un reparto (department=None → palmare del cameriere, tutti i reparti)."""

    def __init__(self, department: Optional[Department], coordinator: SyncCoordinator,
                 router: DepartmentRouter, *, cfg: Optional[EngineConfig] = None, sink=None,
                 printer=None, sort_store: Optional[QueueSortStore] = None,
                 clock: Callable[[], int] = now_ms) -> None:
        cfg = cfg or EngineConfig()
        super().__init__(coordinator, cfg, clock)
        self.department = department
        self.router = router
        self.sink = sink
        self.printer = printer
        self.sort_store = sort_store
        self.lingering = LingeringSet(int(cfg.linger_minutes * 60 * 1000))
        self.delay = DelayMonitor(cfg.delay_warning_minutes, cfg.delay_critical_minutes)
        self._previous: Optional[List[Order]] = None
        self._orders: List[Order] = []

    @property
    def label(self) -> str:
        return self.department.value if self.department else "Sala"

    @property
    def channel(self) -> str:
        return f"kds:{self.department.value}" if self.department else "waiter"

    def _notice(self, type_: EventType, text: str, order: Optional[Order] = None) -> None:
        # il palmare non è un reparto: i suoi avvisi non devono finire alla postazione Sala
        dispatch(self.sink, Notice(type_, text, department=self.department.value if self.department else None,
                                   order_id=order.id if order else None, channel=self.channel))

    # --- snapshot ----------------------------------------------------------------

    def refresh(self, now: Optional[int] = None) -> SnapshotDiff:
        now = self.clock() if now is None else now
        current = self.coordinator.read_all()
        if self._previous is None:
            # primo caricamento: niente suoni/toast per gli ordini già presenti
            self._previous = current
            self._orders = current
            return SnapshotDiff()
        diff = diff_snapshots(self._previous, current, self.department, self.router)
        self._previous = current
        self._orders = current
        self._apply(diff, now)
        return diff

    def _apply(self, diff: SnapshotDiff, now: int) -> None:
        for o in diff.added:
            self._notice(EventType.NEW_ORDER, f"Nuovo ordine Tavolo {o.display_table}", o)
            self._auto_print(o)
        for o in diff.extended:
            # ristampa con le righe marcate AGGIUNTA
            self._auto_print(o)
        for c in diff.item_completions:
            self._notice(EventType.ITEM_READY, f"{c.name} - Tavolo {c.order.display_table} pronto", c.order)
        for o in diff.department_done:
            self.lingering.add(o.id, now)
        for o in diff.became_ready:
            self.lingering.add(o.id, now)
            self._notice(EventType.ORDER_READY, f"Tavolo {o.display_table} PRONTO!", o)
        for o in diff.became_delivered:
            self.lingering.add(o.id, now)
            self.delay.forget(o.id)
            self._notice(EventType.ORDER_DELIVERED, f"Tavolo {o.display_table} servito", o)

    def _auto_print(self, order: Order) -> None:
        if self.printer is None or self.department is None:
            return
        if not self.router.settings.prints_for(self.department):
            return
        try:
            self.printer.print_order(order, self.department)
        except Exception:
            log.exception("Stampa automatica ordine %s fallita", order.id)

    # --- visibilità ----------------------------------------------------------------

    def _is_open(self, order: Order) -> bool:
        if not order.is_active or not self.router.has_relevant_items(order, self.department):
            return False
        if self.department is None:
            return True
        return not self.router.all_done_for(order, self.department)

    def visible(self, now: Optional[int] = None) -> List[Order]:
        now = self.clock() if now is None else now
        shown = [
            o for o in self._orders
            if self._is_open(o) or (self.lingering.contains(o.id, now)
                                   and self.router.has_relevant_items(o, self.department))
        ]
        saved = self.sort_store.load(self.department) if (self.sort_store and self.department) else []
        return merge_queue_order(saved, shown)

    def reorder(self, dragged: str, target: str) -> List[str]:
        ids = move([o.id for o in self.visible()], dragged, target)
        if self.sort_store is not None and self.department is not None:
            self.sort_store.save(self.department, ids)
        return ids

    # --- timer -----------------------------------------------------------------

    def tick(self, now: Optional[int] = None) -> List[str]:
        now = self.clock() if now is None else now
        for ev in self.delay.tick([o for o in self._orders if self._is_open(o)], now):
            type_ = EventType.DELAY_CRITICAL if ev.band == DelayBand.CRITICAL else EventType.DELAY_WARNING
            self._notice(type_, f"Tavolo {ev.order.display_table} in attesa da {ev.minutes} minuti", ev.order)
        return self.lingering.expire(now)

    # --- payload -----------------------------------------------------------------

    def ticket(self, order: Order, now: Optional[int] = None) -> dict:
        now = self.clock() if now is None else now
        minutes = elapsed_minutes(ticket_reference(order), now)
        rows = []
        for idx, item in enumerate(order.items):
            if not self.router.is_relevant(item, self.department):
                continue
            row = {
                "index": idx,
                "separator": item.is_separator,
                "name": item.menu_item.name,
                "quantity": item.quantity,
                "notes": list(item.notes or []),
                "done": self.router.is_fully_done_for(item, self.department),
                "served": item.served,
                "added_later": item.is_added_later,
            }
            if item.is_combo:
                parts = set(item.combo_completed_parts or [])
                row["subs"] = [
                    {"id": s.id, "name": s.name, "done": s.id in parts}
                    for s in self.router.sub_items_for(self.department, item)
                ]
            rows.append(row)
        return {
            "id": order.id,
            "table": order.display_table,
            "status": order.status.value,
            "waiter": order.waiter_name,
            "source": order.source,
            "elapsed": _age_human(minutes),
            "delay": self.delay.band_for(order, now).value if order.status in (OrderStatus.PENDING, OrderStatus.COOKING) else DelayBand.NORMAL.value,
            "lingering": order.id in self.lingering and not self._is_open(order),
            "items": rows,
        }

    def payload(self, now: Optional[int] = None) -> dict:
        now = self.clock() if now is None else now
        return {"department": self.label, "tickets": [self.ticket(o, now) for o in self.visible(now)]}


# ---------------------------------------------------------------------------
# Monitor tavoli
# ---------------------------------------------------------------------------

def table_status(orders: List[Order]) -> str:
    """free | completed | ready | cooking | occupied, guardando gli ordini attivi del tavolo."""
    active = [o for o in orders if o.is_active]
    if not active:
        return "free"
    items = [i for o in active for i in (o.items or []) if not i.is_separator]
    if all(i.served for i in items):
        return "completed"
    if any(i.completed and not i.served for i in items):
        return "ready"
    if any(not i.completed for i in items):
        return "cooking"
    return "occupied"


class TableMonitor(_LiveView):
    """Panoramica tavoli: stato, cameriere, tempo dal primo ordine ancora aperto."""

    def __init__(self, coordinator: SyncCoordinator, *, cfg: Optional[EngineConfig] = None,
                 sink=None, clock: Callable[[], int] = now_ms) -> None:
        cfg = cfg or EngineConfig()
        super().__init__(coordinator, cfg, clock)
        self.sink = sink
        self.delay = DelayMonitor(cfg.delay_warning_minutes, cfg.delay_critical_minutes)
        self._orders: List[Order] = []

    def refresh(self, now: Optional[int] = None) -> None:
        self._orders = self.coordinator.read_all()

    def _by_table(self) -> Dict[str, List[Order]]:
        tables: Dict[str, List[Order]] = {str(n): [] for n in range(1, self.cfg.table_count + 1)}
        for o in self._orders:
            if o.is_active:
                tables.setdefault(o.table_number, []).append(o)
        return tables

    def tick(self, now: Optional[int] = None) -> None:
        now = self.clock() if now is None else now
        for table, orders in self._by_table().items():
            ref = table_reference(orders)
            if ref is None:
                continue
            oldest = min((o for o in orders if o.is_active), key=lambda o: o.created_at)
            ev = self.delay.observe(oldest, elapsed_minutes(ref, now))
            if ev is None:
                continue
            type_ = EventType.DELAY_CRITICAL if ev.band == DelayBand.CRITICAL else EventType.DELAY_WARNING
            dispatch(self.sink, Notice(type_, f"Tavolo {oldest.display_table} in attesa da {ev.minutes} minuti",
                                       order_id=oldest.id, channel="monitor"))
        self.delay.prune(o.id for o in self._orders if o.is_active)

    def overview(self, now: Optional[int] = None) -> List[dict]:
        now = self.clock() if now is None else now
        out = []
        for table, orders in self._by_table().items():
            ref = table_reference(orders)
            minutes = elapsed_minutes(ref, now) if ref is not None else None
            waiter = next((o.waiter_name for o in orders if o.waiter_name), None)
            out.append({
                "table": table,
                "status": table_status(orders),
                "waiter": waiter,
                "orders": [o.id for o in orders],
                "elapsed": _age_human(minutes) if minutes is not None else None,
                "minutes": minutes,
                "delay": self.delay_band(minutes).value if minutes is not None else None,
            })
        return out

    def delay_band(self, minutes: int) -> DelayBand:
        return classify(minutes, self.delay.warning, self.delay.critical)

    def counts(self, now: Optional[int] = None) -> Dict[str, int]:
        counts = {"free": 0, "occupied": 0, "cooking": 0, "ready": 0, "completed": 0}
        for row in self.overview(now):
            counts[row["status"]] = counts.get(row["status"], 0) + 1
        return counts
