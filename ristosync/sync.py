# ristosync/sync.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .backup import BackupResult, BackupWorker, NullBackup
from .models import Department, Order, OrderStatus
from .routing import DepartmentRouter

log = logging.getLogger(__name__)

LINGER_MS = 5 * 60 * 1000  # 5 minuti


# ---------------------------------------------------------------------------
# Scrittura locale + backup remoto
# ---------------------------------------------------------------------------

@dataclass
class WriteResult:
    order: Order
    backup: object  # concurrent.futures.Future[BackupResult]


class SyncCoordinator:
    """Scrive in locale (subito visibile a tutte le viste) e poi lancia il backup remoto.

    Se il backup fallisce la scrittura locale NON viene annullata: l'errore
    arriva a `on_notice` come avviso non bloccante.
    """

    def __init__(self, store, worker: Optional[BackupWorker] = None,
                 on_notice: Optional[Callable[[str], None]] = None) -> None:
        self.store = store
        self.worker = worker or BackupWorker(NullBackup())
        self.on_notice = on_notice

    def read_all(self) -> List[Order]:
        return self.store.read_all()

    def subscribe(self, listener):
        return self.store.subscribe(listener)

    def write(self, order: Order) -> WriteResult:
        self.store.write(order)
        fut = self.worker.submit(order)
        fut.add_done_callback(self._backup_done)
        return WriteResult(order=order, backup=fut)

    def _backup_done(self, fut) -> None:
        try:
            result: BackupResult = fut.result()
        except Exception:
            log.exception("Backup: future interrotto")
            return
        if result.ok or self.on_notice is None:
            return
        try:
            self.on_notice(result.notice)
        except Exception:
            log.exception("Impossibile mostrare l'avviso di backup")


# ---------------------------------------------------------------------------
# Diff fra snapshot (funzione pura: niente timer, niente I/O)
# ---------------------------------------------------------------------------

@dataclass
class ItemCompletion:
    order: Order
    item_index: int
    name: str
    sub_item_id: Optional[str] = None


@dataclass
class SnapshotDiff:
    added: List[Order] = field(default_factory=list)
    item_completions: List[ItemCompletion] = field(default_factory=list)
    became_ready: List[Order] = field(default_factory=list)
    became_delivered: List[Order] = field(default_factory=list)
    department_done: List[Order] = field(default_factory=list)
    # ordini esistenti con piatti aggiunti per il reparto
    extended: List[Order] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.added or self.item_completions or self.became_ready
                    or self.became_delivered or self.department_done or self.extended)


def _was_all_done(router: DepartmentRouter, order: Order, department: Optional[Department]) -> bool:
    # vacuamente vero se non c'erano piatti del reparto
    return all(router.is_fully_done_for(i, department) for i in router.relevant_items(order, department))


def _grew_for(router: DepartmentRouter, old: Order, new: Order, department: Optional[Department]) -> bool:
    # righe nuove o quantità aumentate (aggiunte unite a una riga esistente)
    for idx, item in enumerate(new.items):
        if item.is_separator or not router.is_relevant(item, department):
            continue
        if idx >= len(old.items) or item.quantity > old.items[idx].quantity:
            return True
    return False


def diff_snapshots(previous: List[Order], current: List[Order],
                   department: Optional[Department], router: DepartmentRouter) -> SnapshotDiff:
    """Confronta due snapshot dello store dal punto di vista di un reparto."""
    diff = SnapshotDiff()
    prev_by_id: Dict[str, Order] = {o.id: o for o in previous}

    for new in current:
        old = prev_by_id.get(new.id)
        relevant = router.has_relevant_items(new, department)

        if old is None:
            if relevant:
                diff.added.append(new)
            continue

        # piatti appena completati
        for idx, new_item in enumerate(new.items):
            if idx >= len(old.items) or new_item.is_separator:
                continue
            old_item = old.items[idx]
            if new_item.is_combo:
                before = set(old_item.combo_completed_parts or [])
                wanted = {s.id: s for s in router.sub_items_for(department, new_item)}
                for sub_id in new_item.combo_completed_parts or []:
                    if sub_id not in before and sub_id in wanted:
                        diff.item_completions.append(
                            ItemCompletion(new, idx, wanted[sub_id].name, sub_item_id=sub_id))
            elif not old_item.completed and new_item.completed and router.is_relevant(new_item, department):
                diff.item_completions.append(ItemCompletion(new, idx, new_item.menu_item.name))

        if not relevant:
            continue

        if new.status != OrderStatus.DELIVERED and _grew_for(router, old, new, department):
            diff.extended.append(new)

        if old.status != OrderStatus.READY and new.status == OrderStatus.READY:
            diff.became_ready.append(new)

        if old.status != OrderStatus.DELIVERED and new.status == OrderStatus.DELIVERED:
            diff.became_delivered.append(new)
        elif new.status != OrderStatus.DELIVERED:
            if router.all_done_for(new, department) and not _was_all_done(router, old, department):
                diff.department_done.append(new)

    return diff


# ---------------------------------------------------------------------------
# Ordini "in uscita" ancora visibili
# ---------------------------------------------------------------------------

class LingeringSet:
    """Ordini appena serviti/completati che restano visibili per una finestra fissa."""

    def __init__(self, window_ms: int = LINGER_MS) -> None:
        self.window_ms = int(window_ms)
        self._expiry: Dict[str, int] = {}

    def add(self, order_id: str, now: int) -> None:
        # una nuova uscita (es. Servito dopo Pronto) riparte da adesso
        self._expiry[order_id] = max(self._expiry.get(order_id, 0), now + self.window_ms)

    def __contains__(self, order_id: str) -> bool:
        return order_id in self._expiry

    def contains(self, order_id: str, now: int) -> bool:
        exp = self._expiry.get(order_id)
        return exp is not None and now < exp

    def expire(self, now: int) -> List[str]:
        gone = [oid for oid, exp in self._expiry.items() if now >= exp]
        for oid in gone:
            del self._expiry[oid]
        return gone
