# ristosync/voice.py
from __future__ import annotations

import asyncio
import inspect
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Tuple

from .errors import EngineError
from .models import Department, Order
from .notifications import EventType, Notice, dispatch
from .orders import OrderService
from .routing import DepartmentRouter

log = logging.getLogger(__name__)

NUMBER_WORDS = {
    "uno": "1", "due": "2", "tre": "3", "quattro": "4", "cinque": "5",
    "sei": "6", "sette": "7", "otto": "8", "nove": "9", "dieci": "10",
}
DEFAULT_KEYWORDS = ("pronto", "fatto", "via", "completa")
SCROLL_DOWN_WORDS = ("scorri giù", "scorri giu", "sotto")
SCROLL_UP_WORDS = ("scorri su", "sopra")

_NUMBER_RE = re.compile(r"(\d+)")


class VoiceResult(str, Enum):
    ITEM_DONE = "item-done"
    ORDER_READY = "order-ready"
    TABLE_NOT_FOUND = "table-not-found"
    NOT_UNDERSTOOD = "not-understood"
    SCROLL_DOWN = "scroll-down"
    SCROLL_UP = "scroll-up"


@dataclass
class VoiceOutcome:
    result: VoiceResult
    text: str
    order: Optional[Order] = None
    item_index: Optional[int] = None
    sub_item_id: Optional[str] = None


def normalize(transcript: str) -> str:
    """Minuscolo e numeri in cifre ("tavolo tre" → "tavolo 3")."""
    text = (transcript or "").strip().lower()
    for word, digit in NUMBER_WORDS.items():
        text = re.sub(rf"\b{word}\b", digit, text)
    return text


def parse(text: str, keywords: Iterable[str] = DEFAULT_KEYWORDS) -> Tuple[Optional[str], bool]:
    m = _NUMBER_RE.search(text)
    return (m.group(1) if m else None), any(k in text for k in keywords)


def match_table(orders: Iterable[Order], table: str) -> Optional[Order]:
    """Primo ordine attivo il cui tavolo corrisponde al numero detto.

    Le strategie si provano in ordine su tutti gli ordini attivi; niente
    "finisce con N" nudo, altrimenti "3" troverebbe il tavolo 13.
    """
    active = [o for o in orders if o.is_active]
    strategies = (
        lambda t: t == table,
        lambda t: t.lower() == table,
        lambda t: t.endswith(f" {table}") or t.endswith(f"_{table}"),
        lambda t: t == f"Tavolo {table}",
    )
    for check in strategies:
        for o in active:
            if check(o.table_number):
                return o
    return None


class VoiceCommandInterpreter:
    """Comandi vocali della postazione: "tavolo 3 pronto" completa UN piatto alla volta."""

    def __init__(self, department: Department, service: OrderService, router: DepartmentRouter,
                 sink=None, keywords: Optional[Iterable[str]] = None) -> None:
        self.department = department
        self.service = service
        self.router = router
        self.sink = sink
        self.keywords = tuple(keywords or DEFAULT_KEYWORDS)

    def _notify(self, outcome: VoiceOutcome) -> VoiceOutcome:
        ok = outcome.result not in (VoiceResult.TABLE_NOT_FOUND, VoiceResult.NOT_UNDERSTOOD)
        if outcome.result in (VoiceResult.SCROLL_DOWN, VoiceResult.SCROLL_UP):
            return outcome
        dispatch(self.sink, Notice(
            type=EventType.VOICE_ACK if ok else EventType.VOICE_FAIL,
            text=outcome.text,
            department=self.department.value,
            order_id=outcome.order.id if outcome.order else None,
        ))
        return outcome

    def _next_target(self, order: Order) -> Optional[Tuple[int, Optional[str], str]]:
        for idx, item in enumerate(order.items):
            if item.is_separator or not self.router.is_relevant(item, self.department):
                continue
            if item.is_combo:
                parts = set(item.combo_completed_parts or [])
                for sub in self.router.sub_items_for(self.department, item):
                    if sub.id not in parts:
                        return idx, sub.id, sub.name
            elif not item.completed:
                return idx, None, item.menu_item.name
        return None

    def handle(self, transcript: str) -> VoiceOutcome:
        text = normalize(transcript)
        log.debug("Voce (%s): %r", self.department.value, text)
        table, has_keyword = parse(text, self.keywords)

        if table and has_keyword:
            order = match_table(self.service.orders(), table)
            if order is None:
                return self._notify(VoiceOutcome(VoiceResult.TABLE_NOT_FOUND, f"VOCALE: Tavolo {table} non trovato"))
            target = self._next_target(order)
            try:
                if target is not None:
                    idx, sub_id, name = target
                    done = self.service.complete_item(order.id, idx, sub_id)
                    return self._notify(VoiceOutcome(
                        VoiceResult.ITEM_DONE, f"VOCALE: {name} - Tavolo {table} PRONTO!",
                        order=done, item_index=idx, sub_item_id=sub_id,
                    ))
                ready = self.service.promote_ready(order.id)
            except EngineError as e:
                # ordine cambiato nel frattempo da un'altra vista
                log.warning("Comando vocale su %s non applicato: %s", order.id, e)
                return self._notify(VoiceOutcome(VoiceResult.NOT_UNDERSTOOD, f"VOCALE: {e}", order=order))
            return self._notify(VoiceOutcome(
                VoiceResult.ORDER_READY, f"VOCALE: Tavolo {table} COMPLETAMENTE PRONTO!", order=ready))

        if any(w in text for w in SCROLL_DOWN_WORDS):
            return VoiceOutcome(VoiceResult.SCROLL_DOWN, "scroll")
        if any(w in text for w in SCROLL_UP_WORDS):
            return VoiceOutcome(VoiceResult.SCROLL_UP, "scroll")
        return self._notify(VoiceOutcome(VoiceResult.NOT_UNDERSTOOD, f'Sentito: "{text}" (Ripeti?)'))


# ---------------------------------------------------------------------------
# Ascolto continuo
# ---------------------------------------------------------------------------

PERMANENT_ERRORS = frozenset({"not-allowed", "service-not-allowed"})


class SpeechError(Exception):
    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code

    @property
    def permanent(self) -> bool:
        return self.code in PERMANENT_ERRORS


_END = object()


class QueueSpeechSource:
    """Sorgente di trascrizioni alimentata dall'esterno (WebSocket / HTTP)."""

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()

    def push(self, transcript: str) -> None:
        self._queue.put_nowait(transcript)

    def fail(self, code: str) -> None:
        self._queue.put_nowait(SpeechError(code))

    def end(self) -> None:
        self._queue.put_nowait(_END)

    def stop(self) -> None:
        self.end()

    async def listen(self):
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            if isinstance(item, SpeechError):
                raise item
            yield item


class ListenerSupervisor:
    """Tiene vivo l'ascolto: riparte dopo gli errori transitori, mai dopo stop o permesso negato."""

    def __init__(self, source, handler: Callable[[str], object],
                 restart_delay: float = 0.3, sink=None, department: Optional[str] = None) -> None:
        self.source = source
        self.handler = handler
        self.restart_delay = restart_delay
        self.sink = sink
        self.department = department
        self.enabled = False
        self.restarts = 0
        self.stopped_reason: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        self.enabled = True
        self.stopped_reason = None
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def stop(self) -> None:
        self.enabled = False
        self.stopped_reason = "stopped"
        self.source.stop()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _deliver(self, transcript: str) -> None:
        try:
            res = self.handler(transcript)
            if inspect.isawaitable(res):
                await res
        except Exception:
            log.exception("Gestione comando vocale fallita")

    async def _run(self) -> None:
        while self.enabled:
            try:
                async for transcript in self.source.listen():
                    if not self.enabled:
                        break
                    await self._deliver(transcript)
            except SpeechError as e:
                if e.permanent:
                    self.enabled = False
                    self.stopped_reason = e.code
                    log.warning("Microfono non disponibile (%s): ascolto fermato", e.code)
                    dispatch(self.sink, Notice(EventType.VOICE_FAIL, "Accesso Microfono Negato", department=self.department))
                    return
                log.info("Ascolto interrotto (%s): riavvio", e.code)
            if not self.enabled:
                return
            await asyncio.sleep(self.restart_delay)
            self.restarts += 1


def supervise(interpreter: VoiceCommandInterpreter, source, restart_delay: float = 0.3) -> ListenerSupervisor:
    return ListenerSupervisor(source, interpreter.handle, restart_delay=restart_delay,
                              sink=interpreter.sink, department=interpreter.department.value)

