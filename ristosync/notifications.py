# ristosync/notifications.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .models import now_ms

log = logging.getLogger(__name__)


class EventType(str, Enum):
    NEW_ORDER = "new-order"
    ITEM_READY = "item-ready"
    ORDER_READY = "order-ready"
    ORDER_DELIVERED = "order-delivered"
    DELAY_WARNING = "delay-warning"
    DELAY_CRITICAL = "delay-critical"
    VOICE_ACK = "voice-ack"
    VOICE_FAIL = "voice-fail"
    BACKUP_FAILED = "backup-failed"


@dataclass
class Notice:
    type: EventType
    text: str
    department: Optional[str] = None
    order_id: Optional[str] = None
    # canale websocket esplicito ("waiter", "monitor"); altrimenti deciso dal reparto
    channel: Optional[str] = None
    at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "text": self.text,
            "department": self.department,
            "order_id": self.order_id,
            "channel": self.channel,
            "at": self.at,
        }


Sink = Callable[[Notice], None]


class LogSink:
    """Sink di default: scrive gli avvisi nel log."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.log = logger or log

    def __call__(self, notice: Notice) -> None:
        self.log.info("[%s] %s%s", notice.type.value,
                      f"{notice.department}: " if notice.department else "", notice.text)


class MemorySink:
    """Tiene gli avvisi in lista (test, anteprima)."""

    def __init__(self) -> None:
        self.notices: List[Notice] = []

    def __call__(self, notice: Notice) -> None:
        self.notices.append(notice)

    def of_type(self, type_: EventType) -> List[Notice]:
        return [n for n in self.notices if n.type == type_]


def dispatch(sink: Optional[Sink], notice: Notice) -> None:
    """Best effort: un sink rotto non deve mai annullare una modifica."""
    if sink is None:
        return
    try:
        sink(notice)
    except Exception:
        log.exception("Notifica %s non consegnata", notice.type.value)


class FanOutSink:
    """Inoltra ogni avviso a più sink (log, WebSocket...). Uno rotto non ferma gli altri."""

    def __init__(self, sinks: Optional[List[Sink]] = None) -> None:
        self.sinks: List[Sink] = list(sinks or [])

    def add(self, sink: Sink) -> None:
        self.sinks.append(sink)

    def remove(self, sink: Sink) -> None:
        if sink in self.sinks:
            self.sinks.remove(sink)

    def __call__(self, notice: Notice) -> None:
        for sink in list(self.sinks):
            dispatch(sink, notice)
