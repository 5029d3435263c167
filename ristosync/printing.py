# ristosync/printing.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from .config import PrinterConfig
from .models import Department, Order
from .receipts.printing_service import print_text, render_template
from .routing import DepartmentRouter

log = logging.getLogger(__name__)

TICKET_TEMPLATE = "ticket.j2"


class TicketPrinter:
    """Comanda di reparto: solo le righe che riguardano quel reparto.

    La stampa è best effort: una stampante spenta viene loggata e basta,
    l'ordine resta comunque salvato.
    """

    def __init__(self, cfg: PrinterConfig, router: DepartmentRouter,
                 sender: Callable[[str, int, str], None] = print_text) -> None:
        self.cfg = cfg
        self.router = router
        self.sender = sender

    def rows(self, order: Order, department: Department) -> List[dict]:
        out = []
        for item in self.router.ticket_items(order, department):
            if item.is_separator:
                out.append({"separator": True})
                continue
            subs = [s.name for s in self.router.sub_items_for(department, item)] if item.is_combo else []
            out.append({
                "separator": False,
                "quantity": item.quantity,
                "name": item.menu_item.name,
                "notes": list(item.notes or []),
                "subs": subs,
                "added_later": item.is_added_later,
            })
        return out

    def render(self, order: Order, department: Department) -> Optional[str]:
        rows = self.rows(order, department)
        if not any(not r["separator"] for r in rows):
            return None  # niente da preparare per questo reparto
        return render_template(TICKET_TEMPLATE, {
            "restaurant_name": self.cfg.restaurant_name,
            "logo": self.cfg.logo,
            "department": department.value,
            "table": order.display_table,
            "waiter": order.waiter_name,
            "time": datetime.fromtimestamp(order.timestamp / 1000).strftime("%H:%M"),
            "rows": rows,
        })

    def print_order(self, order: Order, department: Department) -> bool:
        if not self.cfg.enabled:
            return False
        text = self.render(order, department)
        if text is None:
            return False
        try:
            self.sender(self.cfg.host, self.cfg.port, text)
        except Exception:
            log.exception("Stampa comanda %s (%s) fallita", order.id, department.value)
            return False
        log.info("Comanda %s stampata su %s", order.id, department.value)
        return True
