# ristosync/models.py
from __future__ import annotations

import random
import string
import time
from enum import Enum
from typing import List, Optional

from sqlmodel import SQLModel, Field


def now_ms() -> int:
    return int(time.time() * 1000)


class OrderStatus(str, Enum):
    PENDING = "In Attesa"
    COOKING = "In Preparazione"
    READY = "Pronto"
    DELIVERED = "Servito"


class Category(str, Enum):
    MENU_COMPLETO = "Menu Completo"  # combo
    ANTIPASTI = "Antipasti"
    PANINI = "Panini"
    PIZZE = "Pizze"
    PRIMI = "Primi"
    SECONDI = "Secondi"
    DOLCI = "Dolci"
    BEVANDE = "Bevande"


class Department(str, Enum):
    CUCINA = "Cucina"
    SALA = "Sala"
    PIZZERIA = "Pizzeria"
    PUB = "Pub"


# Prefissi/suffissi dei "tavoli" fittizi
DELIVERY_PREFIX = "DEL_"
TAKEAWAY_PREFIX = "ASP_"
HISTORY_SUFFIX = "_HISTORY"
SEPARATOR_ID_PREFIX = "separator_"


class MenuItem(SQLModel):
    """Copia di un piatto del menu, incorporata nelle righe d'ordine."""
    id: str
    name: str
    price: float = 0.0
    category: Category
    description: Optional[str] = None
    ingredients: Optional[str] = None
    allergens: List[str] = Field(default_factory=list)
    combo_items: List[str] = Field(default_factory=list)  # solo per Menu Completo
    specific_department: Optional[Department] = None      # override della categoria

    @property
    def is_combo(self) -> bool:
        return self.category == Category.MENU_COMPLETO


class OrderItem(SQLModel):
    menu_item: MenuItem
    quantity: int = Field(default=1, ge=1)
    notes: List[str] = Field(default_factory=list)
    completed: bool = False
    served: bool = False
    combo_completed_parts: List[str] = Field(default_factory=list)
    combo_served_parts: List[str] = Field(default_factory=list)
    is_separator: bool = False
    is_added_later: bool = False

    @property
    def is_combo(self) -> bool:
        return self.menu_item.is_combo and not self.is_separator


class Order(SQLModel):
    id: str
    table_number: str
    items: List[OrderItem] = Field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    created_at: int = Field(default_factory=now_ms)
    timestamp: int = Field(default_factory=now_ms)
    waiter_name: Optional[str] = None

    # delivery / asporto
    source: Optional[str] = None          # "table" | "just-eat" | "glovo" | "phone" | "takeaway" ...
    platform_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    delivery_time: Optional[str] = None
    delivery_notes: Optional[str] = None
    number_of_guests: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status != OrderStatus.DELIVERED

    @property
    def display_table(self) -> str:
        return display_table(self.table_number)


def display_table(table_number: str) -> str:
    """Numero tavolo "pulito" per toast e scontrini."""
    return (
        (table_number or "")
        .replace(HISTORY_SUFFIX, "")
        .replace(DELIVERY_PREFIX, "DEL ")
        .replace(TAKEAWAY_PREFIX, "ASP ")
        .strip()
    )


def new_order_id(now: Optional[int] = None) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"order_{now if now is not None else now_ms()}_{suffix}"


def separator_item(now: Optional[int] = None) -> OrderItem:
    """Separatore di portata ("a seguire"): sempre visibile, mai completabile."""
    return OrderItem(
        menu_item=MenuItem(
            id=f"{SEPARATOR_ID_PREFIX}{now if now is not None else now_ms()}",
            name="→ a seguire →",
            category=Category.ANTIPASTI,  # categoria fittizia
            price=0,
        ),
        quantity=1,
        is_separator=True,
    )
