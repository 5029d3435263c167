# ristosync/schemas.py
from __future__ import annotations

from typing import Dict, List, Optional

from sqlmodel import SQLModel, Field


class CartLine(SQLModel):
    menu_item_id: str
    quantity: int = Field(default=1, ge=1)
    notes: List[str] = Field(default_factory=list)


class CartIn(SQLModel):
    table_number: str
    items: List[CartLine]
    waiter_name: Optional[str] = None
    # delivery / asporto
    source: Optional[str] = None
    platform_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    delivery_time: Optional[str] = None
    delivery_notes: Optional[str] = None
    number_of_guests: Optional[int] = None

    def meta(self) -> dict:
        return self.model_dump(exclude={"table_number", "items", "waiter_name"}, exclude_none=True)


class ReorderIn(SQLModel):
    dragged: str
    target: str


class VoiceIn(SQLModel):
    transcript: str


class ListenIn(SQLModel):
    enabled: bool


class DepartmentsIn(SQLModel):
    category_destinations: Optional[Dict[str, str]] = None
    default_department: Optional[str] = None
    print_enabled: Optional[Dict[str, bool]] = None
    auto_complete_departments: Optional[List[str]] = None
