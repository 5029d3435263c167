# ristosync/models_store.py
from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, BigInteger, Column


class MenuItemRow(SQLModel, table=True):
    __tablename__ = "menu_item"
    id: str = Field(primary_key=True)
    name: str
    price: float = 0.0
    category: str = Field(index=True)
    description: Optional[str] = None
    ingredients: Optional[str] = None
    allergens: Optional[list[str]] = Field(default=None, sa_type=JSON)
    combo_items: Optional[list[str]] = Field(default=None, sa_type=JSON)
    specific_department: Optional[str] = None


class OrderRecord(SQLModel, table=True):
    __tablename__ = "order_record"
    id: str = Field(primary_key=True)
    table_number: str = Field(index=True)
    status: str = Field(index=True)
    # ms epoch: servono 64 bit
    created_at: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    timestamp: int = Field(sa_column=Column(BigInteger, nullable=False))
    # l'ordine completo (righe, combo, metadati delivery) in JSON
    payload: dict = Field(default_factory=dict, sa_type=JSON)


class QueueSortRecord(SQLModel, table=True):
    __tablename__ = "queue_sort"
    department: str = Field(primary_key=True)
    order_ids: list[str] = Field(default_factory=list, sa_type=JSON)
