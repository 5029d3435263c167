# ristosync/errors.py
from __future__ import annotations


class EngineError(Exception):
    """Errore di dominio del motore ordini."""


class OrderNotFound(EngineError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Ordine {order_id} non trovato")
        self.order_id = order_id


class InvalidTransition(EngineError):
    def __init__(self, operation: str, status) -> None:
        label = getattr(status, "value", status)
        super().__init__(f"{operation}: transizione non ammessa dallo stato '{label}'")
        self.operation = operation
        self.status = status


class ItemNotCompletable(EngineError):
    """Indice fuori range, separatore, o sotto-piatto estraneo al menu combo."""


class EmptyCart(EngineError):
    def __init__(self) -> None:
        super().__init__("Carrello vuoto: niente da inviare")
