# ristosync/combo.py
from __future__ import annotations

from typing import List

from .models import MenuItem, OrderItem


def expand(combo_item, catalog) -> List[MenuItem]:
    """Risolve i sotto-piatti di un menu combo tramite il catalogo.

    Accetta sia una riga d'ordine che il piatto stesso. Gli id non più
    presenti a catalogo (piatto cancellato) vengono scartati senza errori.
    Il risultato serve solo per routing e visibilità: non va mai salvato
    sull'ordine.
    """
    item: MenuItem = combo_item.menu_item if isinstance(combo_item, OrderItem) else combo_item
    if item is None or not item.is_combo or not item.combo_items:
        return []
    out: List[MenuItem] = []
    for sub_id in item.combo_items:
        sub = catalog.get(sub_id)
        if sub is not None:
            out.append(sub)
    return out
