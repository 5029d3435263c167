from ristosync.catalog import StaticCatalog
from ristosync.combo import expand
from ristosync.config import DepartmentSettings
from ristosync.models import Category, Department, MenuItem, OrderItem, separator_item
from ristosync.routing import DepartmentRouter


def test_default_destinations(router, catalog):
    assert router.resolve_department(catalog.get("demo_a1")) == Department.CUCINA
    assert router.resolve_department(catalog.get("demo_pz1")) == Department.PIZZERIA
    assert router.resolve_department(catalog.get("demo_pn1")) == Department.PUB
    assert router.resolve_department(catalog.get("demo_b2")) == Department.SALA


def test_override_beats_category(router):
    dish = MenuItem(id="x", name="Bruschetta al banco", category=Category.ANTIPASTI,
                    specific_department=Department.PUB)
    assert router.resolve_department(dish) == Department.PUB


def test_unknown_destination_falls_back_to_default(catalog):
    s = DepartmentSettings(category_destinations={"Pizze": "Forno a legna"}, default_department="Pub")
    r = DepartmentRouter(s, catalog)
    assert r.resolve_department(catalog.get("demo_pz1")) == Department.PUB
    # categoria senza destinazione → default
    assert r.resolve_department(catalog.get("demo_a1")) == Department.PUB


def test_settings_provider_changes_are_seen(catalog):
    from ristosync.config import AppConfig
    from ristosync.settings import SettingsProvider

    provider = SettingsProvider(AppConfig())
    r = DepartmentRouter(provider, catalog)
    calls = []
    provider.subscribe(lambda: calls.append(1))
    provider.update(category_destinations={"Pizze": "Cucina"})
    assert r.resolve_department(catalog.get("demo_pz1")) == Department.CUCINA
    # il resto della mappa resta quello di prima
    assert r.resolve_department(catalog.get("demo_pn1")) == Department.PUB
    assert calls == [1]


def test_combo_relevance(router, line):
    combo = line("demo_m1")  # pizza + bibita
    assert router.is_relevant(combo, Department.PIZZERIA)
    assert router.is_relevant(combo, Department.SALA)
    assert not router.is_relevant(combo, Department.CUCINA)
    assert [s.id for s in router.sub_items_for(Department.PIZZERIA, combo)] == ["demo_pz1"]


def test_combo_vacuously_done_for_unrelated_department(router, line):
    combo = line("demo_m1")
    assert router.is_fully_done_for(combo, Department.CUCINA)
    assert not router.is_fully_done_for(combo, Department.PIZZERIA)
    combo.combo_completed_parts = ["demo_pz1"]
    assert router.is_fully_done_for(combo, Department.PIZZERIA)
    assert not router.is_fully_done_for(combo, Department.SALA)


def test_separator_always_relevant_never_done(router):
    sep = separator_item(1)
    for d in Department:
        assert router.is_relevant(sep, d)
        assert not router.is_fully_done_for(sep, d)


def test_expand_drops_missing_ids():
    pizza = MenuItem(id="pz", name="Margherita", category=Category.PIZZE)
    combo = MenuItem(id="m", name="Menu", category=Category.MENU_COMPLETO, combo_items=["pz", "cancellato"])
    subs = expand(OrderItem(menu_item=combo), StaticCatalog([pizza]))
    assert [s.id for s in subs] == ["pz"]
    assert expand(pizza, StaticCatalog([pizza])) == []


def test_all_done_ignores_separators(router, machine, line):
    order = machine.create_order("4", [line("demo_a1")])
    order = machine.add_items(order, [separator_item(2)])
    assert not router.all_done_for(order, Department.CUCINA)
    order = machine.toggle_item(order, 0)
    assert router.all_done_for(order, Department.CUCINA)
    # solo bevande: nulla per la pizzeria
    assert not router.has_relevant_items(order, Department.PIZZERIA)
    assert not router.all_done_for(order, Department.PIZZERIA)


def test_sala_items_are_auto_completed(router, catalog):
    assert router.is_auto_completed(catalog.get("demo_b1"))
    assert not router.is_auto_completed(catalog.get("demo_a1"))
    assert not router.is_auto_completed(catalog.get("demo_m1"))
