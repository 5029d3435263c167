import pytest

from ristosync.board import TableMonitor, TicketBoard, table_status
from ristosync.delay import DelayBand, DelayMonitor, classify, table_reference
from ristosync.models import Department
from ristosync.notifications import EventType, MemorySink


@pytest.mark.parametrize(
    "minutes,band",
    [(0, DelayBand.NORMAL), (14, DelayBand.NORMAL), (15, DelayBand.WARNING), (24, DelayBand.WARNING),
     (25, DelayBand.CRITICAL), (26, DelayBand.CRITICAL)],
)
def test_bands(minutes, band):
    assert classify(minutes) == band


def test_escalation_fires_once(machine, line):
    order = machine.create_order("1", [line("demo_p1")])
    mon = DelayMonitor()
    events = [mon.observe(order, m) for m in (25, 26, 27)]
    assert [e.band for e in events if e] == [DelayBand.CRITICAL]


def test_warning_then_critical(machine, line):
    order = machine.create_order("1", [line("demo_p1")])
    mon = DelayMonitor()
    events = [mon.observe(order, m) for m in (10, 15, 20, 25, 30)]
    assert [e.band for e in events if e] == [DelayBand.WARNING, DelayBand.CRITICAL]
    mon.forget(order.id)
    assert mon.observe(order, 30).band == DelayBand.CRITICAL


def test_ready_orders_are_not_monitored(machine, line):
    ready = machine.promote_ready(machine.create_order("1", [line("demo_p1")]))
    assert DelayMonitor().observe(ready, 40) is None


def test_table_reference_uses_oldest_active(machine, line, clock):
    first = machine.create_order("1", [line("demo_p1")])
    clock.minutes(10)
    second = machine.create_order("1", [line("demo_a1")])
    assert table_reference([second, first]) == first.created_at
    assert table_reference([machine.archive(first), second]) == second.created_at
    assert table_reference([]) is None


def test_table_status(machine, line):
    order = machine.create_order("1", [line("demo_p1"), line("demo_b1")])
    assert table_status([]) == "free"
    # la bibita è pronta (sala) ma non servita
    assert table_status([order]) == "ready"
    order = machine.serve_item(order, 1)
    assert table_status([order]) == "cooking"
    order = machine.serve_item(machine.toggle_item(order, 0), 0)
    assert table_status([order]) == "completed"
    assert table_status([machine.archive(order)]) == "free"


def test_monitor_overview_and_delay(coordinator, service, line, clock):
    sink = MemorySink()
    mon = TableMonitor(coordinator, sink=sink, clock=clock)
    service.submit_cart("3", [line("demo_p1")], "Anna")
    mon.refresh()
    rows = {r["table"]: r for r in mon.overview()}
    assert len(rows) == 12
    assert rows["3"]["status"] == "cooking"
    assert rows["3"]["waiter"] == "Anna"
    assert rows["1"]["status"] == "free"

    clock.minutes(26)
    mon.tick()
    mon.tick()
    assert [n.type for n in sink.notices] == [EventType.DELAY_CRITICAL]
    assert {r["table"]: r for r in mon.overview()}["3"]["delay"] == "critical"
    assert mon.counts()["free"] == 11


def test_band_follows_previous_tick(machine, line):
    order = machine.create_order("1", [line("demo_p1")])
    mon = DelayMonitor()
    assert mon.observe(order, 26).band == DelayBand.CRITICAL
    # ordine modificato: il riferimento riparte e la fascia torna normale
    assert mon.observe(order, 1) is None
    assert mon.observe(order, 26).band == DelayBand.CRITICAL


def test_board_renotifies_after_order_change(coordinator, service, router, line, clock):
    sink = MemorySink()
    board = TicketBoard(Department.CUCINA, coordinator, router, sink=sink, clock=clock)
    board.refresh()
    order = service.submit_cart("4", [line("demo_p1"), line("demo_a1")])
    board.refresh()
    clock.minutes(26)
    board.tick()
    service.toggle_item(order.id, 0)
    board.refresh()
    clock.minutes(1)
    board.tick()
    clock.minutes(25)
    board.tick()
    assert len(sink.of_type(EventType.DELAY_CRITICAL)) == 2
