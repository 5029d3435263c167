from ristosync.board import TicketBoard
from ristosync.config import EngineConfig
from ristosync.models import Department, OrderStatus, separator_item
from ristosync.notifications import EventType, MemorySink
from ristosync.sync import LingeringSet, diff_snapshots

WINDOW = 5 * 60_000


def test_added_only_when_relevant(router, machine, line):
    pizza = machine.create_order("1", [line("demo_pz1")])
    pasta = machine.create_order("2", [line("demo_p1")])
    diff = diff_snapshots([], [pizza, pasta], Department.CUCINA, router)
    assert diff.added == [pasta]
    assert diff_snapshots([], [pizza, pasta], None, router).added == [pizza, pasta]


def test_item_completion_and_department_done(router, machine, line):
    old = machine.create_order("1", [line("demo_a1"), line("demo_p1"), line("demo_pz1")])
    mid = machine.toggle_item(old, 0)
    diff = diff_snapshots([old], [mid], Department.CUCINA, router)
    assert [c.name for c in diff.item_completions] == ["Tagliere del Contadino"]
    assert diff.department_done == []

    new = machine.toggle_item(mid, 1)
    diff = diff_snapshots([mid], [new], Department.CUCINA, router)
    assert diff.department_done == [new]
    # la pizzeria non vede nulla
    assert not diff_snapshots([mid], [new], Department.PIZZERIA, router)


def test_combo_part_completion_is_per_department(router, machine, line):
    old = machine.create_order("1", [line("demo_m1")])
    new = machine.toggle_item(old, 0, "demo_pz1")
    diff = diff_snapshots([old], [new], Department.PIZZERIA, router)
    assert [(c.item_index, c.sub_item_id) for c in diff.item_completions] == [(0, "demo_pz1")]
    assert diff.department_done == [new]
    assert diff_snapshots([old], [new], Department.SALA, router).item_completions == []


def test_status_transitions(router, machine, line):
    pending = machine.create_order("1", [line("demo_p1")])
    ready = machine.promote_ready(pending)
    diff = diff_snapshots([pending], [ready], Department.CUCINA, router)
    assert diff.became_ready == [ready]
    delivered = machine.deliver(ready)
    diff = diff_snapshots([ready], [delivered], Department.CUCINA, router)
    assert diff.became_delivered == [delivered]
    assert diff.became_ready == []


def test_lingering_set_window():
    s = LingeringSet(WINDOW)
    s.add("a", 1000)
    assert s.contains("a", 1000 + WINDOW - 1)
    assert not s.contains("a", 1000 + WINDOW)
    s.add("a", 2000)  # uscita successiva: la finestra riparte
    assert s.contains("a", 1000 + WINDOW)
    assert s.expire(2000 + WINDOW) == ["a"]
    assert "a" not in s


def test_delivered_order_lingers_exactly_the_window(coordinator, service, router, line, clock):
    sink = MemorySink()
    board = TicketBoard(Department.CUCINA, coordinator, router, cfg=EngineConfig(linger_minutes=5),
                        sink=sink, clock=clock)
    board.refresh()

    order = service.submit_cart("7", [line("demo_p1")], "Marco")
    board.refresh()
    assert [o.id for o in board.visible()] == [order.id]
    assert [n.type for n in sink.notices] == [EventType.NEW_ORDER]

    clock.minutes(1)
    service.start(order.id)
    board.refresh()
    clock.minutes(1)
    service.force_ready(order.id)
    board.refresh()
    clock.minutes(2)
    service.deliver(order.id)
    board.refresh()
    delivered_at = clock.now
    assert service.get(order.id).status == OrderStatus.DELIVERED
    assert sink.of_type(EventType.ORDER_DELIVERED)

    assert [o.id for o in board.visible(delivered_at + WINDOW - 1)] == [order.id]
    assert board.visible(delivered_at + WINDOW) == []
    assert board.tick(delivered_at + WINDOW) == [order.id]


def test_first_load_is_silent(coordinator, service, router, line, clock):
    service.submit_cart("7", [line("demo_p1")])
    sink = MemorySink()
    board = TicketBoard(Department.CUCINA, coordinator, router, sink=sink, clock=clock)
    board.refresh()
    assert sink.notices == []
    assert len(board.visible()) == 1


def test_department_done_leaves_queue_after_linger(coordinator, service, router, line, clock):
    board = TicketBoard(Department.CUCINA, coordinator, router, clock=clock)
    board.refresh()
    order = service.submit_cart("2", [line("demo_p1"), line("demo_pz1")])
    board.refresh()
    service.toggle_item(order.id, 0)
    board.refresh()
    done_at = clock.now
    # stato invariato ma per la cucina è finito: resta solo per la finestra
    assert service.get(order.id).status == OrderStatus.PENDING
    assert [o.id for o in board.visible(done_at + WINDOW - 1)] == [order.id]
    assert board.visible(done_at + WINDOW) == []


def test_waiter_pad_notices_are_not_stamped_as_a_department(coordinator, service, router, line, clock):
    sink = MemorySink()
    pad = TicketBoard(None, coordinator, router, sink=sink, clock=clock)
    pad.refresh()
    service.submit_cart("8", [line("demo_pz1")])
    pad.refresh()
    [notice] = sink.notices
    assert notice.type == EventType.NEW_ORDER
    assert notice.department is None
    assert notice.channel == "waiter"


def test_additions_extend_only_the_departments_they_touch(router, machine, line):
    old = machine.create_order("1", [line("demo_p1"), line("demo_pz1")])
    merged = machine.add_items(old, [line("demo_p1")])
    assert diff_snapshots([old], [merged], Department.CUCINA, router).extended == [merged]
    assert diff_snapshots([old], [merged], Department.PIZZERIA, router).extended == []

    appended = machine.add_items(old, [line("demo_a1")])
    assert diff_snapshots([old], [appended], Department.CUCINA, router).extended == [appended]
    separated = machine.add_items(old, [separator_item(1)])
    assert diff_snapshots([old], [separated], Department.CUCINA, router).extended == []
