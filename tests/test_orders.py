import pytest

from ristosync.errors import OrderNotFound
from ristosync.models import HISTORY_SUFFIX, OrderStatus


def test_submit_cart_creates_then_merges(service, line):
    first = service.submit_cart("6", [line("demo_a1")], "Luca", number_of_guests=4)
    again = service.submit_cart("6", [line("demo_a1"), line("demo_p2")])
    assert again.id == first.id
    assert [(i.menu_item.id, i.quantity) for i in again.items] == [("demo_a1", 2), ("demo_p2", 1)]
    assert again.number_of_guests == 4
    assert len(service.orders()) == 1


def test_delivered_table_gets_a_new_order(service, line):
    first = service.submit_cart("6", [line("demo_a1")])
    service.deliver(service.force_ready(service.start(first.id).id).id)
    second = service.submit_cart("6", [line("demo_p1")])
    assert second.id != first.id
    assert service.active_for_table("6").id == second.id


def test_free_table_archives_active_orders(service, line):
    order = service.submit_cart("2", [line("demo_p1")])
    service.submit_cart("5", [line("demo_p1")])
    archived = service.free_table("2")
    assert [o.id for o in archived] == [order.id]
    stored = service.get(order.id)
    assert stored.status == OrderStatus.DELIVERED
    assert stored.table_number == "2" + HISTORY_SUFFIX
    assert service.active_for_table("2") is None
    assert service.free_table("2") == []


def test_separator_and_serving(service, line):
    order = service.submit_cart("1", [line("demo_a1")])
    order = service.add_separator(order.id)
    assert order.items[-1].is_separator
    assert order.items[-1].is_added_later
    order = service.serve_item(order.id, 0)
    assert order.items[0].served


def test_missing_order(service):
    with pytest.raises(OrderNotFound):
        service.start("order_0_nope")


def test_complete_item_skips_write_when_unchanged(service, line):
    order = service.submit_cart("1", [line("demo_a1")])
    done = service.complete_item(order.id, 0)
    last = service.last_write
    assert service.complete_item(order.id, 0) == done
    assert service.last_write is last
