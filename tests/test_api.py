import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from ristosync.backup import NullBackup
from ristosync.config import AppConfig, PrinterConfig, load_config
from ristosync.db import make_engine
from ristosync.main import create_app
from ristosync.notifications import EventType, Notice
from ristosync.runtime import Runtime
from ristosync.ws import ConnectionManager, WebSocketSink


@pytest.fixture
def sender():
    return MagicMock()


@pytest.fixture
def client(sender):
    cfg = AppConfig(printer=PrinterConfig(enabled=True))
    rt = Runtime(engine=make_engine("sqlite://"), config=cfg, backup=NullBackup(), printer_sender=sender)
    app = create_app(rt, ConnectionManager())
    with TestClient(app) as c:
        yield c


def _cart(client, table="3", items=(("demo_a1", 1), ("demo_pz1", 1)), **extra):
    body = {"table_number": table, "waiter_name": "Paolo",
            "items": [{"menu_item_id": i, "quantity": q} for i, q in items], **extra}
    r = client.post("/waiter/orders", json=body)
    assert r.status_code == 200, r.text
    return r.json()["order"]


def test_health_and_menu(client):
    assert client.get("/health").text == "OK"
    ids = {m["id"] for m in client.get("/menu").json()["items"]}
    assert {"demo_a1", "demo_m1", "demo_b3"} <= ids


def test_order_flows_through_department_boards(client):
    order = _cart(client)
    kitchen = client.get("/kds/cucina").json()
    assert kitchen["department"] == "Cucina"
    assert [t["id"] for t in kitchen["tickets"]] == [order["id"]]
    assert [i["name"] for i in kitchen["tickets"][0]["items"]] == ["Tagliere del Contadino"]
    assert client.get("/kds/Pub").json()["tickets"] == []
    assert len(client.get("/waiter").json()["tickets"]) == 1

    oid = order["id"]
    assert client.post(f"/kds/Cucina/orders/{oid}/start").json()["order"]["status"] == "In Preparazione"
    assert client.post(f"/kds/Cucina/orders/{oid}/ready").json()["order"]["status"] == "Pronto"
    assert client.post(f"/kds/Cucina/orders/{oid}/deliver").json()["order"]["status"] == "Servito"


def test_invalid_transition_and_missing_order(client):
    oid = _cart(client)["id"]
    r = client.post(f"/kds/Cucina/orders/{oid}/deliver")
    assert r.status_code == 409
    assert client.post("/kds/Cucina/orders/nope/start").status_code == 404
    assert client.get("/kds/Magazzino").status_code == 404
    r = client.post(f"/kds/Cucina/orders/{oid}/items/99/toggle")
    assert r.status_code == 422


def test_empty_cart_and_unknown_dish(client):
    assert client.post("/waiter/orders", json={"table_number": "1", "items": []}).status_code == 422
    r = client.post("/waiter/orders", json={"table_number": "1", "items": [{"menu_item_id": "boh"}]})
    assert r.status_code == 404


def test_toggle_combo_part(client):
    oid = _cart(client, items=(("demo_m1", 1),))["id"]
    assert [t["id"] for t in client.get("/kds/Pizzeria").json()["tickets"]] == [oid]
    r = client.post(f"/kds/Pizzeria/orders/{oid}/items/0/toggle", params={"sub": "demo_pz1"})
    assert r.json()["order"]["items"][0]["combo_completed_parts"] == ["demo_pz1"]
    # finito per la pizzeria: resta visibile solo come "in uscita"
    tickets = client.get("/kds/Pizzeria").json()["tickets"]
    assert tickets[0]["lingering"] is True


def test_voice_endpoint(client):
    oid = _cart(client, table="3", items=(("demo_a1", 1), ("demo_p1", 1)))["id"]
    r = client.post("/kds/Cucina/voice", json={"transcript": "Tavolo tre pronto"}).json()
    assert r["result"] == "item-done" and r["order_id"] == oid and r["item_index"] == 0
    r = client.post("/kds/Cucina/voice", json={"transcript": "tavolo 12 pronto"}).json()
    assert r["result"] == "table-not-found"


def test_waiter_actions_and_monitor(client):
    oid = _cart(client, table="5", items=(("demo_p1", 1), ("demo_b1", 2)))["id"]
    again = _cart(client, table="5", items=(("demo_p1", 1),))
    assert again["id"] == oid
    assert client.get("/waiter/tables/5").json()["order"]["id"] == oid

    assert client.post(f"/waiter/orders/{oid}/separator").json()["order"]["items"][-1]["is_separator"]
    r = client.post(f"/waiter/orders/{oid}/items/1/serve")
    assert r.json()["order"]["items"][1]["served"]

    tables = {t["table"]: t for t in client.get("/monitor").json()["tables"]}
    assert tables["5"]["status"] == "cooking"
    assert tables["5"]["waiter"] == "Paolo"

    assert client.post("/waiter/tables/5/free").json()["archived"] == [oid]
    tables = {t["table"]: t for t in client.get("/monitor").json()["tables"]}
    assert tables["5"]["status"] == "free"
    assert client.get("/waiter/tables/5").json()["order"] is None


def test_reorder_queue(client):
    a = _cart(client, table="1", items=(("demo_p1", 1),))["id"]
    b = _cart(client, table="2", items=(("demo_p1", 1),))["id"]
    assert client.post("/kds/Cucina/reorder", json={"dragged": b, "target": a}).json()["order_ids"] == [b, a]
    assert [t["id"] for t in client.get("/kds/Cucina").json()["tickets"]] == [b, a]


def test_admin_settings_and_print(client, sender):
    r = client.patch("/admin/departments", json={"category_destinations": {"Antipasti": "Pub"}})
    assert r.json()["category_destinations"]["Antipasti"] == "Pub"
    assert client.patch("/admin/departments", json={"default_department": "Bar"}).status_code == 422

    oid = _cart(client, items=(("demo_a1", 1),))["id"]
    assert [t["id"] for t in client.get("/kds/Pub").json()["tickets"]] == [oid]
    assert client.post(f"/kds/Pub/orders/{oid}/print").status_code == 200
    assert "REPARTO: PUB" in sender.call_args.args[2]
    assert client.post(f"/kds/Cucina/orders/{oid}/print").status_code == 409


def test_websocket_transcript(client):
    oid = _cart(client, table="7", items=(("demo_p1", 1),))["id"]
    with client.websocket_connect("/ws/kds/Cucina") as ws:
        ws.send_text("sette pronto")
        for _ in range(5):
            msg = ws.receive_json()
            if msg["type"] == "notice":
                break
    assert msg["type"] == "notice"
    assert msg["notice"]["type"] in ("voice-ack", "item-ready")
    assert msg["notice"]["department"] == "Cucina"
    for _ in range(20):
        items = client.get("/waiter/tables/7").json()["order"]["items"]
        if items[0]["completed"]:
            break
    assert items[0]["completed"]
    assert client.get("/waiter/tables/7").json()["order"]["id"] == oid


def test_kds_index_exposes_client_settings(client):
    body = client.get("/kds").json()
    assert body["departments"] == ["Cucina", "Sala", "Pizzeria", "Pub"]
    assert body["voice"]["language"] == "it-IT"
    assert "pronto" in body["voice"]["keywords"]


def test_notices_are_routed_by_channel():
    mgr = ConnectionManager()
    mgr.broadcast_json = AsyncMock()

    async def go():
        sink = WebSocketSink(mgr, asyncio.get_running_loop())
        sink(Notice(EventType.NEW_ORDER, "Nuovo ordine Tavolo 8", channel="waiter"))
        sink(Notice(EventType.ITEM_READY, "Margherita DOP - Tavolo 8 pronto", department="Pizzeria"))
        sink(Notice(EventType.BACKUP_FAILED, "Backup non riuscito"))
        await asyncio.sleep(0)

    asyncio.run(go())
    calls = [c.args for c in mgr.broadcast_json.call_args_list]
    assert [ch for _, ch in calls] == ["waiter", "kds:Pizzeria", None]
    payload = calls[0][0]
    assert payload["type"] == "notice"
    assert payload["notice"]["type"] == "new-order"


def test_department_settings_survive_restart(tmp_path):
    path = tmp_path / "config.json"
    rt = Runtime(engine=make_engine("sqlite://"), config=AppConfig(), backup=NullBackup(), persist_path=path)
    rt.settings.update(category_destinations={"Antipasti": "Pub"}, print_enabled={"Pub": True})
    saved = load_config(path).departments
    assert saved.category_destinations["Antipasti"] == "Pub"
    assert saved.print_enabled["Pub"] is True
