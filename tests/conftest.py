import pytest

from ristosync.backup import BackupWorker, NullBackup
from ristosync.catalog import MenuCatalog
from ristosync.config import DepartmentSettings
from ristosync.db import create_db_and_tables, make_engine, seed_if_empty
from ristosync.models import OrderItem
from ristosync.orders import OrderService
from ristosync.routing import DepartmentRouter
from ristosync.state_machine import OrderStateMachine
from ristosync.store import OrderStore
from ristosync.sync import SyncCoordinator

T0 = 1_700_000_000_000  # ms


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now

    def minutes(self, m: float) -> int:
        return self.advance(int(m * 60_000))


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    create_db_and_tables(eng)
    seed_if_empty(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def catalog(engine):
    return MenuCatalog(engine)


@pytest.fixture
def settings():
    return DepartmentSettings()


@pytest.fixture
def router(settings, catalog):
    return DepartmentRouter(settings, catalog)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def machine(router, clock):
    return OrderStateMachine(router, clock)


@pytest.fixture
def store(engine):
    return OrderStore(engine)


@pytest.fixture
def worker():
    w = BackupWorker(NullBackup())
    yield w
    w.stop()


@pytest.fixture
def coordinator(store, worker):
    return SyncCoordinator(store, worker)


@pytest.fixture
def service(coordinator, machine):
    return OrderService(coordinator, machine)


@pytest.fixture
def line(catalog):
    """Riga d'ordine dal menu demo: line("demo_a1", quantity=2, notes=["senza sale"])."""

    def _line(menu_id: str, quantity: int = 1, notes=()):
        return OrderItem(menu_item=catalog.get(menu_id), quantity=quantity, notes=list(notes))

    return _line
