# ristosync/db.py
from sqlmodel import SQLModel, create_engine, Session, select
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
import os

# Modelli (solo import: registrano le tabelle nei metadata)
from .models import Category, Department
from .models_store import MenuItemRow, OrderRecord, QueueSortRecord  # noqa: F401

# ---- Engine ----
DB_URL = os.getenv("RISTOSYNC_DB_URL", "sqlite:///ristosync.db")


def make_engine(url: str = DB_URL):
    is_sqlite = url.startswith("sqlite")
    if url in ("sqlite://", "sqlite:///:memory:"):
        # DB in memoria (test): una sola connessione condivisa fra i thread
        eng = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}
        eng = create_engine(
            url,
            echo=False,
            connect_args=connect_args,
            pool_pre_ping=True,
            pool_recycle=1800,  # ricicla connessioni stantie
        )

    # Migliorie per SQLite
    if is_sqlite:
        @event.listens_for(eng, "connect")
        def set_sqlite_pragmas(dbapi_connection, connection_record):
            cur = dbapi_connection.cursor()
            # WAL migliora i read paralleli con write (ignorato in memoria)
            cur.execute("PRAGMA journal_mode=WAL;")
            # Timeout quando il DB è lockato da un writer (altra vista aperta)
            cur.execute("PRAGMA busy_timeout=30000;")
            cur.close()

    return eng


engine = make_engine()


# ---- Schema ----
def create_db_and_tables(eng=None):
    SQLModel.metadata.create_all(eng or engine)


# ---- Seed ----
DEMO_MENU = [
    dict(id="demo_a1", name="Tagliere del Contadino", price=18, category=Category.ANTIPASTI.value,
         description="Selezione di salumi nostrani, formaggi stagionati, miele di castagno e noci.",
         allergens=["Latticini", "Frutta a guscio"]),
    dict(id="demo_a2", name="Bruschette Miste", price=8, category=Category.ANTIPASTI.value,
         allergens=["Glutine"]),
    dict(id="demo_p1", name="Spaghetti alla Carbonara", price=12, category=Category.PRIMI.value,
         allergens=["Glutine", "Uova", "Latticini"]),
    dict(id="demo_p2", name="Tonnarelli Cacio e Pepe", price=11, category=Category.PRIMI.value,
         allergens=["Glutine", "Latticini"]),
    dict(id="demo_s1", name="Tagliata di Manzo", price=22, category=Category.SECONDI.value,
         allergens=["Latticini"]),
    dict(id="demo_pz1", name="Margherita DOP", price=8, category=Category.PIZZE.value,
         allergens=["Glutine", "Latticini"]),
    dict(id="demo_pn1", name="Burger della Casa", price=13, category=Category.PANINI.value,
         allergens=["Glutine"]),
    dict(id="demo_b1", name="Acqua Naturale 0.75cl", price=2.5, category=Category.BEVANDE.value),
    dict(id="demo_b2", name="Coca Cola 33cl", price=3.5, category=Category.BEVANDE.value),
    dict(id="demo_b3", name="Caffè Espresso", price=1.5, category=Category.BEVANDE.value),
    # menu combo: pizza in pizzeria, bibita in sala
    dict(id="demo_m1", name="Menu Pizza + Bibita", price=11, category=Category.MENU_COMPLETO.value,
         combo_items=["demo_pz1", "demo_b2"]),
    dict(id="demo_m2", name="Menu Burger", price=16, category=Category.MENU_COMPLETO.value,
         combo_items=["demo_pn1", "demo_b2"], specific_department=Department.PUB.value),
]


def seed_if_empty(eng=None):
    """Seed minimale del menu demo: apre una sola sessione e la chiude."""
    with Session(eng or engine) as session:
        if not session.exec(select(MenuItemRow)).first():
            session.add_all([MenuItemRow(**row) for row in DEMO_MENU])
            session.commit()
