import os

# Avant tout import backend.* : pas de thread planificateur, pas de Postgres requis
os.environ.setdefault("ARRIVAL_SCHEDULER_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./smartshop-dev.db")

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from backend.app.db.base import Base
from backend.app.db.models.core_types import UserRole
from backend.app.db.models.models_v1 import (
    CatalogEntry,
    Product,
    RestockOrder,
    Shelf,
    Supplier,
    User,
    WarehouseStock,
)
from backend.app.db.session import build_engine
from backend.app.main import create_app
from backend.services.clock import FakeClock


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    Base isolée par test.

    SQLite fichier dans tmp_path par défaut ; TEST_DATABASE_URL=postgresql+psycopg://...
    pour jouer la suite contre un vrai Postgres (schéma créé puis détruit).
    """
    database_url = os.getenv("TEST_DATABASE_URL") or f"sqlite+pysqlite:///{tmp_path / 'test.db'}"
    eng = build_engine(database_url)

    Base.metadata.drop_all(bind=eng)
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def master_data(db_session):
    """Deux produits, deux étagères, un fournisseur, un client, un responsable."""
    db_session.add_all(
        [
            Product(id="P-001", name="Spaghetti n.5", brand="Barilla", category_id="pasta"),
            Product(id="P-002", name="Latte intero 1L", brand="Granarolo", category_id="latticini"),
            Shelf(id=1, name="A1"),
            Shelf(id=2, name="B1"),
            Supplier(id=1, name="Centrale Ortofrutticola", phone="+39 011 000000"),
            User(id=1, first_name="Mario", last_name="Rossi", email="mario@example.com", role=UserRole.customer),
            User(id=2, first_name="Luca", last_name="Verdi", email="luca@example.com", role=UserRole.manager),
        ]
    )
    db_session.commit()
    return SimpleNamespace(
        product="P-001",
        other_product="P-002",
        shelf=1,
        other_shelf=2,
        supplier=1,
        customer=1,
        manager=2,
    )


@pytest.fixture
def seed_stock(db_session):
    """
    seed_stock("P-001", warehouse=10, shelves={1: (4, "2.50")})

    warehouse=None : pas de ligne magasin. marker : last_arrived_restock_id.
    """

    def _seed(product_id, *, warehouse=None, marker=None, shelves=None):
        if warehouse is not None:
            db_session.add(
                WarehouseStock(
                    product_id=product_id,
                    quantity_available=warehouse,
                    last_arrived_restock_id=marker,
                )
            )
        for shelf_id, (qty, price) in (shelves or {}).items():
            db_session.add(
                CatalogEntry(
                    product_id=product_id,
                    shelf_id=shelf_id,
                    quantity_available=qty,
                    price=Decimal(str(price)),
                )
            )
        db_session.commit()

    return _seed


@pytest.fixture
def client(session_factory, clock, master_data):
    app = create_app(session_factory, clock=clock, run_scheduler=False)
    with TestClient(app) as c:
        yield c


class LedgerReader:
    """
    Lectures de contrôle : une session courte par appel.

    Avec SQLite (BEGIN IMMEDIATE), une transaction de lecture laissée ouverte
    bloquerait les autres sessions.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def warehouse(self, product_id):
        with self.session_factory() as s:
            ws = s.get(WarehouseStock, product_id)
            return None if ws is None else ws.quantity_available

    def marker(self, product_id):
        with self.session_factory() as s:
            ws = s.get(WarehouseStock, product_id)
            return None if ws is None else ws.last_arrived_restock_id

    def shelf(self, product_id, shelf_id):
        with self.session_factory() as s:
            entry = s.execute(
                select(CatalogEntry)
                .where(CatalogEntry.product_id == product_id)
                .where(CatalogEntry.shelf_id == shelf_id)
            ).scalar_one_or_none()
            return None if entry is None else entry.quantity_available

    def restock(self, restock_id):
        with self.session_factory() as s:
            r = s.get(RestockOrder, restock_id)
            if r is None:
                return None
            return SimpleNamespace(
                arrived=r.arrived,
                actual_arrival_at=r.actual_arrival_at,
                quantity_ordered=r.quantity_ordered,
            )

    def count(self, model):
        with self.session_factory() as s:
            return s.execute(select(func.count()).select_from(model)).scalar_one()


@pytest.fixture
def ledger(session_factory) -> LedgerReader:
    return LedgerReader(session_factory)


@pytest.fixture
def add_restock(db_session, clock):
    """
    add_restock("P-001", 10, ordered_at=..., arrived=True) -> id

    Insertion directe (sans planificateur), pour préparer un historique.
    """

    def _add(product_id, quantity, *, supplier_id=1, ordered_at=None, expected_arrival_at=None,
             actual_arrival_at=None, arrived=False):
        r = RestockOrder(
            product_id=product_id,
            supplier_id=supplier_id,
            quantity_ordered=quantity,
            ordered_at=ordered_at or clock.now(),
            expected_arrival_at=expected_arrival_at,
            actual_arrival_at=actual_arrival_at,
            arrived=arrived,
        )
        db_session.add(r)
        db_session.flush()
        restock_id = r.id
        db_session.commit()
        return restock_id

    return _add
