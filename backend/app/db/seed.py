from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select

from backend.app.core.config import settings
from backend.app.core.logging import setup_logging
from backend.app.db.session import SessionLocal
from backend.app.db.models.models_v1 import CatalogEntry, Product, Shelf, Supplier, User
from backend.app.db.models.core_types import UserRole

logger = logging.getLogger(__name__)

SHELVES = [
    (1, "A1 - Frutta e verdura"),
    (2, "B1 - Pasta e riso"),
    (3, "C1 - Latticini"),
]

PRODUCTS = [
    # id, name, brand, category, shelf, price
    ("P-001", "Spaghetti n.5", "Barilla", "pasta", 2, Decimal("1.29")),
    ("P-002", "Riso Carnaroli", "Scotti", "pasta", 2, Decimal("2.49")),
    ("P-003", "Latte intero 1L", "Granarolo", "latticini", 3, Decimal("1.09")),
    ("P-004", "Mele Golden 1kg", None, "frutta", 1, Decimal("1.99")),
]

USERS = [
    ("Mario", "Rossi", "cliente@smartshop.it", UserRole.customer),
    ("Giulia", "Bianchi", "dipendente@smartshop.it", UserRole.employee),
    ("Luca", "Verdi", "responsabile@smartshop.it", UserRole.manager),
]


def run_seed():
    setup_logging(settings)
    db = SessionLocal()
    try:
        # 1) Scaffali
        for shelf_id, name in SHELVES:
            if not db.get(Shelf, shelf_id):
                db.add(Shelf(id=shelf_id, name=name))

        # 2) Fornitore
        if not db.scalar(select(Supplier).where(Supplier.name == "Centrale Ortofrutticola")):
            db.add(Supplier(name="Centrale Ortofrutticola", phone="+39 011 000000", email="ordini@centrale.it"))

        # 3) Utenti (un par rôle)
        for first_name, last_name, email, role in USERS:
            if not db.scalar(select(User).where(User.email == email)):
                db.add(User(first_name=first_name, last_name=last_name, email=email, role=role))

        db.flush()

        # 4) Prodotti + entrée catalogue à 0 (le stock arrive par riordino)
        for product_id, name, brand, category, shelf_id, price in PRODUCTS:
            if not db.get(Product, product_id):
                db.add(Product(id=product_id, name=name, brand=brand, category_id=category))
                db.flush()
            exists = db.scalar(
                select(CatalogEntry)
                .where(CatalogEntry.product_id == product_id)
                .where(CatalogEntry.shelf_id == shelf_id)
            )
            if not exists:
                db.add(CatalogEntry(product_id=product_id, shelf_id=shelf_id, quantity_available=0, price=price))

        db.commit()
        logger.info("SEED OK: shelves=%s products=%s users=%s", len(SHELVES), len(PRODUCTS), len(USERS))
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
