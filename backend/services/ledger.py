"""
Accès verrouillé au "ledger" de stock.

Toutes les écritures de stock passent par ces helpers :
- verrouillage ligne à ligne (SELECT ... FOR UPDATE), jamais de verrou de table
- création paresseuse des lignes sous SAVEPOINT (course à l'insert gérée)
- transaction unique par opération (atomic)

Ordre de verrouillage :
    restock_orders -> warehouse_stock -> catalog_entries
et, entre produits, ordre croissant de product_id.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, Iterator

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import CatalogEntry, RestockOrder, WarehouseStock
from backend.services.errors import InternalError, StockError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, action: str, **context) -> Iterator[None]:
    """
    Une opération = une transaction.

    Commit si tout passe ; sinon rollback complet AVANT de remonter l'erreur.
    """
    try:
        yield
        db.commit()
    except StockError as exc:
        db.rollback()
        logger.warning("%s rejected: %s %s", action, exc.message, {**context, **exc.details})
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed %s", action, context)
        raise InternalError(f"{action} failed") from exc
    except Exception:
        db.rollback()
        logger.exception("%s failed %s", action, context)
        raise


# ---------- WAREHOUSE ----------
def lock_warehouse_stock(db: Session, product_id: str) -> WarehouseStock | None:
    return (
        db.execute(
            select(WarehouseStock)
            .where(WarehouseStock.product_id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )


def create_warehouse_stock(
    db: Session,
    product_id: str,
    *,
    quantity: int = 0,
    last_arrived_restock_id: int | None = None,
) -> tuple[WarehouseStock, bool]:
    """
    Insère la ligne magasin du produit.

    Si une transaction concurrente l'a créée entre-temps, on annule le
    SAVEPOINT et on renvoie la ligne existante (verrouillée), created=False.
    """
    try:
        with db.begin_nested():
            ws = WarehouseStock(
                product_id=product_id,
                quantity_available=quantity,
                last_arrived_restock_id=last_arrived_restock_id,
            )
            db.add(ws)
            db.flush()
        return ws, True
    except IntegrityError:
        ws = lock_warehouse_stock(db, product_id)
        if ws is None:
            raise
        return ws, False


# ---------- CATALOG ----------
def lock_catalog_entries(db: Session, product_id: str) -> list[CatalogEntry]:
    return list(
        db.execute(
            select(CatalogEntry)
            .where(CatalogEntry.product_id == product_id)
            .order_by(CatalogEntry.id.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )


def lock_catalog_entry(db: Session, product_id: str, shelf_id: int) -> CatalogEntry | None:
    return (
        db.execute(
            select(CatalogEntry)
            .where(CatalogEntry.product_id == product_id)
            .where(CatalogEntry.shelf_id == shelf_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )


def fallback_price(db: Session, product_id: str) -> tuple[Decimal, Decimal | None]:
    """Prix repris d'une autre étagère du même produit (0 si aucune)."""
    row = db.execute(
        select(CatalogEntry.price, CatalogEntry.old_price)
        .where(CatalogEntry.product_id == product_id)
        .order_by(CatalogEntry.id.asc())
        .limit(1)
    ).first()
    if row is None:
        return Decimal("0"), None
    return row.price, row.old_price


def create_catalog_entry(
    db: Session,
    product_id: str,
    shelf_id: int,
    *,
    price: Decimal,
    old_price: Decimal | None,
) -> tuple[CatalogEntry, bool]:
    try:
        with db.begin_nested():
            entry = CatalogEntry(
                product_id=product_id,
                shelf_id=shelf_id,
                quantity_available=0,
                price=price,
                old_price=old_price,
            )
            db.add(entry)
            db.flush()
        return entry, True
    except IntegrityError:
        entry = lock_catalog_entry(db, product_id, shelf_id)
        if entry is None:
            raise
        return entry, False


# ---------- RESTOCKS ----------
def arrived_totals(
    db: Session,
    product_ids: Iterable[str] | None = None,
) -> dict[str, tuple[int, int]]:
    """
    Source de vérité des arrivées :
        product_id -> (SUM(quantity_ordered) des riordini arrivés,
                       id du riordino arrivé le plus récent)
    """
    sum_stmt = (
        select(
            RestockOrder.product_id,
            func.coalesce(func.sum(RestockOrder.quantity_ordered), 0).label("arrived_qty"),
        )
        .where(RestockOrder.arrived.is_(True))
        .group_by(RestockOrder.product_id)
    )
    last_stmt = (
        select(RestockOrder.product_id, RestockOrder.id)
        .where(RestockOrder.arrived.is_(True))
        .order_by(
            RestockOrder.product_id,
            RestockOrder.actual_arrival_at.desc().nulls_last(),
            RestockOrder.id.desc(),
        )
    )

    if product_ids is not None:
        wanted = sorted({str(pid) for pid in product_ids if pid is not None})
        if not wanted:
            return {}
        sum_stmt = sum_stmt.where(RestockOrder.product_id.in_(wanted))
        last_stmt = last_stmt.where(RestockOrder.product_id.in_(wanted))

    sums = {pid: int(qty) for pid, qty in db.execute(sum_stmt).all()}

    latest: dict[str, int] = {}
    for pid, restock_id in db.execute(last_stmt).all():
        latest.setdefault(pid, int(restock_id))

    return {pid: (qty, latest[pid]) for pid, qty in sums.items()}
