from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import Shelf, WarehouseStock
from backend.services.errors import InsufficientStockError, NotFoundError, ValidationError
from backend.services.ledger import (
    arrived_totals,
    atomic,
    create_catalog_entry,
    create_warehouse_stock,
    fallback_price,
    lock_catalog_entry,
    lock_warehouse_stock,
)

logger = logging.getLogger(__name__)


def _require_positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field, value=value)
    return value


def _bootstrap_warehouse_row(db: Session, product_id: str) -> WarehouseStock | None:
    """
    Ligne magasin absente : on la crée à partir des riordini déjà arrivés
    (même calcul que la réconciliation). None si aucun riordino arrivé.
    """
    totals = arrived_totals(db, [product_id])
    if product_id not in totals:
        return None

    qty, last_id = totals[product_id]
    ws, created = create_warehouse_stock(
        db,
        product_id,
        quantity=qty,
        last_arrived_restock_id=last_id,
    )
    if created:
        logger.info("warehouse row bootstrapped product=%s qty=%s last_restock=%s", product_id, qty, last_id)
    return ws


def move_stock(
    db: Session,
    *,
    product_id: str,
    quantity: int,
    shelf_id: int,
) -> dict:
    """
    Transfert magasin -> étagère (catalogue).

    Propriétés :
    - warehouse - quantity et catalogue + quantity dans la MÊME transaction
    - verrouillage warehouse puis catalogue (FOR UPDATE)
    - jamais de stock négatif
    """

    if not product_id or not str(product_id).strip():
        raise ValidationError("productId is required", field="productId")
    _require_positive_int(quantity, "quantity")
    _require_positive_int(shelf_id, "shelfId")
    product_id = str(product_id).strip()

    with atomic(db, "transfer", product_id=product_id, quantity=quantity, shelf_id=shelf_id):
        if db.get(Shelf, shelf_id) is None:
            raise NotFoundError(f"Shelf {shelf_id} not found", shelfId=shelf_id)

        ws = lock_warehouse_stock(db, product_id)
        if ws is None:
            ws = _bootstrap_warehouse_row(db, product_id)
        if ws is None:
            raise NotFoundError(f"Product {product_id} not in warehouse", productId=product_id)

        available = ws.quantity_available
        if available < quantity:
            raise InsufficientStockError(
                f"Insufficient warehouse stock for {product_id} (available={available})",
                product_id=product_id,
                available=available,
            )

        ws.quantity_available = available - quantity

        entry = lock_catalog_entry(db, product_id, shelf_id)
        if entry is None:
            price, old_price = fallback_price(db, product_id)
            entry, _ = create_catalog_entry(db, product_id, shelf_id, price=price, old_price=old_price)
        entry.quantity_available = entry.quantity_available + quantity

        db.flush()
        result = {
            "productId": product_id,
            "shelfId": shelf_id,
            "transferredQuantity": quantity,
            "warehouseRemaining": ws.quantity_available,
            "catalog": {
                "catalogId": entry.id,
                "quantityAvailable": entry.quantity_available,
                "price": float(entry.price),
                "oldPrice": float(entry.old_price) if entry.old_price is not None else None,
            },
        }

    logger.info(
        "transfer product=%s qty=%s shelf=%s warehouse_left=%s shelf_qty=%s",
        product_id,
        quantity,
        shelf_id,
        result["warehouseRemaining"],
        result["catalog"]["quantityAvailable"],
    )
    return result


def reconcile_arrivals(db: Session) -> int:
    """
    Réconciliation magasin <- riordini arrivés.

    Règle métier :
        quantity_available = SUM(quantity_ordered des riordini arrivés)
        last_arrived_restock_id = riordino arrivé le plus récent

    Uniquement pour les lignes jamais synchronisées (marqueur NULL) ou
    absentes. Une ligne déjà maintenue par les arrivées incrémentales n'est
    jamais touchée.

    Propriétés :
    - idempotent (2e passage = 0 ligne)
    - transaction-safe
    - verrouillage SQL (FOR UPDATE)
    """

    touched = 0
    with atomic(db, "reconcile_arrivals"):
        totals = arrived_totals(db)

        for pid in sorted(totals):
            qty, last_id = totals[pid]

            ws = lock_warehouse_stock(db, pid)
            if ws is None:
                ws, created = create_warehouse_stock(
                    db,
                    pid,
                    quantity=qty,
                    last_arrived_restock_id=last_id,
                )
                if created:
                    touched += 1
                    continue

            if ws.last_arrived_restock_id is not None:
                continue

            ws.quantity_available = qty
            ws.last_arrived_restock_id = last_id
            touched += 1

    logger.info("reconcile_arrivals products=%s touched=%s", len(totals), touched)
    return touched


def list_warehouse_stock(db: Session, product_id: str | None = None) -> list[WarehouseStock]:
    stmt = select(WarehouseStock).order_by(WarehouseStock.product_id)
    if product_id is not None:
        stmt = stmt.where(WarehouseStock.product_id == product_id)
    return list(db.execute(stmt).scalars().all())
