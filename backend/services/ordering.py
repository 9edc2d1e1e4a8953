"""
Order service.

Une commande client décrémente le catalogue (étagères) et, en miroir
"best effort", le magasin. Tout ou rien : une seule ligne en défaut annule
la commande entière.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from backend.app.db.base import utcnow
from backend.app.db.models.core_types import OrderStatus
from backend.app.db.models.models_v1 import CatalogEntry, Order, OrderLine, User, WarehouseStock
from backend.services.errors import InsufficientStockError, NotFoundError, ValidationError
from backend.services.ledger import atomic, lock_catalog_entries, lock_warehouse_stock

logger = logging.getLogger(__name__)


def _normalize_items(items: Sequence[tuple[str, int]]) -> list[tuple[str, int]]:
    if not items:
        raise ValidationError("items must not be empty", field="items")

    lines = []
    for idx, (product_id, quantity) in enumerate(items):
        if not product_id or not str(product_id).strip():
            raise ValidationError(f"items[{idx}].productId is required", field="items", index=idx)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                f"items[{idx}].quantity must be a positive integer",
                field="items",
                index=idx,
                value=quantity,
            )
        lines.append((str(product_id).strip(), quantity))
    return lines


def create_order(
    db: Session,
    *,
    user_id: int,
    items: Sequence[tuple[str, int]],
    now: datetime | None = None,
) -> dict:
    lines = _normalize_items(items)
    now = now or utcnow()

    with atomic(db, "create_order", user_id=user_id, items=lines):
        if db.get(User, user_id) is None:
            raise ValidationError(f"Invalid userId {user_id}", field="userId")

        # ---------- VERROUS ----------
        # Ordre stable entre produits ; warehouse avant catalogue (même
        # ordre que le transfert).
        warehouse: dict[str, WarehouseStock | None] = {}
        catalog: dict[str, list[CatalogEntry]] = {}
        for pid in sorted({pid for pid, _ in lines}):
            warehouse[pid] = lock_warehouse_stock(db, pid)
            catalog[pid] = lock_catalog_entries(db, pid)

        # ---------- CONTRÔLE + DÉCRÉMENT ----------
        total = Decimal("0")
        order_lines: list[OrderLine] = []
        for pid, qty in lines:
            entries = catalog[pid]
            if not entries:
                raise NotFoundError(f"Product {pid} not found", productId=pid)

            available = sum(e.quantity_available for e in entries)
            if available < qty:
                raise InsufficientStockError(
                    f"Insufficient stock for {pid}",
                    product_id=pid,
                    available=available,
                )

            unit_price = entries[0].price
            line_total = unit_price * qty
            total += line_total

            remaining = qty
            for entry in entries:
                if remaining <= 0:
                    break
                take = min(entry.quantity_available, remaining)
                if take > 0:
                    entry.quantity_available = entry.quantity_available - take
                    remaining -= take

            # Miroir magasin, plancher à 0 (pas d'erreur si déjà vide)
            ws = warehouse[pid]
            if ws is not None:
                ws.quantity_available = max(ws.quantity_available - qty, 0)

            order_lines.append(
                OrderLine(
                    product_id=pid,
                    quantity=qty,
                    unit_price=unit_price,
                    line_total=line_total,
                )
            )

        order = Order(
            user_id=user_id,
            placed_at=now,
            status=OrderStatus.created,
            total=total,
            lines=order_lines,
        )
        db.add(order)
        db.flush()  # get order.id

        result = {
            "orderId": order.id,
            "total": float(total),
            "status": order.status.value,
            "lines": [
                {
                    "productId": ln.product_id,
                    "quantity": ln.quantity,
                    "unitPrice": float(ln.unit_price),
                    "lineTotal": float(ln.line_total),
                }
                for ln in order_lines
            ],
        }

    logger.info("order created id=%s user=%s lines=%s total=%s", result["orderId"], user_id, len(lines), total)
    return result


def list_orders(db: Session) -> list[dict]:
    orders = (
        db.execute(
            select(Order)
            .options(
                selectinload(Order.user),
                selectinload(Order.lines).selectinload(OrderLine.product),
            )
            .order_by(Order.placed_at.desc(), Order.id.desc())
        )
        .scalars()
        .all()
    )
    return [
        {
            "orderId": o.id,
            "userId": o.user_id,
            "firstName": o.user.first_name,
            "lastName": o.user.last_name,
            "email": o.user.email,
            "placedAt": o.placed_at,
            "status": o.status.value,
            "total": float(o.total),
            "lines": [
                {
                    "lineId": ln.id,
                    "productId": ln.product_id,
                    "name": ln.product.name if ln.product else None,
                    "brand": ln.product.brand if ln.product else None,
                    "quantity": ln.quantity,
                    "unitPrice": float(ln.unit_price),
                    "lineTotal": float(ln.line_total),
                }
                for ln in sorted(o.lines, key=lambda l: l.id)
            ],
        }
        for o in orders
    ]
