"""
Procurement service (riordini magazzino).

Machine à états d'un riordino :

    ORDERED (arrived=false) --arrivée--> ARRIVED (arrived=true, terminal)

L'arrivée est appliquée par mark_arrival, seul chemin d'incrément du
magasin. Trois déclencheurs peuvent l'appeler en concurrence :
- confirmation explicite (PATCH /riordini/{id}/arrivo)
- déclencheur différé de l'ArrivalScheduler
- balayage paresseux (process_pending_arrivals)

Le verrou sur la ligne du riordino + le flag arrived garantissent une
application au plus une fois.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from backend.app.core.config import settings
from backend.app.db.base import as_utc, utcnow
from backend.app.db.models.models_v1 import Product, RestockOrder, Supplier, User
from backend.services.errors import ValidationError
from backend.services.ledger import atomic, create_warehouse_stock, lock_warehouse_stock

if TYPE_CHECKING:
    from backend.services.scheduler import ArrivalScheduler

logger = logging.getLogger(__name__)


def default_arrival_delay() -> timedelta:
    return timedelta(seconds=settings.RESTOCK_ARRIVAL_DELAY_SECONDS)


def restock_view(r: RestockOrder) -> dict:
    responsible = r.responsible
    return {
        "id": r.id,
        "productId": r.product_id,
        "productName": r.product.name if r.product else None,
        "supplierId": r.supplier_id,
        "supplierName": r.supplier.name if r.supplier else None,
        "quantityOrdered": r.quantity_ordered,
        "orderedAt": r.ordered_at,
        "expectedArrivalAt": r.expected_arrival_at,
        "actualArrivalAt": r.actual_arrival_at,
        "arrived": r.arrived,
        "state": r.state.value,
        "responsibleId": r.responsible_id,
        "responsibleFirstName": responsible.first_name if responsible else None,
        "responsibleLastName": responsible.last_name if responsible else None,
    }


def _restock_query():
    return select(RestockOrder).options(
        selectinload(RestockOrder.product),
        selectinload(RestockOrder.supplier),
        selectinload(RestockOrder.responsible),
    )


def list_restocks(db: Session) -> list[dict]:
    rows = db.execute(_restock_query().order_by(RestockOrder.ordered_at.desc(), RestockOrder.id.desc())).scalars().all()
    return [restock_view(r) for r in rows]


def create_restock(
    db: Session,
    *,
    product_id: str,
    supplier_id: int,
    quantity: int,
    expected_arrival_at: datetime | None = None,
    responsible_id: int | None = None,
    now: datetime | None = None,
    delay: timedelta | None = None,
    scheduler: ArrivalScheduler | None = None,
) -> dict:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", field="quantity", value=quantity)

    now = as_utc(now) or utcnow()
    delay = delay if delay is not None else default_arrival_delay()
    expected_arrival_at = as_utc(expected_arrival_at)

    with atomic(db, "create_restock", product_id=product_id, supplier_id=supplier_id, quantity=quantity):
        # FK checks (fail fast, message clair)
        if not db.get(Product, product_id):
            raise ValidationError(f"Invalid productId {product_id}", field="productId")
        if not db.get(Supplier, supplier_id):
            raise ValidationError(f"Invalid supplierId {supplier_id}", field="supplierId")
        if responsible_id is not None and not db.get(User, responsible_id):
            raise ValidationError(f"Invalid responsibleId {responsible_id}", field="responsibleId")

        r = RestockOrder(
            product_id=product_id,
            supplier_id=supplier_id,
            quantity_ordered=quantity,
            ordered_at=now,
            expected_arrival_at=expected_arrival_at or (now + delay),
            responsible_id=responsible_id,
            arrived=False,
        )
        db.add(r)
        db.flush()  # get r.id
        view = restock_view(r)

    logger.info("restock created id=%s product=%s qty=%s supplier=%s", view["id"], product_id, quantity, supplier_id)

    if scheduler is not None:
        scheduler.schedule(view["id"], now + delay)

    return view


def mark_arrival(
    db: Session,
    restock_id: int,
    *,
    arrived_at: datetime | None = None,
    now: datetime | None = None,
) -> RestockOrder | None:
    """
    Applique l'arrivée d'un riordino. Idempotent.

    None si le riordino n'existe pas ou est déjà arrivé (no-op bénin,
    jamais d'erreur : plusieurs déclencheurs peuvent se croiser).
    """

    with atomic(db, "mark_arrival", restock_id=restock_id):
        r = (
            db.execute(
                select(RestockOrder)
                .where(RestockOrder.id == restock_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalar_one_or_none()
        )
        if r is None or r.arrived:
            logger.debug("mark_arrival no-op restock=%s", restock_id)
            return None

        r.arrived = True
        r.actual_arrival_at = as_utc(arrived_at) or as_utc(now) or utcnow()

        ws = lock_warehouse_stock(db, r.product_id)
        if ws is None:
            ws, created = create_warehouse_stock(
                db,
                r.product_id,
                quantity=r.quantity_ordered,
                last_arrived_restock_id=r.id,
            )
            if not created:
                ws.quantity_available = ws.quantity_available + r.quantity_ordered
                ws.last_arrived_restock_id = r.id
        else:
            ws.quantity_available = ws.quantity_available + r.quantity_ordered
            ws.last_arrived_restock_id = r.id

        product_id, qty = r.product_id, r.quantity_ordered

    logger.info("restock arrived id=%s product=%s qty=%s", restock_id, product_id, qty)
    return r


def pending_arrival_ids(db: Session, *, now: datetime, delay: timedelta) -> list[int]:
    return list(
        db.execute(
            select(RestockOrder.id)
            .where(RestockOrder.arrived.is_(False))
            .where(RestockOrder.ordered_at <= now - delay)
            .where(
                or_(
                    RestockOrder.expected_arrival_at.is_(None),
                    RestockOrder.expected_arrival_at <= now,
                )
            )
            .order_by(RestockOrder.id.asc())
        )
        .scalars()
        .all()
    )


def process_pending_arrivals(
    db: Session,
    *,
    now: datetime | None = None,
    delay: timedelta | None = None,
) -> list[int]:
    """
    Balayage paresseux : applique l'arrivée de tous les riordini échus.

    Filet de sécurité d'un planificateur non durable (redémarrage = timers
    perdus). Une transaction par riordino.
    """
    now = as_utc(now) or utcnow()
    delay = delay if delay is not None else default_arrival_delay()

    candidates = pending_arrival_ids(db, now=now, delay=delay)
    db.rollback()  # libère la transaction de lecture

    applied = []
    for restock_id in candidates:
        if mark_arrival(db, restock_id, now=now) is not None:
            applied.append(restock_id)

    if applied:
        logger.info("pending arrivals applied=%s", applied)
    return applied
