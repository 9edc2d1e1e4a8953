from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_scheduler
from backend.services.errors import NotFoundError
from backend.services.procurement import create_restock, list_restocks, mark_arrival, process_pending_arrivals
from backend.services.scheduler import ArrivalScheduler

router = APIRouter(prefix="/riordini")


class RestockCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1, max_length=64)
    supplier_id: int = Field(alias="supplierId", gt=0)
    quantity: int = Field(gt=0)
    expected_arrival_at: datetime | None = Field(default=None, alias="expectedArrivalAt")
    responsible_id: int | None = Field(default=None, alias="responsibleId")


class ArrivalConfirm(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    arrived_at: datetime | None = Field(default=None, alias="arrivedAt")


@router.get("")
def get_restocks(
    db: Session = Depends(get_db),
    scheduler: ArrivalScheduler = Depends(get_scheduler),
):
    # Balayage obligatoire avant lecture (rattrape les timers perdus)
    process_pending_arrivals(db, now=scheduler.clock.now(), delay=scheduler.delay)
    return list_restocks(db)


@router.post("", status_code=status.HTTP_201_CREATED)
def post_restock(
    payload: RestockCreate,
    db: Session = Depends(get_db),
    scheduler: ArrivalScheduler = Depends(get_scheduler),
):
    return create_restock(
        db,
        product_id=payload.product_id,
        supplier_id=payload.supplier_id,
        quantity=payload.quantity,
        expected_arrival_at=payload.expected_arrival_at,
        responsible_id=payload.responsible_id,
        now=scheduler.clock.now(),
        delay=scheduler.delay,
        # planificateur arrêté : le balayage seul applique l'arrivée
        scheduler=scheduler if scheduler.running else None,
    )


@router.patch("/{restock_id}/arrivo")
def confirm_arrival(
    restock_id: int,
    payload: ArrivalConfirm | None = Body(default=None),
    db: Session = Depends(get_db),
    scheduler: ArrivalScheduler = Depends(get_scheduler),
):
    arrived_at = payload.arrived_at if payload is not None else None
    applied = mark_arrival(db, restock_id, arrived_at=arrived_at, now=scheduler.clock.now())
    if applied is None:
        raise NotFoundError(f"Restock {restock_id} not found or already arrived", restockId=restock_id)
    return {"ok": True}
