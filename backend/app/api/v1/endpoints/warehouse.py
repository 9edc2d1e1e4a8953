from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.schemas.stock_level import WarehouseStockRead
from backend.services.inventory import list_warehouse_stock, move_stock, reconcile_arrivals

router = APIRouter(prefix="/magazzino")


class TransferCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1, max_length=64)
    quantity: int = Field(gt=0)
    shelf_id: int = Field(alias="shelfId", gt=0)


@router.get(
    "",
    response_model=list[WarehouseStockRead],
)
def get_warehouse_stock(
    product_id: str | None = Query(default=None, alias="productId"),
    db: Session = Depends(get_db),
):
    """Stock magasin (READ ONLY)."""
    return list_warehouse_stock(db, product_id)


@router.post("/trasferisci")
def transfer_to_shelf(payload: TransferCreate, db: Session = Depends(get_db)):
    result = move_stock(
        db,
        product_id=payload.product_id,
        quantity=payload.quantity,
        shelf_id=payload.shelf_id,
    )
    return {"message": "Transfer completed", **result}


@router.post("/riconcilia-arrivi")
def reconcile_restock_arrivals(db: Session = Depends(get_db)):
    updated = reconcile_arrivals(db)
    return {"updated": updated}
