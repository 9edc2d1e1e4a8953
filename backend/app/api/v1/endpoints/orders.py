from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.services.ordering import create_order, list_orders

router = APIRouter(prefix="/ordini")


class OrderItemCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1, max_length=64)
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId", gt=0)
    items: list[OrderItemCreate] = Field(min_length=1)


@router.get("")
def get_orders(db: Session = Depends(get_db)):
    return list_orders(db)


@router.post("", status_code=status.HTTP_201_CREATED)
def place_order(payload: OrderCreate, db: Session = Depends(get_db)):
    return create_order(
        db,
        user_id=payload.user_id,
        items=[(it.product_id, it.quantity) for it in payload.items],
    )
