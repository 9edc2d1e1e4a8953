from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.db.models.models_v1 import Shelf

router = APIRouter(prefix="/scaffali")


@router.get("")
def list_shelves(db: Session = Depends(get_db)):
    rows = db.execute(select(Shelf).order_by(Shelf.id)).scalars().all()
    return [
        {
            "id": s.id,
            "name": s.name,
            "description": s.description,
        }
        for s in rows
    ]
