from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_scheduler
from backend.app.db.base import utcnow
from backend.services.scheduler import ArrivalScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health")


@router.get("")
def health(
    db: Session = Depends(get_db),
    scheduler: ArrivalScheduler = Depends(get_scheduler),
):
    try:
        db.execute(text("SELECT 1")).scalar()
    except SQLAlchemyError as exc:
        logger.warning("health check failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "disconnected", "error": str(exc)},
        )
    return {
        "status": "healthy",
        "database": "connected",
        "scheduler": "running" if scheduler.running else "stopped",
        "pendingArrivals": len(scheduler.pending()),
        "timestamp": utcnow().isoformat(),
    }
