from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable

from fastapi import FastAPI
from sqlalchemy.orm import Session

from backend.app.api.v1.router import router as v1_router
from backend.app.core.config import settings
from backend.app.core.errors import setup_exception_handlers
from backend.app.core.logging import setup_logging
from backend.services.clock import Clock, SystemClock
from backend.services.scheduler import ArrivalScheduler


def create_app(
    session_factory: Callable[[], Session] | None = None,
    *,
    clock: Clock | None = None,
    run_scheduler: bool | None = None,
) -> FastAPI:
    setup_logging(settings)

    if session_factory is None:
        from backend.app.db.session import SessionLocal

        session_factory = SessionLocal
    if run_scheduler is None:
        run_scheduler = settings.ARRIVAL_SCHEDULER_ENABLED

    scheduler = ArrivalScheduler(
        session_factory,
        clock=clock or SystemClock(),
        delay=timedelta(seconds=settings.RESTOCK_ARRIVAL_DELAY_SECONDS),
        sweep_interval=settings.ARRIVAL_SWEEP_INTERVAL_SECONDS,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if run_scheduler:
            scheduler.start()
        yield
        scheduler.stop()

    app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)
    app.state.session_factory = session_factory
    app.state.scheduler = scheduler

    setup_exception_handlers(app)
    app.include_router(v1_router, prefix="/api")
    return app


app = create_app()
