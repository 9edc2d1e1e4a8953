from __future__ import annotations

from typing import Generator

from fastapi import Request

from backend.services.scheduler import ArrivalScheduler

def get_db(request: Request) -> Generator:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()

def get_scheduler(request: Request) -> ArrivalScheduler:
    return request.app.state.scheduler
