from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.services.errors import StockError

logger = logging.getLogger(__name__)


def _validation_error_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        field = ".".join(str(item) for item in loc if item not in {"body", "query", "path"}) or None
        errors.append(
            {
                "field": field,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
            }
        )
    return {"errors": errors}


def error_response(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": code, "details": details or {}},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StockError)
    async def stock_error_handler(request: Request, exc: StockError):
        return error_response(exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("invalid request %s %s: %s", request.method, request.url.path, exc.errors())
        return error_response(400, "VALIDATION_ERROR", "Invalid request", _validation_error_details(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled error %s %s", request.method, request.url.path)
        return error_response(500, "INTERNAL_ERROR", "Internal server error", {"type": exc.__class__.__name__})
