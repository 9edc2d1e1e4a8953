"""
Erreurs métier du sous-système stock.

Chaque erreur porte son code HTTP ; la traduction en réponse JSON est faite
par backend.app.core.errors.
"""

from __future__ import annotations


class StockError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(StockError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(StockError):
    status_code = 404
    code = "NOT_FOUND"


class InsufficientStockError(StockError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, message: str, *, product_id: str, available: int, **details) -> None:
        super().__init__(message, productId=product_id, available=available, **details)
        self.product_id = product_id
        self.available = available


class InternalError(StockError):
    pass
