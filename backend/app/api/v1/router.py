from fastapi import APIRouter

from backend.app.api.v1.endpoints.health import router as health_router
from backend.app.api.v1.endpoints.warehouse import router as warehouse_router
from backend.app.api.v1.endpoints.orders import router as orders_router
from backend.app.api.v1.endpoints.restocks import router as restocks_router
from backend.app.api.v1.endpoints.suppliers import router as suppliers_router
from backend.app.api.v1.endpoints.shelves import router as shelves_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(warehouse_router, tags=["warehouse"])
router.include_router(orders_router, tags=["orders"])
router.include_router(restocks_router, tags=["restocks"])
router.include_router(suppliers_router, tags=["suppliers"])
router.include_router(shelves_router, tags=["shelves"])
