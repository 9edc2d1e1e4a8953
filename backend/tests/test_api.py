from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

import backend.app.api.v1.endpoints.warehouse as warehouse_endpoints
from backend.app.db.models.models_v1 import Order
from backend.app.main import create_app
from backend.services.errors import InternalError


# ---------- MAGAZZINO ----------
def test_transfer_endpoint(client, seed_stock, ledger):
    seed_stock("P-001", warehouse=10, shelves={1: (0, "2.00")})

    resp = client.post("/api/magazzino/trasferisci", json={"productId": "P-001", "quantity": 4, "shelfId": 1})

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Transfer completed"
    assert body["transferredQuantity"] == 4
    assert body["warehouseRemaining"] == 6
    assert body["catalog"]["quantityAvailable"] == 4
    assert body["catalog"]["price"] == 2.0
    assert ledger.shelf("P-001", 1) == 4


def test_transfer_insufficient_stock_is_409(client, seed_stock):
    seed_stock("P-001", warehouse=2)

    resp = client.post("/api/magazzino/trasferisci", json={"productId": "P-001", "quantity": 5, "shelfId": 1})

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["details"] == {"productId": "P-001", "available": 2}


def test_transfer_unknown_shelf_is_404(client, seed_stock):
    seed_stock("P-001", warehouse=2)

    resp = client.post("/api/magazzino/trasferisci", json={"productId": "P-001", "quantity": 1, "shelfId": 77})

    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


def test_transfer_validation_is_400(client):
    resp = client.post("/api/magazzino/trasferisci", json={"productId": "P-001", "quantity": 0, "shelfId": 1})

    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"]["errors"][0]["field"] == "quantity"


def test_transfer_missing_body_is_400(client):
    resp = client.post("/api/magazzino/trasferisci")
    assert resp.status_code == 400


def test_reconcile_endpoint(client, add_restock, clock, ledger):
    add_restock("P-001", 9, arrived=True, actual_arrival_at=clock.now())

    first = client.post("/api/magazzino/riconcilia-arrivi")
    second = client.post("/api/magazzino/riconcilia-arrivi")

    assert first.status_code == 200
    assert first.json() == {"updated": 1}
    assert second.json() == {"updated": 0}
    assert ledger.warehouse("P-001") == 9


def test_reconcile_internal_error_is_500(client, monkeypatch):
    def failing(db):
        raise InternalError("reconcile_arrivals failed")

    monkeypatch.setattr(warehouse_endpoints, "reconcile_arrivals", failing)

    resp = client.post("/api/magazzino/riconcilia-arrivi")

    assert resp.status_code == 500
    assert resp.json()["code"] == "INTERNAL_ERROR"


def test_get_warehouse_stock(client, seed_stock):
    seed_stock("P-001", warehouse=5)
    seed_stock("P-002", warehouse=1)

    resp = client.get("/api/magazzino", params={"productId": "P-001"})

    assert resp.status_code == 200
    assert resp.json() == [{"productId": "P-001", "quantityAvailable": 5, "lastArrivedRestockId": None}]
    assert len(client.get("/api/magazzino").json()) == 2


# ---------- ORDINI ----------
def test_create_order_endpoint(client, seed_stock, ledger):
    seed_stock("P-001", warehouse=6, shelves={1: (4, "2.50")})

    resp = client.post("/api/ordini", json={"userId": 1, "items": [{"productId": "P-001", "quantity": 3}]})

    assert resp.status_code == 201
    body = resp.json()
    assert body["total"] == 7.5
    assert body["status"] == "CREATED"
    assert body["lines"][0]["lineTotal"] == 7.5
    assert ledger.shelf("P-001", 1) == 1
    assert ledger.warehouse("P-001") == 3

    orders = client.get("/api/ordini").json()
    assert [o["orderId"] for o in orders] == [body["orderId"]]
    assert orders[0]["lines"][0]["name"] == "Spaghetti n.5"


def test_create_order_empty_items_is_400(client, ledger):
    resp = client.post("/api/ordini", json={"userId": 1, "items": []})

    assert resp.status_code == 400
    assert ledger.count(Order) == 0


def test_create_order_bad_quantity_is_400(client):
    resp = client.post("/api/ordini", json={"userId": 1, "items": [{"productId": "P-001", "quantity": -3}]})
    assert resp.status_code == 400


def test_create_order_unknown_product_is_404(client):
    resp = client.post("/api/ordini", json={"userId": 1, "items": [{"productId": "P-404", "quantity": 1}]})

    assert resp.status_code == 404
    assert resp.json()["details"]["productId"] == "P-404"


def test_create_order_insufficient_stock_rolls_back(client, seed_stock, ledger):
    seed_stock("P-001", shelves={1: (5, "1.00")})
    seed_stock("P-002", shelves={1: (1, "1.00")})

    resp = client.post(
        "/api/ordini",
        json={
            "userId": 1,
            "items": [{"productId": "P-001", "quantity": 2}, {"productId": "P-002", "quantity": 2}],
        },
    )

    assert resp.status_code == 409
    assert resp.json()["details"] == {"productId": "P-002", "available": 1}
    assert ledger.shelf("P-001", 1) == 5
    assert ledger.count(Order) == 0


# ---------- RIORDINI ----------
def test_create_restock_endpoint(client, clock):
    resp = client.post(
        "/api/riordini",
        json={"productId": "P-001", "supplierId": 1, "quantity": 10, "responsibleId": 2},
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["state"] == "ORDERED"
    assert body["arrived"] is False
    assert body["supplierName"] == "Centrale Ortofrutticola"
    assert body["responsibleFirstName"] == "Luca"

    # planificateur arrêté : aucun déclencheur en mémoire, le balayage suffit
    assert client.app.state.scheduler.pending() == []


def test_create_restock_schedules_arrival_when_scheduler_runs(session_factory, clock, master_data):
    app = create_app(session_factory, clock=clock, run_scheduler=True)
    with TestClient(app) as c:
        body = c.post("/api/riordini", json={"productId": "P-001", "supplierId": 1, "quantity": 10}).json()
        pending = app.state.scheduler.pending()

    assert pending == [(clock.now() + timedelta(seconds=30), body["id"])]
    assert not app.state.scheduler.running


def test_offset_expected_arrival_is_stored_in_utc(client, clock, ledger):
    """12:00+02:00 = 10:00Z : arrivée appliquée à 10:05Z, pas deux heures plus tard."""
    assert clock.now() == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    body = client.post(
        "/api/riordini",
        json={"productId": "P-001", "supplierId": 1, "quantity": 5, "expectedArrivalAt": "2026-03-02T12:00:00+02:00"},
    ).json()

    clock.advance(minutes=55)
    client.get("/api/riordini")
    assert ledger.warehouse("P-001") is None

    clock.advance(minutes=10)
    restocks = client.get("/api/riordini").json()

    assert ledger.warehouse("P-001") == 5
    assert restocks[0]["id"] == body["id"]
    assert restocks[0]["state"] == "ARRIVED"


def test_create_restock_invalid_supplier_is_400(client):
    resp = client.post("/api/riordini", json={"productId": "P-001", "supplierId": 99, "quantity": 10})

    assert resp.status_code == 400
    assert resp.json()["details"]["field"] == "supplierId"


def test_confirm_arrival_endpoint(client, ledger):
    restock_id = client.post("/api/riordini", json={"productId": "P-001", "supplierId": 1, "quantity": 10}).json()["id"]

    first = client.patch(f"/api/riordini/{restock_id}/arrivo")
    second = client.patch(f"/api/riordini/{restock_id}/arrivo")

    assert first.status_code == 200
    assert first.json() == {"ok": True}
    assert second.status_code == 404
    assert ledger.warehouse("P-001") == 10


def test_confirm_arrival_with_date(client, clock, ledger):
    restock_id = client.post("/api/riordini", json={"productId": "P-001", "supplierId": 1, "quantity": 2}).json()["id"]
    arrived_at = clock.now() - timedelta(hours=3)

    resp = client.patch(f"/api/riordini/{restock_id}/arrivo", json={"arrivedAt": arrived_at.isoformat()})

    assert resp.status_code == 200
    assert ledger.restock(restock_id).arrived is True


def test_confirm_unknown_restock_is_404(client):
    resp = client.patch("/api/riordini/999/arrivo")

    assert resp.status_code == 404
    assert resp.json()["details"] == {"restockId": 999}


def test_list_restocks_runs_pending_sweep(client, clock, ledger):
    """Timer perdu (jamais exécuté ici) : la lecture de la liste applique l'arrivée."""
    restock_id = client.post("/api/riordini", json={"productId": "P-002", "supplierId": 1, "quantity": 12}).json()["id"]

    before = client.get("/api/riordini").json()
    assert before[0]["state"] == "ORDERED"
    assert ledger.warehouse("P-002") is None

    clock.advance(31)
    after = client.get("/api/riordini").json()

    assert after[0]["id"] == restock_id
    assert after[0]["arrived"] is True
    assert after[0]["state"] == "ARRIVED"
    assert ledger.warehouse("P-002") == 12


# ---------- ANNEXES ----------
def test_master_data_endpoints(client):
    suppliers = client.get("/api/fornitori").json()
    shelves = client.get("/api/scaffali").json()

    assert [s["name"] for s in suppliers] == ["Centrale Ortofrutticola"]
    assert [s["name"] for s in shelves] == ["A1", "B1"]


def test_health(client):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["scheduler"] == "stopped"
