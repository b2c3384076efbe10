"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from freshtrack.api_server import create_app


@pytest.fixture
def client(service):
    """API client bound to the isolated test service, without the scheduler."""
    app = create_app(service, enable_scheduler=False)
    with TestClient(app) as test_client:
        yield test_client


class TestProducts:
    """Tests for product endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["scanner"] == "idle"

    def test_create_and_list(self, client):
        response = client.post("/products", json={
            "name": "Tomaten", "unit": "kg", "current_stock": 10, "min_stock": 5,
            "expiry_date": "19.06.2025",
        })

        assert response.status_code == 201
        created = response.json()
        assert created["currentStock"] == 10

        listed = client.get("/products").json()
        assert [p["id"] for p in listed] == [created["id"]]
        assert listed[0]["status"] == "expires_this_week"

    def test_create_invalid_expiry(self, client):
        response = client.post("/products", json={"name": "Milch", "expiry_date": "31.02.2025"})

        assert response.status_code == 422
        assert "Invalid expiry date" in response.json()["error"]

    def test_get_product_with_alerts(self, client, processor, tomatoes):
        processor.apply_movement(tomatoes.id, "out", 6, "Küche")

        data = client.get(f"/products/{tomatoes.id}").json()

        assert data["status"] == "low_stock"
        assert [a["id"] for a in data["alerts"]] == [f"{tomatoes.id}-low-stock"]

    def test_get_missing_product(self, client):
        response = client.get("/products/nope")

        assert response.status_code == 404
        assert response.json()["error"] == "Product not found: nope"

    def test_update_product(self, client, tomatoes):
        response = client.patch(f"/products/{tomatoes.id}", json={"location": "Regal B2"})

        assert response.status_code == 200
        assert response.json()["location"] == "Regal B2"
        assert response.json()["currentStock"] == 10

    def test_delete_product(self, client, store, tomatoes):
        response = client.delete(f"/products/{tomatoes.id}")

        assert response.status_code == 200
        assert store.products == []

    def test_search_and_categories(self, client, tomatoes, processor):
        processor.create_product(name="Milch", category="Milchprodukte")

        assert [p["name"] for p in client.get("/products", params={"q": "tom"}).json()] == ["Tomaten"]
        assert client.get("/products/categories").json() == ["Gemüse", "Milchprodukte"]

    def test_summary(self, client, tomatoes):
        data = client.get("/products/summary").json()

        assert data["total_products"] == 1
        assert data["in_stock"] == 1


class TestMovementsAndAlerts:
    """Tests for movement and alert endpoints."""

    def test_record_movement(self, client, store, tomatoes):
        response = client.post("/movements", json={
            "product_id": tomatoes.id, "type": "out", "quantity": 6, "reason": "Küche",
        })

        assert response.status_code == 201
        assert response.json()["user"] == "Current User"
        assert store.get_product(tomatoes.id).current_stock == 4
        assert [a["id"] for a in client.get("/alerts").json()] == [f"{tomatoes.id}-low-stock"]

    @pytest.mark.parametrize("body", [
        {"type": "transfer", "quantity": 1, "reason": "Küche"},
        {"type": "out", "quantity": -1, "reason": "Küche"},
    ])
    def test_invalid_movement(self, client, tomatoes, body):
        response = client.post("/movements", json={"product_id": tomatoes.id, **body})

        assert response.status_code == 422

    def test_movement_for_missing_product(self, client):
        response = client.post("/movements", json={
            "product_id": "nope", "type": "in", "quantity": 1, "reason": "Lieferung",
        })

        assert response.status_code == 404

    def test_write_failure_is_unavailable(self, client, failing_backend, tomatoes):
        failing_backend.fail = True

        response = client.post("/movements", json={
            "product_id": tomatoes.id, "type": "in", "quantity": 1, "reason": "Lieferung",
        })

        assert response.status_code == 503

    def test_list_movements_filtered(self, client, processor, tomatoes):
        processor.apply_movement(tomatoes.id, "out", 2, "Küche")

        outgoing = client.get("/movements", params={"type": "out"}).json()
        for_product = client.get("/movements", params={"product_id": tomatoes.id}).json()

        assert [m["type"] for m in outgoing] == ["out"]
        assert len(for_product) == 2

    def test_acknowledge_alert(self, client, processor, tomatoes):
        processor.apply_movement(tomatoes.id, "out", 6, "Küche")
        alert_id = f"{tomatoes.id}-low-stock"

        response = client.post(f"/alerts/{alert_id}/acknowledge")

        assert response.json()["acknowledged"] is True
        assert client.get("/alerts", params={"include_acknowledged": False}).json() == []

    def test_acknowledge_missing_alert(self, client):
        assert client.post("/alerts/nope/acknowledge").status_code == 404

    def test_refresh_alerts(self, client, clock, processor):
        processor.create_product(name="Milch", current_stock=10, expiry_date="17.06.2025")
        clock.advance(days=2)

        alerts = client.post("/alerts/refresh").json()

        assert [a["message"] for a in alerts] == ["Product expires today"]


class TestScans:
    """Tests for the scan intake endpoints."""

    def test_known_barcode(self, client, tomatoes):
        data = client.post("/scans", json={"code": "4001234567890"}).json()

        assert data["outcome"] == "found"
        assert data["product"]["name"] == "Tomaten"
        assert data["state"] == "idle"

    def test_rapid_repeat_dropped(self, client, tomatoes, scan_clock):
        client.post("/scans", json={"code": "4001234567890"})
        scan_clock.advance(500)

        data = client.post("/scans", json={"code": "4001234567890"}).json()

        assert data["outcome"] == "dropped"

    def test_unknown_barcode_then_create(self, client, store):
        data = client.post("/scans", json={"code": "999"}).json()
        assert data["outcome"] == "not_found"
        assert data["state"] == "dialog_active"

        response = client.post("/scans/confirm", json={"name": "Feta", "current_stock": 4})

        assert response.status_code == 201
        assert response.json()["product"]["barcode"] == "999"
        assert response.json()["state"] == "idle"
        assert store.find_by_barcode("999") is not None

    def test_cancel(self, client):
        client.post("/scans", json={"code": "999"})

        data = client.post("/scans/cancel").json()

        assert data == {"cancelled": True, "state": "idle"}

    def test_confirm_without_prompt(self, client):
        response = client.post("/scans/confirm", json={"name": "Feta"})

        assert response.status_code == 422


class TestTransfer:
    """Tests for export and import endpoints."""

    def test_export(self, client, tomatoes):
        response = client.get("/export")

        assert response.status_code == 200
        assert "freshtrack_export_15.06.2025.json" in response.headers["content-disposition"]
        assert response.json()["metadata"]["recordCounts"]["products"] == 1

    def test_import_replace(self, client, store, tomatoes, sample_export_document):
        response = client.post("/import", json={"document": sample_export_document, "mode": "replace"})

        assert response.status_code == 200
        assert response.json()["counts"] == {"products": 1, "movements": 1, "alerts": 1}
        assert [p.id for p in store.products] == ["1"]

    def test_import_invalid(self, client, sample_export_document):
        del sample_export_document["metadata"]

        response = client.post("/import", json={"document": sample_export_document})

        assert response.status_code == 422
