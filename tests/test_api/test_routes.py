"""Tests for the FastAPI REST API endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from autocomplaint.api.app import app

SAMPLE = "Order Number: ORD-123456 Total: $49.99 ordered on 12 March 2024 Sold by Acme Corp"


@pytest.fixture(autouse=True)
def no_api_token(monkeypatch):
    monkeypatch.delenv("AUTOCOMPLAINT_API_TOKEN", raising=False)


@pytest.fixture
def client():
    return TestClient(app)


class TestHealthEndpoint:
    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "autocomplaint"


class TestClassifyEndpoint:
    def test_order_page(self, client):
        response = client.post(
            "/api/v1/classify",
            json={"text": "Order Number: ORD-1234 Order confirmed. Payment successful.", "mode": "gating"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["is_order_page"] is True
        assert data["confidence"] >= 0.7
        assert data["mode"] == "gating"

    def test_storefront(self, client):
        response = client.post("/api/v1/classify", json={"text": "Browse our catalog and add to cart"})
        assert response.status_code == 200
        assert response.json()["is_order_page"] is False

    def test_missing_text(self, client):
        assert client.post("/api/v1/classify", json={}).status_code == 422

    def test_non_string_text(self, client):
        assert client.post("/api/v1/classify", json={"text": 12}).status_code == 422


class TestExtractEndpoint:
    def test_extract_uses_storage_names(self, client):
        response = client.post(
            "/api/v1/extract",
            json={"text": SAMPLE, "source_url": "https://shop.example/orders/1"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["orderId"]["value"] == "ORD-123456"
        assert "49.99" in data["price"]["value"]
        assert data["sellerName"]["value"].startswith("Acme")
        assert data["sourceUrl"] == "https://shop.example/orders/1"
        assert "orderId" in data["extractedFields"] or "order_id" in data["extractedFields"]


class TestFillPlanEndpoint:
    def test_plan_from_flat_candidates(self, client):
        response = client.post(
            "/api/v1/fill-plan",
            json={
                "record": {"orderId": {"value": "ORD-1"}, "customerEmail": {"value": "a@b.co"}},
                "candidates": [{"name": "orderId"}, {"name": "city"}],
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert [e["field_name"] for e in data["entries"]] == ["order_id"]
        assert data["entries"][0]["match_strategy"] == "exact_attribute"
        assert data["unmatched"] == ["customer_email"]
        assert data["summary"] == "1 of 2 fields filled"

    def test_plan_with_select_other(self, client):
        response = client.post(
            "/api/v1/fill-plan",
            json={
                "record": {"productCategory": {"value": "Furniture"}},
                "candidates_by_field": {
                    "productCategory": [
                        {
                            "name": "category",
                            "tag_kind": "select",
                            "options": [
                                {"value": "el", "display_text": "Electronics"},
                                {"value": "ot", "display_text": "Other"},
                            ],
                        }
                    ]
                },
            },
        )
        assert response.status_code == 200
        entry = response.json()["entries"][0]
        assert entry["matched_option_value"] == "ot"
        assert entry["overflow_text"] == "Furniture"

    def test_plans_the_pass_once(self, client, monkeypatch):
        from autocomplaint.api import routes

        calls = []
        original = routes._filler.plan

        def counting_plan(record, by_field):
            calls.append(record)
            return original(record, by_field)

        monkeypatch.setattr(routes._filler, "plan", counting_plan)
        response = client.post(
            "/api/v1/fill-plan",
            json={"record": {"orderId": {"value": "ORD-1"}}, "candidates": [{"name": "orderId"}]},
        )
        assert response.status_code == 200
        assert response.json()["summary"] == "1 of 1 fields filled"
        assert len(calls) == 1

    def test_invalid_record(self, client):
        response = client.post(
            "/api/v1/fill-plan",
            json={"record": {"orderId": {"value": "x", "confidence": 5}}},
        )
        assert response.status_code == 400
