"""Tests for the coupon HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from couponengine.main import app


@pytest.fixture
def client():
    """Create a test client for the API."""
    return TestClient(app)


class TestRootEndpoint:
    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"


class TestValidateEndpoint:
    def test_valid_code(self, client: TestClient, stored_coupons):
        response = client.post("/v1/coupons/validate", json={"code": "save10", "orderValue": 300})
        assert response.status_code == 200
        data = response.json()
        assert data["isValid"] is True
        assert "error" not in data
        coupon = data["coupon"]
        assert coupon["code"] == "SAVE10"
        assert float(coupon["discountPercent"]) == 10
        assert coupon["type"] == "percentage"
        assert coupon["usedCount"] == 1
        assert coupon["description"] == "10% off everything"

    def test_snake_case_body_is_accepted(self, client: TestClient, stored_coupons):
        response = client.post("/v1/coupons/validate", json={"code": "SAVE20", "order_value": 50})
        assert response.json()["isValid"] is True

    def test_rejection_is_200_with_reason(self, client: TestClient, stored_coupons):
        response = client.post("/v1/coupons/validate", json={"code": "BIGORDER", "orderValue": 100})
        assert response.status_code == 200
        assert response.json() == {
            "isValid": False,
            "error": "Minimum order value of ₹500.00 required",
        }

    def test_missing_code(self, client: TestClient, stored_coupons):
        response = client.post("/v1/coupons/validate", json={"orderValue": 100})
        assert response.json() == {"isValid": False, "error": "Coupon code is required"}

    def test_negative_order_value(self, client: TestClient, stored_coupons):
        response = client.post("/v1/coupons/validate", json={"code": "SAVE10", "orderValue": -1})
        assert response.status_code == 422

    def test_usage_cap_over_http(self, client: TestClient, stored_coupons):
        first = client.post("/v1/coupons/validate", json={"code": "LASTONE", "orderValue": 10})
        second = client.post("/v1/coupons/validate", json={"code": "LASTONE", "orderValue": 10})
        assert first.json()["isValid"] is True
        assert second.json() == {"isValid": False, "error": "Coupon usage limit reached"}


class TestListEndpoint:
    def test_list_available(self, client: TestClient, stored_coupons):
        response = client.get("/v1/coupons/")
        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "4"
        assert [c["code"] for c in response.json()] == ["BIGORDER", "LASTONE", "SAVE10", "SAVE20"]

    def test_list_empty(self, client: TestClient):
        response = client.get("/v1/coupons/")
        assert response.json() == []
        assert response.headers["X-Total-Count"] == "0"
