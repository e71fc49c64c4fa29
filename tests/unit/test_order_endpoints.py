"""Unit tests for the maintenance order, health and CSRF diagnostic endpoints."""

from urllib.parse import unquote

import httpx
import pytest

from mo_approval.config import Settings
from tests.conftest import login


@pytest.fixture
def headers(client):
    return login(client)


class TestListOrders:
    """Tests for GET /maintenance-orders."""

    def test_requires_session(self, client, fake_sap):
        response = client.get("/maintenance-orders")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}
        assert fake_sap.requests == []

    def test_lists_orders(self, client, headers, fake_sap):
        rows = [{"OrderNumber": "4711"}, {"OrderNumber": "4712"}]
        fake_sap.responses = [httpx.Response(200, json={"d": {"results": rows}})]

        response = client.get(
            "/maintenance-orders",
            params={"plant": "1000", "orderNumber": "4711"},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"] == rows
        assert data["count"] == 2
        assert "timestamp" in data

        params = fake_sap.data_requests[0].url.params
        assert params["$filter"] == "OrderNumber eq '4711' and Plant eq '1000'"

    def test_upstream_status_is_passed_through(self, client, headers, fake_sap):
        fake_sap.responses = [
            httpx.Response(401, json={"error": {"message": {"value": "Logon failed"}}})
        ]

        response = client.get("/maintenance-orders", headers=headers)

        assert response.status_code == 401
        data = response.json()
        assert data["success"] is False
        assert data["statusCode"] == 401
        assert data["details"] == {"error": {"message": {"value": "Logon failed"}}}
        assert "401" in data["error"]

    def test_network_failure_is_bad_gateway(self, client, headers, fake_sap):
        fake_sap.responses = [httpx.ConnectError("connection refused")]

        response = client.get("/maintenance-orders", headers=headers)

        assert response.status_code == 502
        data = response.json()
        assert data["success"] is False
        assert data["statusCode"] is None


class TestGetOrder:
    """Tests for GET /maintenance-orders/{orderNumber}/{objectNumber}."""

    def test_returns_order(self, client, headers, fake_sap):
        entity = {"OrderNumber": "4711", "ObjectNumber": "OR000004711"}
        fake_sap.responses = [httpx.Response(200, json={"d": entity})]

        response = client.get("/maintenance-orders/4711/OR000004711", headers=headers)

        assert response.status_code == 200
        assert response.json()["data"] == entity
        assert "ObjectNumber='OR000004711'" in unquote(str(fake_sap.data_requests[0].url))

    def test_not_found_upstream(self, client, headers, fake_sap):
        fake_sap.responses = [httpx.Response(404, text="Resource not found")]

        response = client.get("/maintenance-orders/1/2", headers=headers)

        assert response.status_code == 404
        assert response.json()["details"] == "Resource not found"


class TestApprove:
    """Tests for POST /maintenance-orders/approve."""

    def test_approve(self, client, headers):
        orders = [{"OrderNumber": "4711"}, {"OrderNumber": "4712"}]

        response = client.post(
            "/maintenance-orders/approve", json={"orders": orders}, headers=headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Successfully approved 2 order(s)"
        assert data["approvedOrders"] == orders

    @pytest.mark.parametrize("body", [{}, {"orders": []}, {"orders": "4711"}])
    def test_invalid_body(self, client, headers, body):
        response = client.post("/maintenance-orders/approve", json=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Field 'orders'")

    def test_requires_session(self, client):
        response = client.post("/maintenance-orders/approve", json={"orders": [1]})
        assert response.status_code == 401


class TestServiceEndpoints:
    """Tests for /, /health and the CSRF diagnostics."""

    def test_index(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "MO Approval Backend API"
        assert "GET /health" in data["endpoints"]

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert data["configuration"]["sapBaseUrl"] == "https://sap.example.com"
        assert data["configuration"]["sapUsername"] == "configured"
        assert data["configuration"]["sapPassword"] == "configured"
        assert data["configuration"]["sapClient"] == "400"
        assert data["csrf"] == {"enabled": True, "tokenValid": False, "expiresIn": "0 minutes"}
        assert "svc_pass" not in response.text

    def test_health_reports_missing_settings(self, users_file, fake_sap):
        from fastapi.testclient import TestClient

        from mo_approval.main import create_app

        settings = Settings(users_file=str(users_file), sap_base_url="", sap_password="")
        with TestClient(create_app(settings, transport=fake_sap.transport())) as tc:
            data = tc.get("/health").json()

        assert data["configuration"]["sapBaseUrl"] == "not configured"
        assert data["configuration"]["sapPassword"] == "not configured"

    def test_csrf_info_requires_admin(self, client):
        assert client.get("/csrf-info").status_code == 403

    def test_csrf_refresh_and_info(self, client, headers, fake_sap):
        refreshed = client.post("/csrf-refresh", headers=headers)

        assert refreshed.status_code == 200
        assert refreshed.json()["success"] is True
        assert fake_sap.token_fetches == 1

        info = client.get("/csrf-info", headers=headers).json()["csrfToken"]
        assert info["hasToken"] is True
        assert info["hasCookies"] is True
        assert info["isValid"] is True
        assert 3500 * 1000 < info["expiresIn"] <= 3600 * 1000
        assert "tok-1" not in str(info)

        health = client.get("/health").json()
        assert health["csrf"]["tokenValid"] is True
        assert health["csrf"]["expiresIn"] in ("59 minutes", "60 minutes")

    def test_csrf_refresh_failure(self, client, headers, fake_sap):
        fake_sap.token_status = 500

        response = client.post("/csrf-refresh", headers=headers)

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"].startswith("CSRF token fetch failed")
