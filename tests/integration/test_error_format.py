"""Integration tests for standardized error responses."""

import pytest

pytestmark = pytest.mark.integration

ORDERS = "/api/v1/orders/"


class TestStandardizedErrors:
    def test_auth_error_has_standard_format(self, api_client):
        response = api_client.get(ORDERS)
        assert response.status_code == 401
        data = response.json()
        assert data["type"] == "authentication_error"
        assert isinstance(data["errors"], list)
        assert data["errors"]
        assert "code" in data["errors"][0]
        assert "detail" in data["errors"][0]

    def test_permission_error_has_standard_format(self, customer_client):
        response = customer_client.get(ORDERS)
        assert response.status_code == 403
        assert response.json()["type"] == "permission_error"

    def test_malformed_json_has_standard_format(self, api_client):
        response = api_client.post(
            "/api/v1/orders/reconcile/", data="{", content_type="application/json"
        )
        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "client_error"
        assert data["errors"][0]["code"] == "parse_error"

    def test_nested_field_errors_are_flattened(self, api_client, order_payload):
        order_payload["items"][1]["unit_price"] = "abc"
        response = api_client.post(ORDERS, order_payload, format="json")

        assert response.status_code == 400
        attrs = [error["attr"] for error in response.json()["errors"]]
        assert "items.1.unit_price" in attrs

    def test_domain_error_has_standard_format(self, api_client):
        response = api_client.get(f"{ORDERS}by-payment/pi_nothing/")
        data = response.json()
        assert data["type"] == "client_error"
        assert data["errors"] == [
            {
                "code": "order_not_found",
                "detail": "No order exists yet for this payment.",
                "attr": None,
            }
        ]
