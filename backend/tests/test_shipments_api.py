"""
Shipment intake endpoint tests.

POST / is exercised through TestClient. OrderDesk is replaced with an
httpx.MockTransport injected into submit_shipments; no real calls are made.

Coverage:
  - success body shape and X-Request-Id header
  - single record vs list of records in mail_attachments
  - 400 for malformed bodies and missing tracking numbers
  - upstream rejection (400) and transport failure (500)
  - fail-fast: nothing from earlier shipments is returned on failure
  - unexpected errors become a generic 500
"""

import json
import logging
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from app.services import orderdesk


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_attachment(
    tracking_number: str | None = "1Z999AA10123456784",
    **overrides,
) -> dict:
    """Build a flat legacy attachment as produced by the mail parser."""
    attachment = {
        "tracking_number": tracking_number,
        "brightstores_order_id": "BS-1001",
        "brightstores_shipping_method": "UPS GRND",
        "order_items_code": "SKU-1",
        "shipment_quantity": 2,
    }
    attachment.update(overrides)
    return attachment


def _patch_orderdesk(handler):
    """Route submit_shipments through a MockTransport-backed client."""

    async def fake_submit(shipments):
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await orderdesk.submit_shipments(shipments, client=client)

    return patch("app.routers.shipments.submit_shipments", side_effect=fake_submit)


def _ok_handler(sent: list):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        sent.append(body)
        return httpx.Response(200, json={"status": "success", "tracking": body["tracking_number"]})
    return handler


@pytest.fixture()
def client():
    from app.main import app
    return TestClient(app)


# ===========================================================================
# POST /  — success
# ===========================================================================

class TestReceiveShipmentsSuccess:

    def test_single_record_is_submitted(self, client):
        sent = []
        with _patch_orderdesk(_ok_handler(sent)):
            response = client.post("/", json={"mail_attachments": _make_attachment()})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["request_id"]
        assert data["responses"] == [
            {
                "tracking_number": "1Z999AA10123456784",
                "response": {"status": "success", "tracking": "1Z999AA10123456784"},
            }
        ]
        assert sent == [
            {
                "tracking_number": "1Z999AA10123456784",
                "source_id": "BS-1001",
                "carrier_code": "UPS",
                "shipment_method": "Ground",
                "order_items": [{"code": "SKU-1", "quantity": 2}],
            }
        ]

    def test_request_id_header_matches_body(self, client):
        with _patch_orderdesk(_ok_handler([])):
            response = client.post("/", json={"mail_attachments": _make_attachment()})

        assert response.headers["X-Request-Id"] == response.json()["request_id"]

    def test_list_is_grouped_by_tracking_number(self, client):
        sent = []
        attachments = [
            _make_attachment("T1", order_items_code="A", shipment_quantity=1),
            _make_attachment("T2", order_items_code="B", shipment_quantity=1),
            _make_attachment("T1", order_items_code="C", shipment_quantity=4),
        ]
        with _patch_orderdesk(_ok_handler(sent)):
            response = client.post("/", json={"mail_attachments": attachments})

        assert response.status_code == 200
        assert [r["tracking_number"] for r in response.json()["responses"]] == ["T1", "T2"]
        assert sent[0]["order_items"] == [
            {"code": "A", "quantity": 1},
            {"code": "C", "quantity": 4},
        ]

    def test_zero_quantity_item_dropped_from_merged_record(self, client):
        sent = []
        attachments = [
            {"tracking_number": "T9", "sku": "A", "quantity": 0},
            {"tracking_number": "T9", "sku": "A", "quantity": 3},
        ]
        with _patch_orderdesk(_ok_handler(sent)):
            response = client.post("/", json={"mail_attachments": attachments})

        assert response.status_code == 200
        assert sent[0]["order_items"] == [{"code": "A", "quantity": 3}]

    def test_oversized_quantity_dropped_without_failing_request(self, client):
        sent = []
        attachment = {"tracking_number": "T1", "sku": "A", "quantity": 10 ** 400}
        with _patch_orderdesk(_ok_handler(sent)):
            response = client.post("/", json={"mail_attachments": attachment})

        assert response.status_code == 200
        assert sent[0]["order_items"] == []

    def test_logs_prepared_and_sent_events(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="app.routers.shipments"):
            with _patch_orderdesk(_ok_handler([])):
                client.post("/", json={"mail_attachments": [_make_attachment("T1"), _make_attachment("T2")]})

        messages = [r.getMessage() for r in caplog.records if r.name == "app.routers.shipments"]
        assert sum(m.startswith("payload.prepared ") for m in messages) == 2
        assert sum(m.startswith("payload.sent ") for m in messages) == 1
        assert all("SKU-1" not in m for m in messages)


# ===========================================================================
# POST /  — validation
# ===========================================================================

class TestReceiveShipmentsValidation:

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"mail_attachments": None},
            {"mail_attachments": "T1"},
            [{"tracking_number": "T1"}],
        ],
    )
    def test_malformed_body_returns_400(self, client, body):
        with _patch_orderdesk(_ok_handler([])) as mock_submit:
            response = client.post("/", json=body)

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert "mail_attachments" in data["message"]
        assert data["request_id"] == response.headers["X-Request-Id"]
        assert data["details"] is None
        mock_submit.assert_not_called()

    def test_non_json_body_returns_400(self, client):
        response = client.post(
            "/",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_missing_tracking_number_returns_400(self, client):
        with _patch_orderdesk(_ok_handler([])) as mock_submit:
            response = client.post(
                "/",
                json={"mail_attachments": _make_attachment(tracking_number=None)},
            )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid attachment: Missing 'tracking_number'."
        mock_submit.assert_not_called()


# ===========================================================================
# POST /  — upstream failures
# ===========================================================================

class TestReceiveShipmentsUpstreamErrors:

    def test_rejection_on_second_of_three_aborts_batch(self, client):
        sent = []

        def handler(request):
            body = json.loads(request.content)
            sent.append(body["tracking_number"])
            if body["tracking_number"] == "T2":
                return httpx.Response(404, json={"message": "Order not found"})
            return httpx.Response(200, json={"status": "success"})

        attachments = [_make_attachment("T1"), _make_attachment("T2"), _make_attachment("T3")]
        with _patch_orderdesk(handler):
            response = client.post("/", json={"mail_attachments": attachments})

        assert response.status_code == 400
        assert sent == ["T1", "T2"]
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Failed to submit shipment"
        assert "responses" not in data
        assert data["details"]["status"] == "404 Not Found"
        assert data["details"]["tracking_number"] == "T2"
        assert data["details"]["requestBody"]["tracking_number"] == "T2"
        assert data["details"]["serverResponse"] == {"message": "Order not found"}

    def test_json_array_upstream_body_returned_as_parsed(self, client):
        def handler(request):
            return httpx.Response(422, json=["bad code"])

        with _patch_orderdesk(handler):
            response = client.post("/", json={"mail_attachments": _make_attachment("T1")})

        assert response.status_code == 400
        assert response.json()["details"]["serverResponse"] == ["bad code"]

    def test_transport_failure_returns_500(self, client):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with _patch_orderdesk(handler):
            response = client.post("/", json={"mail_attachments": _make_attachment("T1")})

        assert response.status_code == 500
        assert response.json()["details"]["tracking_number"] == "T1"

    def test_unexpected_error_returns_generic_500(self, client):
        with patch(
            "app.routers.shipments.submit_shipments",
            side_effect=RuntimeError("boom"),
        ):
            response = client.post("/", json={"mail_attachments": _make_attachment()})

        assert response.status_code == 500
        data = response.json()
        assert data == {
            "success": False,
            "message": "An unexpected error occurred",
            "request_id": response.headers["X-Request-Id"],
            "details": None,
        }


# ===========================================================================
# GET /health
# ===========================================================================

class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_startup_logs_orderdesk_url(self, caplog):
        from app.config import ORDERDESK_URL
        from app.main import app

        with caplog.at_level(logging.INFO, logger="app.main"):
            with TestClient(app) as lifespan_client:
                assert lifespan_client.get("/health").status_code == 200

        assert any(
            r.name == "app.main" and ORDERDESK_URL in r.getMessage()
            for r in caplog.records
        )
