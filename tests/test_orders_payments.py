"""Tests for order totals, order status and the payment lifecycle."""

import re
from datetime import datetime, timedelta

import pytest

from storefront_api.models import Order, Payment, UserRole
from storefront_api.services.fees import calculate_fees
from storefront_api.services.gateways import GatewayResult
from storefront_api.services.orders import calculate_line_item, calculate_order_totals

CARD = {"type": "card", "token": "pm_card_visa"}


@pytest.fixture
def order(client, headers, tenant, make_item):
    item = make_item(tenant, "MUG", price_cents=1999)
    response = client.post(
        "/api/v1/orders",
        json={
            "customer": {"email": "buyer@example.com", "name": "Pat Buyer"},
            "items": [{"inventory_item_id": item.id, "quantity": 2, "tax_rate": 0.1}],
            "shipping_cents": 500,
            "shipping_address": {"line1": "1 Main St", "city": "Portland", "state": "OR", "postal_code": "97201"},
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


class TestOrderMath:
    """Line and order totals in cents."""

    def test_line_tax_on_discounted_subtotal(self):
        line = calculate_line_item(3, 1000, tax_rate=0.0825, discount_cents=500)

        assert line.subtotal_cents == 3000
        assert line.tax_cents == 206
        assert line.total_cents == 2706

    def test_discount_capped_at_subtotal(self):
        line = calculate_line_item(1, 300, discount_cents=1000)

        assert line.discount_cents == 300
        assert line.total_cents == 0

    def test_order_totals(self):
        lines = [calculate_line_item(2, 1999, 0.1), calculate_line_item(1, 500)]

        totals = calculate_order_totals(lines, shipping_cents=700, order_discount_cents=100)

        assert totals == {
            "subtotal_cents": 4498,
            "tax_cents": 400,
            "shipping_cents": 700,
            "discount_cents": 100,
            "total_cents": 5498,
        }


class TestFees:
    """Platform fee and its waiver."""

    def test_platform_fee_for_paid_tiers(self):
        fees = calculate_fees(10000, "stripe", "professional")

        assert fees.gateway_fee_cents == 320
        assert fees.platform_fee_cents == 100
        assert fees.net_amount_cents == 9580
        assert fees.fee_waived_reason is None

    def test_waived_for_enterprise(self):
        fees = calculate_fees(10000, "paypal", "enterprise")

        assert fees.platform_fee_cents == 0
        assert fees.fee_waived_reason == "tier_included"
        assert fees.gateway_fee_cents == 398


class TestOrders:
    """Order endpoints."""

    def test_create_order(self, order):
        assert re.fullmatch(r"ORD-\d{8}-\d{4}", order["order_number"])
        assert order["order_number"].endswith("-0001")
        assert order["subtotal_cents"] == 3998
        assert order["tax_cents"] == 400
        assert order["total_cents"] == 4898
        assert order["order_status"] == "draft"
        assert order["payment_status"] == "pending"
        assert order["billing_address"] == order["shipping_address"]
        assert order["items"][0]["sku"] == "MUG"
        assert order["items"][0]["unit_price_cents"] == 1999
        assert order["history"][0]["reason"] == "Order created"

    def test_order_numbers_increase(self, client, headers, order):
        second = client.post(
            "/api/v1/orders",
            json={
                "customer": {"email": "other@example.com"},
                "items": [{"sku": "GIFT", "name": "Gift wrap", "unit_price_cents": 300, "quantity": 1}],
            },
            headers=headers,
        )

        assert second.status_code == 201
        assert second.json()["order_number"].endswith("-0002")
        assert second.json()["items"][0]["inventory_item_id"] is None

    def test_unknown_catalog_item(self, client, headers):
        response = client.post(
            "/api/v1/orders",
            json={"customer": {"email": "buyer@example.com"}, "items": [{"inventory_item_id": "nope", "quantity": 1}]},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == {"error": "unknown_items", "inventory_item_ids": ["nope"]}

    def test_unpriced_catalog_item_needs_explicit_price(self, client, headers, tenant, make_item):
        item = make_item(tenant, "QUOTE", price_cents=None)
        body = {"customer": {"email": "buyer@example.com"}, "items": [{"inventory_item_id": item.id, "quantity": 1}]}

        rejected = client.post("/api/v1/orders", json=body, headers=headers)
        body["items"][0]["unit_price_cents"] = 4500
        priced = client.post("/api/v1/orders", json=body, headers=headers)

        assert rejected.status_code == 400
        assert rejected.json()["detail"]["error"] == "item_has_no_price"
        assert rejected.json()["detail"]["inventory_item_ids"] == [item.id]
        assert priced.status_code == 201
        assert priced.json()["subtotal_cents"] == 4500

    def test_line_without_reference_is_rejected(self, client, headers):
        response = client.post(
            "/api/v1/orders",
            json={"customer": {"email": "buyer@example.com"}, "items": [{"sku": "X", "quantity": 1}]},
            headers=headers,
        )

        assert response.status_code == 400

    def test_list_and_search(self, client, headers, order):
        response = client.get("/api/v1/orders", params={"search": "buyer@"}, headers=headers)

        data = response.json()
        assert data["total"] == 1
        assert data["orders"][0]["id"] == order["id"]

        empty = client.get("/api/v1/orders", params={"status": "paid"}, headers=headers)
        assert empty.json()["total"] == 0

    def test_status_change_is_logged(self, client, headers, order):
        response = client.patch(
            f"/api/v1/orders/{order['id']}/status",
            json={"status": "confirmed", "notes": "Called customer"},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["order_status"] == "confirmed"
        assert data["confirmed_at"] is not None
        assert [h["new_status"] for h in data["history"]] == ["draft", "confirmed"]

    def test_cancelled_is_terminal(self, client, headers, order):
        client.patch(f"/api/v1/orders/{order['id']}/status", json={"status": "cancelled"}, headers=headers)

        response = client.patch(f"/api/v1/orders/{order['id']}/status", json={"status": "paid"}, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_transition"

    def test_other_tenant_cannot_read(self, client, order, make_tenant, make_user, auth_headers):
        other = make_tenant(slug="rival-shop")
        user = make_user(other, UserRole.ADMIN)

        response = client.get(f"/api/v1/orders/{order['id']}", headers=auth_headers(user, other))

        assert response.status_code == 404


class TestPayments:
    """Authorize, capture, charge and refund through a recording gateway."""

    def test_authorize_then_capture(self, client, headers, order, fake_gateway):
        authorized = client.post(
            "/api/v1/payments/authorize",
            json={"order_id": order["id"], "payment_method": CARD},
            headers=headers,
        )

        assert authorized.status_code == 201
        payment = authorized.json()
        assert payment["payment_status"] == "authorized"
        assert payment["amount_cents"] == 4898
        assert payment["authorization_expires_at"] is not None
        assert fake_gateway.calls[0] == ("authorize", {"amount_cents": 4898, "token": "pm_card_visa"})

        captured = client.post(f"/api/v1/payments/{payment['id']}/capture", json={}, headers=headers)

        assert captured.status_code == 200
        assert captured.json()["payment_status"] == "paid"
        detail = client.get(f"/api/v1/orders/{order['id']}", headers=headers).json()
        assert detail["order_status"] == "paid"
        assert detail["payment_status"] == "paid"
        assert detail["paid_at"] is not None

    def test_capture_expired_authorization(self, client, headers, order, fake_gateway, db):
        payment = client.post(
            "/api/v1/payments/authorize",
            json={"order_id": order["id"], "payment_method": CARD},
            headers=headers,
        ).json()
        row = db.query(Payment).filter(Payment.id == payment["id"]).one()
        row.authorization_expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.commit()

        response = client.post(f"/api/v1/payments/{payment['id']}/capture", json={}, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "authorization_expired"
        assert [name for name, _ in fake_gateway.calls] == ["authorize"]

    def test_capture_more_than_authorized(self, client, headers, order, fake_gateway):
        payment = client.post(
            "/api/v1/payments/authorize",
            json={"order_id": order["id"], "payment_method": CARD, "amount_cents": 1000},
            headers=headers,
        ).json()

        response = client.post(
            f"/api/v1/payments/{payment['id']}/capture", json={"amount_cents": 1001}, headers=headers
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "amount_exceeds_authorization"

    def test_charge_records_fees(self, client, headers, order, fake_gateway):
        response = client.post(
            "/api/v1/payments/charge",
            json={"order_id": order["id"], "payment_method": CARD},
            headers=headers,
        )

        assert response.status_code == 201
        payment = response.json()
        assert payment["payment_status"] == "paid"
        assert payment["gateway_fee_cents"] == 172
        assert payment["platform_fee_cents"] == 49
        assert payment["net_amount_cents"] == 4677

        again = client.post(
            "/api/v1/payments/charge",
            json={"order_id": order["id"], "payment_method": CARD},
            headers=headers,
        )
        assert again.status_code == 400
        assert again.json()["detail"]["error"] == "order_already_paid"

    def test_gateway_failure_is_recorded(self, client, headers, order, fake_gateway, db):
        fake_gateway.fail_with = GatewayResult(success=False, error_code="card_declined",
                                               error_message="Your card was declined.")

        response = client.post(
            "/api/v1/payments/charge",
            json={"order_id": order["id"], "payment_method": CARD},
            headers=headers,
        )

        assert response.status_code == 402
        assert response.json()["detail"]["code"] == "card_declined"
        failed = db.query(Payment).filter(Payment.order_id == order["id"]).one()
        assert failed.payment_status == "failed"
        assert failed.failure_message == "Your card was declined."

    def test_partial_then_full_refund(self, client, headers, order, fake_gateway, db):
        payment = client.post(
            "/api/v1/payments/charge",
            json={"order_id": order["id"], "payment_method": CARD},
            headers=headers,
        ).json()

        partial = client.post(
            f"/api/v1/payments/{payment['id']}/refund", json={"amount_cents": 898, "reason": "Chipped mug"},
            headers=headers,
        )
        assert partial.status_code == 200
        assert partial.json()["payment_status"] == "partially_refunded"
        assert partial.json()["refunded_cents"] == 898

        too_much = client.post(
            f"/api/v1/payments/{payment['id']}/refund", json={"amount_cents": 4001}, headers=headers
        )
        assert too_much.status_code == 400
        assert too_much.json()["detail"]["refundable_cents"] == 4000

        rest = client.post(f"/api/v1/payments/{payment['id']}/refund", json={}, headers=headers)
        assert rest.json()["payment_status"] == "refunded"
        assert rest.json()["refunded_cents"] == 4898

        order_row = db.query(Order).filter(Order.id == order["id"]).one()
        assert order_row.order_status == "refunded"
        assert order_row.payment_status == "refunded"

    def test_refund_requires_admin(self, client, tenant, order, make_user, auth_headers, fake_gateway, headers):
        payment = client.post(
            "/api/v1/payments/charge",
            json={"order_id": order["id"], "payment_method": CARD},
            headers=headers,
        ).json()
        member = make_user(tenant, UserRole.MEMBER)

        response = client.post(f"/api/v1/payments/{payment['id']}/refund", json={},
                               headers=auth_headers(member, tenant))

        assert response.status_code == 403

    def test_list_order_payments(self, client, headers, order, fake_gateway):
        client.post("/api/v1/payments/authorize", json={"order_id": order["id"], "payment_method": CARD},
                    headers=headers)

        response = client.get(f"/api/v1/payments/order/{order['id']}", headers=headers)

        assert response.status_code == 200
        assert len(response.json()) == 1
