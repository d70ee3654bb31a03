"""Tests for Stripe webhook verification and subscription sync."""

import hashlib
import hmac
import json
import time

from storefront_api.models import StripeWebhookEvent, Tenant
from storefront_api.services.stripe_webhooks import extract_tier, map_subscription_status

WEBHOOK_SECRET = "whsec_test_secret"


def _signed(event: dict, secret: str = WEBHOOK_SECRET):
    payload = json.dumps(event)
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return payload, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def _subscription_event(event_id: str, customer: str, tier: str = "professional", status: str = "active") -> dict:
    return {
        "id": event_id,
        "type": "customer.subscription.updated",
        "data": {
            "object": {
                "id": "sub_123",
                "customer": customer,
                "status": status,
                "current_period_end": 1893456000,
                "items": {"data": [{"price": {"metadata": {"tier": tier}}}]},
            }
        },
    }


class TestEventMapping:
    """Pure mapping helpers."""

    def test_status_map(self):
        assert map_subscription_status("trialing") == "trial"
        assert map_subscription_status("unpaid") == "past_due"
        assert map_subscription_status("incomplete_expired") == "expired"
        assert map_subscription_status("something_new") == "active"

    def test_tier_from_price_metadata(self):
        subscription = {"items": {"data": [{"price": {"metadata": {"plan": "Enterprise"}}}]}}

        assert extract_tier(subscription) == "enterprise"
        assert extract_tier({}) == "starter"


class TestWebhookEndpoint:
    """Signature verification, dispatch and idempotency."""

    def test_missing_signature(self, client, db):
        response = client.post("/stripe/webhooks", content=b"{}")

        assert response.status_code == 400

    def test_bad_signature(self, client, db):
        payload, headers = _signed({"id": "evt_1", "type": "ping"}, secret="whsec_wrong")

        response = client.post("/stripe/webhooks", content=payload, headers=headers)

        assert response.status_code == 400
        assert db.query(StripeWebhookEvent).count() == 0

    def test_subscription_update(self, client, db, make_tenant):
        tenant = make_tenant(slug="billing-shop", tier="starter", status="trial", stripe_customer_id="cus_123")
        payload, headers = _signed(_subscription_event("evt_sub_1", "cus_123"))

        response = client.post("/stripe/webhooks", content=payload, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"received": True}
        db.expire_all()
        updated = db.query(Tenant).filter(Tenant.id == tenant.id).one()
        assert updated.subscription_tier == "professional"
        assert updated.subscription_status == "active"
        assert updated.stripe_subscription_id == "sub_123"
        assert updated.subscription_ends_at is not None

    def test_redelivery_is_acknowledged_once(self, client, db, make_tenant):
        make_tenant(slug="billing-shop", stripe_customer_id="cus_123")
        payload, headers = _signed(_subscription_event("evt_dup", "cus_123"))

        first = client.post("/stripe/webhooks", content=payload, headers=headers)
        second = client.post("/stripe/webhooks", content=payload, headers=headers)

        assert first.json() == {"received": True}
        assert second.json() == {"received": True, "duplicate": True}
        assert db.query(StripeWebhookEvent).filter(StripeWebhookEvent.event_id == "evt_dup").count() == 1

    def test_checkout_links_customer(self, client, db, tenant):
        event = {
            "id": "evt_checkout",
            "type": "checkout.session.completed",
            "data": {"object": {"id": "cs_1", "customer": "cus_new", "subscription": "sub_new",
                                "metadata": {"tenantId": tenant.id}}},
        }
        payload, headers = _signed(event)

        response = client.post("/stripe/webhooks", content=payload, headers=headers)

        assert response.status_code == 200
        db.expire_all()
        linked = db.query(Tenant).filter(Tenant.id == tenant.id).one()
        assert linked.stripe_customer_id == "cus_new"
        assert linked.stripe_subscription_id == "sub_new"

    def test_failed_invoice_marks_past_due(self, client, db, make_tenant):
        tenant = make_tenant(slug="late-shop", stripe_customer_id="cus_late", stripe_subscription_id="sub_late")
        payload, headers = _signed({
            "id": "evt_inv",
            "type": "invoice.payment_failed",
            "data": {"object": {"id": "in_1", "customer": "cus_late", "subscription": "sub_late"}},
        })

        client.post("/stripe/webhooks", content=payload, headers=headers)

        db.expire_all()
        assert db.query(Tenant).filter(Tenant.id == tenant.id).one().subscription_status == "past_due"

    def test_one_off_invoice_leaves_subscription_alone(self, client, db, make_tenant):
        tenant = make_tenant(slug="late-shop", stripe_customer_id="cus_late", stripe_subscription_id="sub_late")
        payload, headers = _signed({
            "id": "evt_inv_one_off",
            "type": "invoice.payment_failed",
            "data": {"object": {"id": "in_2", "customer": "cus_late", "subscription": None}},
        })

        response = client.post("/stripe/webhooks", content=payload, headers=headers)

        assert response.status_code == 200
        db.expire_all()
        assert db.query(Tenant).filter(Tenant.id == tenant.id).one().subscription_status == "active"

    def test_deleting_old_subscription_keeps_current_one(self, client, db, make_tenant):
        tenant = make_tenant(slug="switched-shop", stripe_customer_id="cus_sw", stripe_subscription_id="sub_NEW")
        payload, headers = _signed({
            "id": "evt_del_old",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_OLD", "customer": "cus_sw", "status": "canceled"}},
        })

        client.post("/stripe/webhooks", content=payload, headers=headers)

        db.expire_all()
        assert db.query(Tenant).filter(Tenant.id == tenant.id).one().subscription_status == "active"

    def test_deleting_current_subscription_cancels(self, client, db, make_tenant):
        tenant = make_tenant(slug="leaving-shop", stripe_customer_id="cus_lv", stripe_subscription_id="sub_lv")
        payload, headers = _signed({
            "id": "evt_del",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_lv", "customer": "cus_lv", "ended_at": 1893456000}},
        })

        client.post("/stripe/webhooks", content=payload, headers=headers)

        db.expire_all()
        updated = db.query(Tenant).filter(Tenant.id == tenant.id).one()
        assert updated.subscription_status == "canceled"
        assert updated.subscription_ends_at is not None

    def test_unhandled_event_is_recorded(self, client, db):
        payload, headers = _signed({"id": "evt_other", "type": "charge.refunded", "data": {"object": {}}})

        response = client.post("/stripe/webhooks", content=payload, headers=headers)

        assert response.status_code == 200
        assert db.query(StripeWebhookEvent).count() == 1
