"""Tests for subscription tier tables and tier gating."""

from datetime import datetime, timedelta
from types import SimpleNamespace

from storefront_api.core import tiers
from storefront_api.middleware.rate_limit import resolve_limits
from storefront_api.models import UserRole


def _tenant(tier="starter", status="active", trial_ends_at=None, **overrides):
    values = {
        "subscription_tier": tier,
        "subscription_status": status,
        "trial_ends_at": trial_ends_at,
        "rate_limit_per_minute": None,
        "rate_limit_burst": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestTierTable:
    """Static tier limits and features."""

    def test_sku_limits(self):
        assert tiers.max_skus("google_only") == 250
        assert tiers.max_skus("starter") == 500
        assert tiers.max_skus("professional") == 5000
        assert tiers.max_skus("enterprise") is None
        assert tiers.max_skus("organization") is None

    def test_unknown_tier_falls_back_to_starter(self):
        assert tiers.max_skus("platinum") == 500
        assert tiers.max_skus(None) == 500
        assert tiers.get_tier("platinum").tier == "starter"

    def test_features_are_cumulative(self):
        assert tiers.tier_has_feature("enterprise", "storefront")
        assert tiers.tier_has_feature("enterprise", "behavior_analytics")
        assert not tiers.tier_has_feature("starter", "behavior_analytics")

    def test_google_only_has_no_storefront(self):
        assert tiers.tier_has_feature("google_only", "google_shopping")
        assert not tiers.tier_has_feature("google_only", "storefront")
        assert not tiers.tier_has_feature("google_only", "directory_listing")

    def test_required_tier_for_feature(self):
        assert tiers.required_tier_for("featured_products") == "starter"
        assert tiers.required_tier_for("behavior_analytics") == "professional"
        assert tiers.required_tier_for("white_label") == "enterprise"
        assert tiers.required_tier_for("no_such_feature") is None

    def test_billable_tier_normalization(self):
        assert tiers.normalize_billable_tier("Professional") == "professional"
        assert tiers.normalize_billable_tier("google_only") == "starter"
        assert tiers.normalize_billable_tier(None) == "starter"


class TestFrozenTenants:
    """Read-only state derived from tier and subscription status."""

    def test_active_paid_tier_is_not_frozen(self):
        assert not tiers.is_tenant_frozen(_tenant("professional", "active"))

    def test_canceled_and_expired_are_frozen(self):
        assert tiers.is_tenant_frozen(_tenant("enterprise", "canceled"))
        assert tiers.is_tenant_frozen(_tenant("starter", "expired"))

    def test_google_only_inside_maintenance_window(self):
        now = datetime(2026, 1, 1)
        tenant = _tenant("google_only", "active", trial_ends_at=now + timedelta(days=3))
        assert not tiers.is_tenant_frozen(tenant, now)

    def test_google_only_outside_maintenance_window(self):
        now = datetime(2026, 1, 1)
        assert tiers.is_tenant_frozen(_tenant("google_only", "active", trial_ends_at=now - timedelta(days=1)), now)
        assert tiers.is_tenant_frozen(_tenant("google_only", "active"), now)
        assert tiers.is_tenant_frozen(_tenant("google_only", "trial", trial_ends_at=now + timedelta(days=3)), now)


class TestRateLimitResolution:
    """Tenant overrides win over the tier table."""

    def test_tier_limits(self):
        assert resolve_limits(_tenant("professional")) == (300, 50)

    def test_tenant_override(self):
        assert resolve_limits(_tenant("starter", rate_limit_per_minute=999, rate_limit_burst=7)) == (999, 7)


class TestTierEndpoints:
    """Tier gating through the API."""

    def test_tier_summary(self, client, headers, make_item, tenant):
        make_item(tenant, "A-1")
        make_item(tenant, "A-2", item_status="archived")

        response = client.get("/api/v1/tenant/tier", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["tier"] == "professional"
        assert data["limits"]["max_skus"] == 5000
        assert data["usage"]["sku_count"] == 1
        assert "behavior_analytics" in data["features"]
        assert data["is_frozen"] is False

    def test_feature_gate_reports_required_tier(self, client, make_tenant, make_user, auth_headers):
        tenant = make_tenant(slug="small-shop", tier="starter")
        user = make_user(tenant, UserRole.ADMIN)

        response = client.get("/api/v1/analytics/behavior", headers=auth_headers(user, tenant))

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["error"] == "tier_upgrade_required"
        assert detail["current_tier"] == "starter"
        assert detail["required_tier"] == "professional"

    def test_feature_gate_rejects_inactive_subscription(self, client, make_tenant, make_user, auth_headers):
        tenant = make_tenant(slug="lapsed-shop", tier="enterprise", status="canceled")
        user = make_user(tenant, UserRole.ADMIN)

        response = client.get("/api/v1/featured-products", headers=auth_headers(user, tenant))

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "subscription_inactive"

    def test_sku_limit_reached(self, client, make_tenant, make_user, make_item, auth_headers, monkeypatch):
        tenant = make_tenant(slug="tiny-shop", tier="starter")
        user = make_user(tenant, UserRole.MEMBER)
        monkeypatch.setitem(
            tiers.TIERS, "starter", tiers.TierInfo("starter", "Starter", 49, 2, 1, 120, 20, tiers.TIERS["starter"].features)
        )
        make_item(tenant, "S-1")
        make_item(tenant, "S-2")

        response = client.post(
            "/api/v1/items",
            json={"sku": "S-3", "name": "One too many"},
            headers=auth_headers(user, tenant),
        )

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["error"] == "sku_limit_reached"
        assert detail["limit"] == 2
