"""Tests for platform admin dashboards and security telemetry."""

import pytest

from storefront_api.models import DirectoryListing, SecurityAlert, Tenant, UserRole


@pytest.fixture
def platform_headers(tenant, make_user, auth_headers):
    operator = make_user(tenant, UserRole.ADMIN, email="ops@example.com", is_platform_admin=True)
    return auth_headers(operator, tenant)


def _report(client, type="auth_failure", severity="warning", message="Repeated failed logins", **extra):
    return client.post(
        "/api/v1/security/telemetry",
        json={"type": type, "severity": severity, "message": message, **extra},
    )


class TestTelemetry:
    """Public intake that feeds the alert inbox."""

    def test_creates_unread_alert(self, client, db):
        response = _report(client, metadata={"attempts": 7})

        assert response.status_code == 201
        alert = db.query(SecurityAlert).filter(SecurityAlert.id == response.json()["alert_id"]).one()
        assert alert.title == "Authentication failure"
        assert alert.read is False
        assert alert.alert_metadata["attempts"] == 7
        assert "ip_address" in alert.alert_metadata

    def test_unknown_type_rejected(self, client, db):
        response = _report(client, type="sql_injection")

        assert response.status_code == 400


class TestAlerts:
    """Alert inbox for platform operators."""

    def test_requires_platform_admin(self, client, headers):
        assert client.get("/api/v1/admin/security/alerts", headers=headers).status_code == 403

    def test_list_and_filter(self, client, platform_headers):
        _report(client, severity="critical", type="security_incident", message="Token replay")
        _report(client)

        everything = client.get("/api/v1/admin/security/alerts", headers=platform_headers).json()
        critical = client.get("/api/v1/admin/security/alerts", params={"severity": "critical"},
                              headers=platform_headers).json()

        assert everything["total"] == 2
        assert everything["unread"] == 2
        assert [a["title"] for a in critical["alerts"]] == ["Security incident"]

    def test_mark_read_and_stats(self, client, platform_headers):
        alert_id = _report(client, severity="critical", type="security_incident").json()["alert_id"]
        _report(client)

        read = client.post(f"/api/v1/admin/security/alerts/{alert_id}/read", headers=platform_headers)
        assert read.status_code == 200
        assert read.json()["read"] is True
        assert read.json()["read_at"] is not None

        stats = client.get("/api/v1/admin/security/alerts/stats", headers=platform_headers).json()
        assert stats["total"] == 2
        assert stats["unread"] == 1
        assert stats["last_24h"] == 2
        assert stats["critical"] == 1
        assert stats["by_type"] == {"security_incident": 1, "auth_failure": 1}

        unread = client.get("/api/v1/admin/security/alerts", params={"unread": True}, headers=platform_headers)
        assert unread.json()["total"] == 1

    def test_unknown_alert(self, client, platform_headers):
        assert client.post("/api/v1/admin/security/alerts/nope/read", headers=platform_headers).status_code == 404


class TestPlatform:
    """Cross-tenant stats and tier changes."""

    def test_platform_stats(self, client, platform_headers, make_tenant):
        make_tenant(slug="starter-shop", tier="starter", status="trial")

        stats = client.get("/api/v1/admin/platform/stats", headers=platform_headers).json()

        assert stats["tenants"]["total"] == 2
        assert stats["tenants"]["by_tier"]["professional"] == 1
        assert stats["tenants"]["by_tier"]["starter"] == 1
        assert stats["tenants"]["by_tier"]["enterprise"] == 0
        assert stats["tenants"]["by_status"]["trial"] == 1
        assert stats["feed_jobs"] == {"queued": 0, "processing": 0, "success": 0, "failed": 0}
        assert stats["orders"]["paid_revenue_cents"] == 0

    def test_change_tier_syncs_listing(self, client, platform_headers, make_tenant, db):
        shop = make_tenant(slug="growing-shop", tier="starter")
        db.add(DirectoryListing(tenant_id=shop.id, business_name="Growing", slug="growing-shop",
                                subscription_tier="starter", secondary_categories=[], seo_keywords=[], features=[]))
        db.commit()

        response = client.patch(
            f"/api/v1/admin/tenants/{shop.id}/tier",
            json={"subscription_tier": "enterprise", "subscription_status": "active", "reason": "Annual deal"},
            headers=platform_headers,
        )

        assert response.status_code == 200
        db.expire_all()
        assert db.query(Tenant).filter(Tenant.id == shop.id).one().subscription_tier == "enterprise"
        assert db.query(DirectoryListing).filter(DirectoryListing.tenant_id == shop.id).one().subscription_tier == "enterprise"

    def test_change_tier_validates(self, client, platform_headers, tenant):
        response = client.patch(
            f"/api/v1/admin/tenants/{tenant.id}/tier",
            json={"subscription_tier": "platinum"},
            headers=platform_headers,
        )

        assert response.status_code == 400

    def test_change_tier_unknown_tenant(self, client, platform_headers):
        response = client.patch(
            "/api/v1/admin/tenants/missing/tier",
            json={"subscription_tier": "starter"},
            headers=platform_headers,
        )

        assert response.status_code == 404
