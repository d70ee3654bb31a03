"""Tests for featured products, the public storefront, tracking and recommendations."""

from datetime import datetime, timedelta

import pytest

from storefront_api.models import BehaviorEvent, DirectoryListing, FeaturedProduct


@pytest.fixture
def listed_store(db):
    """Published directory listing for a tenant."""

    def _listed(tenant, **kwargs):
        listing = DirectoryListing(
            tenant_id=tenant.id,
            business_name=tenant.name,
            slug=tenant.slug,
            is_published=True,
            secondary_categories=[],
            seo_keywords=[],
            features=[],
            **kwargs,
        )
        listing.sync_categories()
        db.add(listing)
        db.commit()
        return listing

    return _listed


def _track(client, session_id, entity_id, entity_type="store", **extra):
    return client.post(
        "/api/v1/recommendations/track",
        json={"session_id": session_id, "entity_type": entity_type, "entity_id": entity_id, **extra},
    )


class TestFeaturedProducts:
    """Tenant management of featured items."""

    def test_feature_and_list(self, client, headers, tenant, make_item):
        item = make_item(tenant, "MUG")

        response = client.post(
            "/api/v1/featured-products",
            json={"inventory_item_id": item.id, "featured_type": "staff_pick", "featured_priority": 80},
            headers=headers,
        )

        assert response.status_code == 201
        assert response.json()["is_active"] is True

        listing = client.get("/api/v1/featured-products", params={"featured_type": "staff_pick"}, headers=headers)
        assert [f["inventory_item_id"] for f in listing.json()] == [item.id]

    def test_already_featured(self, client, headers, tenant, make_item):
        item = make_item(tenant, "MUG")
        body = {"inventory_item_id": item.id}
        client.post("/api/v1/featured-products", json=body, headers=headers)

        response = client.post("/api/v1/featured-products", json=body, headers=headers)

        assert response.status_code == 409

    def test_unfeature_then_feature_again_reuses_row(self, client, headers, tenant, make_item, db):
        item = make_item(tenant, "MUG")
        first = client.post("/api/v1/featured-products", json={"inventory_item_id": item.id}, headers=headers).json()

        assert client.delete(f"/api/v1/featured-products/{first['id']}", headers=headers).status_code == 204
        assert client.get("/api/v1/featured-products", headers=headers).json() == []

        again = client.post("/api/v1/featured-products", json={"inventory_item_id": item.id}, headers=headers)
        assert again.json()["id"] == first["id"]
        assert db.query(FeaturedProduct).count() == 1

    def test_stats(self, client, headers, tenant, make_item, db):
        fresh = make_item(tenant, "A")
        stale = make_item(tenant, "B")
        db.add_all([
            FeaturedProduct(tenant_id=tenant.id, inventory_item_id=fresh.id, featured_type="sale"),
            FeaturedProduct(tenant_id=tenant.id, inventory_item_id=stale.id, featured_type="sale",
                            featured_expires_at=datetime.utcnow() - timedelta(days=1)),
        ])
        db.commit()

        stats = client.get("/api/v1/featured-products/stats", headers=headers).json()

        assert stats["total_active"] == 1
        assert stats["expired"] == 1
        assert stats["by_type"]["sale"] == 1

    def test_other_tenant_item(self, client, headers, make_tenant, make_item):
        other_item = make_item(make_tenant(slug="rival-shop"), "THEIRS")

        response = client.post("/api/v1/featured-products", json={"inventory_item_id": other_item.id},
                               headers=headers)

        assert response.status_code == 404


class TestStorefront:
    """Public storefront by slug."""

    def test_featured_grouped_and_expired_removed(self, client, tenant, make_item, db):
        current = make_item(tenant, "NEW")
        expired = make_item(tenant, "OLD")
        hidden = make_item(tenant, "HIDDEN", visibility="private")
        db.add_all([
            FeaturedProduct(tenant_id=tenant.id, inventory_item_id=current.id, featured_type="new_arrival"),
            FeaturedProduct(tenant_id=tenant.id, inventory_item_id=expired.id, featured_type="sale",
                            featured_expires_at=datetime.utcnow() - timedelta(hours=1), auto_unfeature=True),
            FeaturedProduct(tenant_id=tenant.id, inventory_item_id=hidden.id, featured_type="sale"),
        ])
        db.commit()

        response = client.get(f"/api/v1/storefront/{tenant.slug}/featured")

        assert response.status_code == 200
        data = response.json()
        assert [p["sku"] for p in data["featured"]["new_arrival"]] == ["NEW"]
        assert data["featured"]["sale"] == []
        assert data["total"] == 1

        db.expire_all()
        stale = db.query(FeaturedProduct).filter(FeaturedProduct.inventory_item_id == expired.id).one()
        assert stale.is_active is False

    def test_products_lists_public_active_items(self, client, tenant, make_item):
        make_item(tenant, "B", name="Bowl")
        make_item(tenant, "A", name="Apron")
        make_item(tenant, "X", name="Archived", item_status="archived")

        response = client.get(f"/api/v1/storefront/{tenant.slug}/products", params={"limit": 1})

        data = response.json()
        assert data["total"] == 2
        assert [p["name"] for p in data["products"]] == ["Apron"]

    def test_tier_without_storefront(self, client, make_tenant):
        tenant = make_tenant(slug="feed-only", tier="google_only")

        assert client.get(f"/api/v1/storefront/{tenant.slug}/products").status_code == 404


class TestTracking:
    """Anonymous behavior events."""

    def test_track(self, client, db):
        response = _track(client, "sess-1", "tenant-1", page_url="https://shop.example.com/s/corner-shop")

        assert response.status_code == 201
        assert response.json()["tracked"] is True
        event = db.query(BehaviorEvent).filter(BehaviorEvent.id == response.json()["id"]).one()
        assert event.user_agent == "testclient"

    def test_entity_id_required(self, client, db):
        response = client.post(
            "/api/v1/recommendations/track",
            json={"session_id": "sess-1", "entity_type": "store"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "entity_id_required"


class TestRecommendations:
    """Signals built from tracked events and listings."""

    def test_stores_like_this(self, client, make_tenant, listed_store):
        home, bakery, deli = (make_tenant(slug=slug) for slug in ("home-shop", "bakery-shop", "deli-shop"))
        for store in (home, bakery, deli):
            listed_store(store)

        for session in ("s1", "s2"):
            _track(client, session, home.id)
            _track(client, session, bakery.id)
        _track(client, "s3", home.id)
        _track(client, "s3", deli.id)
        _track(client, "s4", deli.id)

        response = client.get(f"/api/v1/recommendations/stores-like-this/{home.id}")

        data = response.json()
        assert data["algorithm"] == "same_sessions"
        assert [r["slug"] for r in data["recommendations"]] == ["bakery-shop", "deli-shop"]
        assert data["recommendations"][0]["score"] == 2

    def test_popular_in_category(self, client, make_tenant, listed_store):
        listed_store(make_tenant(slug="good-beans"), primary_category="Coffee Shop", rating_avg=4.1)
        listed_store(make_tenant(slug="best-beans"), primary_category="Coffee Shop", rating_avg=4.8)
        listed_store(make_tenant(slug="tool-barn"), primary_category="Hardware Store", rating_avg=5.0)

        response = client.get("/api/v1/recommendations/popular-in-category/coffee-shop")

        assert [r["slug"] for r in response.json()["recommendations"]] == ["best-beans", "good-beans"]

    def test_trending_nearby(self, client, make_tenant, listed_store):
        near = make_tenant(slug="near-shop")
        far = make_tenant(slug="far-shop")
        listed_store(near, latitude=45.52, longitude=-122.68)
        listed_store(far, latitude=40.71, longitude=-74.0)
        for session in ("a", "b", "c"):
            _track(client, session, far.id)
        _track(client, "d", near.id)

        everywhere = client.get("/api/v1/recommendations/trending").json()
        nearby = client.get("/api/v1/recommendations/trending", params={"lat": 45.5, "lng": -122.7}).json()

        assert [r["slug"] for r in everywhere["recommendations"]] == ["far-shop", "near-shop"]
        assert nearby["algorithm"] == "trending_nearby"
        assert [r["slug"] for r in nearby["recommendations"]] == ["near-shop"]


class TestBehaviorAnalytics:
    """Per-store analytics on tiers that include it."""

    def test_store_and_product_views(self, client, headers, tenant):
        _track(client, "s1", tenant.id)
        _track(client, "s2", tenant.id)
        _track(client, "s1", "item-1", entity_type="product", entity_name="Mug",
               event_type="product_view", tenant_id=tenant.id)
        _track(client, "s3", "someone-else")

        response = client.get("/api/v1/analytics/behavior", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_events"] == 3
        assert data["unique_sessions"] == 2
        assert data["store_views"] == 2
        assert data["events_by_type"] == {"page_view": 2, "product_view": 1}
        assert data["top_products"] == [{"entity_id": "item-1", "name": "Mug", "views": 1}]
