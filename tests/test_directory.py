"""Tests for the public directory and a store's own listing."""

from datetime import datetime, timedelta

import pytest

from storefront_api.models import DirectoryListing, UserRole


@pytest.fixture
def publish(db, make_tenant):
    """Create a tenant with a published listing."""

    def _publish(slug, **kwargs):
        tenant = make_tenant(slug=slug)
        values = {
            "business_name": slug.replace("-", " ").title(),
            "secondary_categories": [],
            "seo_keywords": [],
            "features": [],
        }
        values.update(kwargs)
        listing = DirectoryListing(tenant_id=tenant.id, slug=slug, is_published=True, **values)
        listing.sync_categories()
        db.add(listing)
        db.commit()
        return listing

    return _publish


class TestDirectorySearch:
    """Public search filters and ordering."""

    def test_only_published_listings(self, client, publish, db, make_tenant):
        publish("bean-there", city="Portland", state="OR")
        hidden = make_tenant(slug="draft-shop")
        db.add(DirectoryListing(tenant_id=hidden.id, business_name="Draft", slug="draft-shop",
                                secondary_categories=[], seo_keywords=[], features=[]))
        db.commit()

        response = client.get("/api/v1/directory/search")

        assert response.status_code == 200
        data = response.json()
        assert [listing["slug"] for listing in data["listings"]] == ["bean-there"]
        assert data["pagination"] == {"page": 1, "limit": 24, "total_items": 1, "total_pages": 1}

    def test_text_category_and_location_filters(self, client, publish):
        publish("bean-there", primary_category="Coffee Shop", city="Portland", state="OR")
        publish("bolt-depot", primary_category="Hardware Store", city="Portland", state="OR")
        publish("far-beans", primary_category="Coffee Shop", city="Austin", state="TX")

        by_text = client.get("/api/v1/directory/search", params={"q": "coffee"}).json()
        assert {listing["slug"] for listing in by_text["listings"]} == {"bean-there", "far-beans"}

        by_category = client.get("/api/v1/directory/search", params={"category": "coffee-shop", "state": "or"}).json()
        assert [listing["slug"] for listing in by_category["listings"]] == ["bean-there"]

    def test_features_and_min_rating(self, client, publish):
        publish("patio-place", features=["wifi", "outdoor_seating"], rating_avg=4.6)
        publish("wifi-only", features=["wifi"], rating_avg=3.2)

        response = client.get("/api/v1/directory/search", params={"features": "wifi,outdoor_seating"})
        assert [listing["slug"] for listing in response.json()["listings"]] == ["patio-place"]

        response = client.get("/api/v1/directory/search", params={"min_rating": 4})
        assert [listing["slug"] for listing in response.json()["listings"]] == ["patio-place"]

    def test_sort_by_name_and_paging(self, client, publish):
        for slug in ("charlie-co", "alpha-co", "bravo-co"):
            publish(slug)

        response = client.get("/api/v1/directory/search", params={"sort": "name", "limit": 2, "page": 2})

        data = response.json()
        assert [listing["slug"] for listing in data["listings"]] == ["charlie-co"]
        assert data["pagination"]["total_pages"] == 2

    def test_invalid_sort_is_a_validation_error(self, client, db):
        response = client.get("/api/v1/directory/search", params={"sort": "cheapest"})

        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"

    def test_geo_radius_and_distance_sort(self, client, publish):
        publish("downtown", latitude=45.5152, longitude=-122.6784)
        publish("suburb", latitude=45.4871, longitude=-122.8037)
        publish("seattle", latitude=47.6062, longitude=-122.3321)

        response = client.get(
            "/api/v1/directory/search",
            params={"lat": 45.52, "lng": -122.68, "radius_km": 25, "sort": "distance"},
        )

        listings = response.json()["listings"]
        assert [listing["slug"] for listing in listings] == ["downtown", "suburb"]
        assert listings[0]["distance_km"] < listings[1]["distance_km"]
        assert response.json()["pagination"]["total_items"] == 2

    def test_geo_search_across_antimeridian(self, client, publish):
        publish("suva-east", latitude=-17.8, longitude=179.9)
        publish("taveuni", latitude=-16.85, longitude=-179.95)
        publish("nadi", latitude=-17.77, longitude=177.44)

        west = client.get("/api/v1/directory/search", params={"lat": -17.8, "lng": -179.9, "radius_km": 50})
        east = client.get("/api/v1/directory/search", params={"lat": -16.85, "lng": 179.95, "radius_km": 50})

        assert [listing["slug"] for listing in west.json()["listings"]] == ["suva-east"]
        assert west.json()["listings"][0]["distance_km"] < 25
        assert [listing["slug"] for listing in east.json()["listings"]] == ["taveuni"]


class TestDirectoryBrowse:
    """Category and location facets, single listing lookup."""

    def test_categories_with_counts(self, client, publish):
        publish("bean-there", primary_category="Coffee Shop", secondary_categories=["Bakery"])
        publish("crumbs", primary_category="Bakery")

        response = client.get("/api/v1/directory/categories")

        counts = {entry["slug"]: entry["count"] for entry in response.json()}
        assert counts == {"bakery": 2, "coffee-shop": 1}

    def test_locations(self, client, publish):
        publish("one", city="Portland", state="OR")
        publish("two", city="Portland", state="OR")
        publish("three", city="Bend", state="OR")

        response = client.get("/api/v1/directory/locations")

        locations = response.json()
        assert locations[0] == {"city": "Portland", "state": "OR", "slug": "portland-or", "count": 2}
        assert len(locations) == 2

    def test_get_listing(self, client, publish):
        publish("bean-there", city="Portland", state="OR")

        response = client.get("/api/v1/directory/bean-there")

        assert response.status_code == 200
        assert response.json()["city"] == "Portland"

    def test_unknown_listing(self, client, db):
        response = client.get("/api/v1/directory/nope")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "listing_not_found"


class TestOwnListing:
    """A store managing and publishing its directory entry."""

    def test_get_creates_draft_from_profile(self, client, headers, complete_profile):
        response = client.get("/api/v1/directory-listing", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["business_name"] == "Corner Shop Coffee"
        assert data["slug"] == "corner-shop-coffee"
        assert data["city"] == "Portland"
        assert data["is_published"] is False

    def test_patch_updates_categories(self, client, headers, db):
        response = client.patch(
            "/api/v1/directory-listing",
            json={"primary_category": "Coffee Shop", "secondary_categories": ["Bakery"], "features": ["wifi"]},
            headers=headers,
        )

        assert response.status_code == 200
        listing = db.query(DirectoryListing).first()
        assert sorted(c.category_slug for c in listing.categories) == ["bakery", "coffee-shop"]

    def test_publish_requires_complete_profile(self, client, headers):
        response = client.post("/api/v1/directory-listing/publish", headers=headers)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "incomplete_profile"
        assert set(detail["missing_fields"]) == {"city", "state"}

    def test_publish(self, client, headers, tenant, complete_profile, make_item):
        make_item(tenant, "A")
        make_item(tenant, "B")

        response = client.post("/api/v1/directory-listing/publish", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["is_published"] is True
        assert data["product_count"] == 2
        assert data["subscription_tier"] == "professional"

        assert client.get(f"/api/v1/directory/{data['slug']}").status_code == 200

        unpublished = client.post("/api/v1/directory-listing/unpublish", headers=headers)
        assert unpublished.json()["is_published"] is False
        assert client.get(f"/api/v1/directory/{data['slug']}").status_code == 404

    def test_google_only_cannot_publish(self, client, make_tenant, make_user, auth_headers):
        tenant = make_tenant(slug="feed-only", tier="google_only",
                             trial_ends_at=datetime.utcnow() + timedelta(days=5))
        user = make_user(tenant, UserRole.ADMIN)

        response = client.post("/api/v1/directory-listing/publish", headers=auth_headers(user, tenant))

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "directory_not_available_for_tier"

    def test_members_cannot_publish(self, client, tenant, make_user, auth_headers, complete_profile):
        member = make_user(tenant, UserRole.MEMBER)

        response = client.post("/api/v1/directory-listing/publish", headers=auth_headers(member, tenant))

        assert response.status_code == 403
