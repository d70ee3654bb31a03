"""Tests for feed push job lifecycle and endpoints."""

from datetime import datetime, timedelta

from storefront_api.config import get_settings
from storefront_api.models import FeedPushJob, UserRole
from storefront_api.services.feed_jobs import apply_status, retry_delay


class TestRetryBackoff:
    """Failed jobs are re-queued with an increasing delay."""

    def test_backoff_table(self):
        assert [retry_delay(n) for n in range(6)] == [60, 300, 900, 3600, 3600, 3600]

    def test_failure_requeues_until_max_retries(self):
        now = datetime(2026, 3, 1, 12, 0, 0)
        job = FeedPushJob(tenant_id="t1", job_status="processing", retry_count=0, max_retries=2)

        apply_status(job, "failed", now=now, error_message="timeout", error_code="ETIMEDOUT")

        assert job.job_status == "queued"
        assert job.retry_count == 1
        assert job.next_retry == now + timedelta(seconds=60)
        assert job.error_code == "ETIMEDOUT"

        apply_status(job, "failed", now=now, error_message="timeout again")

        assert job.job_status == "failed"
        assert job.retry_count == 2
        assert job.completed_at == now

    def test_success_clears_error(self):
        now = datetime(2026, 3, 1)
        job = FeedPushJob(tenant_id="t1", job_status="processing", retry_count=1, max_retries=5,
                          error_message="old", error_code="OLD")

        apply_status(job, "success", now=now, result={"pushed": 10})

        assert job.job_status == "success"
        assert job.completed_at == now
        assert job.error_message is None
        assert job.result == {"pushed": 10}

    def test_processing_stamps_attempt(self):
        now = datetime(2026, 3, 1)
        job = FeedPushJob(tenant_id="t1", job_status="queued", retry_count=0, max_retries=5)

        apply_status(job, "processing", now=now)

        assert job.job_status == "processing"
        assert job.last_attempt == now


class TestFeedJobEndpoints:
    """Feed job queue through the API."""

    def test_create_and_get(self, client, headers):
        response = client.post("/api/v1/feed-jobs", json={"sku": "A-1"}, headers=headers)

        assert response.status_code == 201
        job = response.json()
        assert job["job_status"] == "queued"
        assert job["retry_count"] == 0

        fetched = client.get(f"/api/v1/feed-jobs/{job['id']}", headers=headers)
        assert fetched.status_code == 200
        assert fetched.json()["sku"] == "A-1"

    def test_frozen_tenant_cannot_queue(self, client, make_tenant, make_user, auth_headers):
        tenant = make_tenant(slug="frozen-shop", tier="google_only", status="active")
        user = make_user(tenant, UserRole.ADMIN)

        response = client.post("/api/v1/feed-jobs", json={}, headers=auth_headers(user, tenant))

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "subscription_read_only"

    def test_alignment_gate(self, client, headers, tenant, make_item, make_category, monkeypatch):
        monkeypatch.setattr(get_settings(), "FEED_ALIGNMENT_ENFORCE", True)
        aligned = make_category(tenant, "coffee", "1868")
        unaligned = make_category(tenant, "misc")
        make_item(tenant, "OK", directory_category_id=aligned.id)
        make_item(tenant, "BAD", directory_category_id=unaligned.id)

        response = client.post("/api/v1/feed-jobs", json={}, headers=headers)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error"] == "alignment_required"
        assert detail["unaligned"] == 1
        assert detail["examples"][0]["sku"] == "BAD"

        single = client.post("/api/v1/feed-jobs", json={"sku": "OK"}, headers=headers)
        assert single.status_code == 201

    def test_ready_queue_skips_future_retries(self, client, headers, tenant, db):
        now = datetime.utcnow()
        db.add_all([
            FeedPushJob(tenant_id=tenant.id, sku="due", job_status="queued", next_retry=now - timedelta(minutes=1)),
            FeedPushJob(tenant_id=tenant.id, sku="new", job_status="queued"),
            FeedPushJob(tenant_id=tenant.id, sku="later", job_status="queued", next_retry=now + timedelta(hours=1)),
            FeedPushJob(tenant_id=tenant.id, sku="done", job_status="success"),
        ])
        db.commit()

        response = client.get("/api/v1/feed-jobs/ready", headers=headers)

        assert response.status_code == 200
        assert sorted(job["sku"] for job in response.json()) == ["due", "new"]

    def test_status_failure_requeues(self, client, headers):
        job = client.post("/api/v1/feed-jobs", json={"max_retries": 3}, headers=headers).json()

        response = client.patch(
            f"/api/v1/feed-jobs/{job['id']}/status",
            json={"status": "failed", "error_message": "Merchant API 503", "error_code": "UNAVAILABLE"},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["job_status"] == "queued"
        assert data["retry_count"] == 1
        assert data["next_retry"] is not None

    def test_stats_and_list(self, client, headers, tenant, db):
        db.add_all([
            FeedPushJob(tenant_id=tenant.id, job_status="success"),
            FeedPushJob(tenant_id=tenant.id, job_status="success"),
            FeedPushJob(tenant_id=tenant.id, job_status="failed"),
        ])
        db.commit()

        stats = client.get("/api/v1/feed-jobs/stats", headers=headers).json()
        assert stats["total"] == 3
        assert stats["success_rate"] == 66.67

        listing = client.get("/api/v1/feed-jobs", params={"status": "success", "limit": 1}, headers=headers).json()
        assert listing["total"] == 2
        assert listing["has_more"] is True

    def test_other_tenant_job_is_not_found(self, client, headers, make_tenant, db):
        other = make_tenant(slug="other-shop")
        job = FeedPushJob(tenant_id=other.id, job_status="queued")
        db.add(job)
        db.commit()

        response = client.get(f"/api/v1/feed-jobs/{job.id}", headers=headers)

        assert response.status_code == 404
