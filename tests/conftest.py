"""Test configuration and fixtures for the API tests."""

import os
import tempfile
from typing import Optional

# Settings are cached on first import; configure the environment before that
_DB_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"

import pytest
from fastapi.testclient import TestClient

from storefront_api.database import Base, SessionLocal, engine
from storefront_api.main import app
from storefront_api.models import Tenant, User, UserRole, BusinessProfile, InventoryItem, TenantCategory
from storefront_api.core.security import create_access_token, get_password_hash
from storefront_api.services.gateways import GatewayResult, PaymentGateway, get_gateway_factory

TEST_PASSWORD = "SecurePass123"


class FakeGateway(PaymentGateway):
    """Records calls and returns canned results."""

    def __init__(self, gateway_type: str = "stripe"):
        self.gateway_type = gateway_type
        self.calls = []
        self.fail_with: Optional[GatewayResult] = None

    def _result(self, name: str, status: str, **kwargs) -> GatewayResult:
        self.calls.append((name, kwargs))
        if self.fail_with is not None:
            return self.fail_with
        return GatewayResult(success=True, transaction_id=f"{name}_txn_{len(self.calls)}", status=status)

    async def authorize(self, amount_cents, currency, token, metadata):
        return self._result("authorize", "requires_capture", amount_cents=amount_cents, token=token)

    async def capture(self, transaction_id, amount_cents, currency):
        return self._result("capture", "succeeded", transaction_id=transaction_id, amount_cents=amount_cents)

    async def charge(self, amount_cents, currency, token, metadata):
        return self._result("charge", "succeeded", amount_cents=amount_cents, token=token)

    async def refund(self, transaction_id, amount_cents, currency, reason=None):
        return self._result("refund", "succeeded", transaction_id=transaction_id, amount_cents=amount_cents)


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_gateway():
    gateway = FakeGateway()
    app.dependency_overrides[get_gateway_factory] = lambda: (lambda gateway_type: gateway)
    yield gateway
    app.dependency_overrides.pop(get_gateway_factory, None)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def make_tenant(db):
    def _make(
        slug: str = "corner-shop",
        tier: str = "professional",
        status: str = "active",
        **kwargs,
    ) -> Tenant:
        tenant = Tenant(
            name=kwargs.pop("name", slug.replace("-", " ").title()),
            slug=slug,
            admin_email=kwargs.pop("admin_email", f"owner@{slug}.example.com"),
            subscription_tier=tier,
            subscription_status=status,
            **kwargs,
        )
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant

    return _make


@pytest.fixture
def make_user(db):
    def _make(tenant: Tenant, role: UserRole = UserRole.ADMIN, email: Optional[str] = None,
              is_platform_admin: bool = False) -> User:
        user = User(
            tenant_id=tenant.id,
            email=email or f"{role.value}@{tenant.slug}.example.com",
            hashed_password=get_password_hash(TEST_PASSWORD),
            full_name=f"{role.value.title()} User",
            role=role,
            is_platform_admin=is_platform_admin,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def _auth_headers(user: User, tenant: Tenant) -> dict:
    token = create_access_token({"sub": user.id, "tenant_id": tenant.id})
    return {"Authorization": f"Bearer {token}", "X-Tenant-Slug": tenant.slug}


@pytest.fixture
def auth_headers():
    return _auth_headers


@pytest.fixture
def tenant(make_tenant):
    return make_tenant()


@pytest.fixture
def admin(make_user, tenant):
    return make_user(tenant, UserRole.ADMIN)


@pytest.fixture
def headers(admin, tenant):
    return _auth_headers(admin, tenant)


@pytest.fixture
def make_category(db):
    def _make(tenant: Tenant, slug: str, google_category_id: Optional[str] = None, **kwargs) -> TenantCategory:
        category = TenantCategory(
            tenant_id=tenant.id,
            name=kwargs.pop("name", slug.replace("-", " ").title()),
            slug=slug,
            google_category_id=google_category_id,
            **kwargs,
        )
        db.add(category)
        db.commit()
        db.refresh(category)
        return category

    return _make


@pytest.fixture
def make_item(db):
    def _make(tenant: Tenant, sku: str, **kwargs) -> InventoryItem:
        values = {
            "name": f"Product {sku}",
            "price_cents": 1999,
            "item_status": "active",
            "visibility": "public",
            "category_path": [],
            "image_gallery": [],
        }
        values.update(kwargs)
        item = InventoryItem(tenant_id=tenant.id, sku=sku, **values)
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    return _make


@pytest.fixture
def complete_profile(db, tenant):
    profile = BusinessProfile(
        tenant_id=tenant.id,
        business_name="Corner Shop Coffee",
        address_line1="1 Main St",
        city="Portland",
        state="OR",
        postal_code="97201",
        latitude=45.52,
        longitude=-122.68,
    )
    db.add(profile)
    db.commit()
    return profile