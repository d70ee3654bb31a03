"""
Tenant Middleware

Resolves the store a request acts on and puts it on ``request.state``.

Resolution order:
1. X-Tenant-Slug header (dashboard and API clients)
2. Subdomain of the Host header (acme.shop.example -> "acme")
3. X-Tenant-ID header

Public surfaces (directory, storefront, reviews, taxonomy, tracking,
Stripe webhooks, auth) identify tenants through their own URL or body and are
excluded here.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging

from storefront_api.database import SessionLocal
from storefront_api.models import Tenant

logger = logging.getLogger(__name__)

EXCLUDED_PREFIXES = (
    "/docs",
    "/redoc",
    "/openapi.json",
    "/health",
    "/stripe/webhooks",
    "/api/v1/auth/",
    "/api/v1/directory/",
    "/api/v1/storefront/",
    "/api/v1/taxonomy/",
    "/api/v1/recommendations/",
    "/api/v1/security/telemetry",
    "/api/v1/stores/",
    "/api/v1/reviews/",
)

EXCLUDED_EXACT = ("/",)

NON_TENANT_SUBDOMAINS = ("www", "api", "app")


def is_public_path(path: str) -> bool:
    return path in EXCLUDED_EXACT or path.startswith(EXCLUDED_PREFIXES)


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Runs on every tenant-scoped request: 400 without an identifier,
    404 for an unknown tenant, 403 for a deactivated one.
    """

    async def dispatch(self, request: Request, call_next):
        if is_public_path(request.url.path):
            return await call_next(request)

        tenant_identifier = self._extract_tenant_identifier(request)

        if not tenant_identifier:
            logger.warning(f"No tenant identifier in request: {request.url.path}")
            return JSONResponse(
                status_code=400,
                content={"detail": "Tenant identifier required (subdomain or X-Tenant-Slug header)"}
            )

        db = SessionLocal()
        try:
            tenant = self._load_tenant(db, tenant_identifier)
        finally:
            db.close()

        if not tenant:
            logger.warning(f"Tenant not found: {tenant_identifier}")
            return JSONResponse(
                status_code=404,
                content={"detail": f"Tenant not found: {tenant_identifier}"}
            )

        if not tenant.is_active:
            logger.warning(f"Inactive tenant attempted access: {tenant_identifier}")
            return JSONResponse(
                status_code=403,
                content={"detail": "Tenant account is inactive"}
            )

        # Detached instance: handlers read its columns and re-query it in
        # their own session before writing
        request.state.tenant = tenant
        request.state.tenant_id = tenant.id

        logger.debug(f"Request for tenant: {tenant.slug} ({tenant.id})")

        return await call_next(request)

    def _extract_tenant_identifier(self, request: Request) -> Optional[str]:
        tenant_slug = request.headers.get("X-Tenant-Slug")
        if tenant_slug:
            return tenant_slug

        host = request.headers.get("Host", "").split(":")[0]
        parts = host.split(".")
        if len(parts) >= 3 and parts[0] not in NON_TENANT_SUBDOMAINS:
            return parts[0]

        return request.headers.get("X-Tenant-ID")

    def _load_tenant(self, db: Session, identifier: str) -> Optional[Tenant]:
        """Slug, then subdomain, then id."""
        for column in (Tenant.slug, Tenant.subdomain, Tenant.id):
            tenant = db.query(Tenant).filter(column == identifier).first()
            if tenant:
                return tenant
        return None
