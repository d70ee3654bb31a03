"""
API Dependencies

Reusable FastAPI dependencies for authentication, role checks and
subscription-tier gating.
"""
from typing import Callable
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from storefront_api.database import get_db
from storefront_api.models import User, UserRole, Tenant
from storefront_api.core.security import decode_access_token
from storefront_api.core.exceptions import AuthenticationError, TenantIsolationError, TierAccessDenied
from storefront_api.core.tiers import (
    INACTIVE_STATUSES,
    TIERS,
    get_tier,
    is_tenant_frozen,
    required_tier_for,
    tier_has_feature,
)
from storefront_api.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)

security = HTTPBearer()


def get_current_tenant(request: Request) -> Tenant:
    """
    Tenant resolved by TenantMiddleware.

    Missing tenant context on a tenant route means the middleware was
    bypassed; treat it as an isolation failure.
    """
    tenant = getattr(request.state, "tenant", None)
    if not tenant:
        logger.error("No tenant in request state - middleware may have failed")
        raise TenantIsolationError("Tenant context not available")
    return tenant


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant)
) -> User:
    """
    Authenticated staff user of the current tenant.

    Validates the JWT, checks the token's tenant against the request
    tenant, then loads the user and checks it is active.
    """
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    token_tenant_id = payload.get("tenant_id")

    if not user_id:
        raise AuthenticationError("Invalid token payload")

    if token_tenant_id != tenant.id:
        log_security_event(
            "tenant_isolation_violation",
            {"user_id": user_id, "token_tenant": token_tenant_id, "tenant_id": tenant.id},
            logger
        )
        raise TenantIsolationError("Token tenant mismatch")

    user = db.query(User).filter(
        User.id == user_id,
        User.tenant_id == tenant.id
    ).first()

    if not user:
        logger.warning(f"User not found: {user_id} in tenant {tenant.id}")
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is inactive")

    return user


async def require_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user


async def require_member(
    current_user: User = Depends(get_current_user)
) -> User:
    """Members and admins; viewers are read-only."""
    if not current_user.has_permission(UserRole.MEMBER):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Member privileges required"
        )
    return current_user


async def require_platform_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    if not current_user.is_platform_admin:
        log_security_event(
            "privilege_escalation",
            {"user_id": current_user.id, "tenant_id": current_user.tenant_id},
            logger
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Platform admin privileges required"
        )
    return current_user


def require_writable_tenant(tenant: Tenant = Depends(get_current_tenant)) -> Tenant:
    """Reject writes from tenants whose subscription leaves them read-only."""
    if is_tenant_frozen(tenant):
        raise TierAccessDenied(
            "subscription_read_only",
            "Your subscription is read-only. Reactivate it to make changes.",
            subscription_status=tenant.subscription_status,
            tier=tenant.subscription_tier,
        )
    return tenant


def require_tier_feature(feature: str) -> Callable[..., Tenant]:
    """
    Dependency factory gating an endpoint on a tier feature.

    Usage: ``tenant: Tenant = Depends(require_tier_feature("featured_products"))``
    """
    def checker(tenant: Tenant = Depends(get_current_tenant)) -> Tenant:
        if tenant.subscription_status in INACTIVE_STATUSES:
            raise TierAccessDenied(
                "subscription_inactive",
                "Your subscription is not active",
                subscription_status=tenant.subscription_status,
            )

        if not tier_has_feature(tenant.subscription_tier, feature):
            required = required_tier_for(feature)
            raise TierAccessDenied(
                "tier_upgrade_required",
                f"This feature requires the {TIERS[required].display_name if required else 'a higher'} tier",
                feature=feature,
                current_tier=tenant.subscription_tier,
                current_tier_name=get_tier(tenant.subscription_tier).display_name,
                required_tier=required,
            )
        return tenant

    return checker


async def get_reviewer(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Signed-in user on a public surface.

    No tenant context applies here, so the token is only checked for a
    live, active user.
    """
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token")

    user = db.query(User).filter(User.id == payload["sub"]).first()
    if not user or not user.is_active:
        raise AuthenticationError("User not found")
    return user
