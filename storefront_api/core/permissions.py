"""
Permission System (RBAC)

Role checks for store staff plus the platform-admin flag.

Rules of thumb:
- Viewers read.
- Members run the store: catalog, categories, orders, feeds.
- Admins also manage staff, billing-sensitive actions (refunds) and
  directory publication.
"""
from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from storefront_api.models import User, UserRole


class PermissionDenied(HTTPException):
    """Custom exception for permission denied errors."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


def can_modify_user(current_user: User, target_user: User) -> bool:
    """Admins can modify anyone in their tenant; others only themselves."""
    if current_user.role == UserRole.ADMIN:
        return True
    return current_user.id == target_user.id


def is_last_admin(db: Session, user: User) -> bool:
    """True when ``user`` is the only active admin of their tenant."""
    if user.role != UserRole.ADMIN:
        return False
    admins = db.query(User).filter(
        User.tenant_id == user.tenant_id,
        User.role == UserRole.ADMIN,
        User.is_active == True  # noqa: E712
    ).count()
    return admins <= 1
