"""
Store Staff Endpoints

RBAC:
- List / get: any staff member
- Create / delete: admin
- Update: admin, or the user themselves (role changes admin only)
- The last active admin cannot be deleted, demoted or deactivated
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from storefront_api.database import get_db
from storefront_api.models import User, UserRole, Tenant
from storefront_api.schemas.user import (
    UserResponse,
    UserCreate,
    UserUpdate,
    UserListResponse
)
from storefront_api.api.deps import (
    get_current_user,
    get_current_tenant,
    require_admin
)
from storefront_api.core.security import get_password_hash
from storefront_api.core.permissions import PermissionDenied, can_modify_user, is_last_admin
from storefront_api.core.exceptions import ConflictError, UserNotFoundError
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _get_tenant_user(db: Session, tenant: Tenant, user_id: str) -> User:
    user = db.query(User).filter(
        User.id == user_id,
        User.tenant_id == tenant.id
    ).first()
    if not user:
        raise UserNotFoundError(user_id)
    return user


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    role: UserRole = Query(None),
    is_active: bool = Query(None),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(User).filter(User.tenant_id == tenant.id)

    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)

    total = query.count()
    users = query.order_by(User.created_at.asc()).offset((page - 1) * page_size).limit(page_size).all()

    return UserListResponse(users=users, total=total, page=page, page_size=page_size)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return _get_tenant_user(db, tenant, user_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    existing_user = db.query(User).filter(
        User.tenant_id == tenant.id,
        User.email == user_data.email
    ).first()

    if existing_user:
        raise ConflictError("User with this email already exists")

    new_user = User(
        tenant_id=tenant.id,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        role=user_data.role,
        is_active=True
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"User created: {new_user.id} by {current_user.id}")

    return new_user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    user = _get_tenant_user(db, tenant, user_id)

    if not can_modify_user(current_user, user):
        raise PermissionDenied("Not authorized to modify this user")

    update_data = user_data.model_dump(exclude_unset=True)

    if "role" in update_data and update_data["role"] != user.role:
        if current_user.role != UserRole.ADMIN:
            raise PermissionDenied("Only admins can change user roles")

    demoting = update_data.get("role", UserRole.ADMIN) != UserRole.ADMIN
    deactivating = update_data.get("is_active") is False
    if (demoting or deactivating) and is_last_admin(db, user):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot demote or deactivate the last admin"
        )

    if "email" in update_data and update_data["email"] != user.email:
        clash = db.query(User).filter(
            User.tenant_id == tenant.id,
            User.email == update_data["email"]
        ).first()
        if clash:
            raise ConflictError("User with this email already exists")

    for field, value in update_data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)

    logger.info(f"User updated: {user.id} by {current_user.id}")

    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    user = _get_tenant_user(db, tenant, user_id)

    if user.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    if is_last_admin(db, user):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete the last admin"
        )

    db.delete(user)
    db.commit()

    logger.info(f"User deleted: {user_id} by {current_user.id}")

    return None
