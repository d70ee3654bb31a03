"""
Authentication Endpoints

Login and self-registration for store staff. Both name the store by
slug in the body, so these routes run without tenant middleware.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import datetime, timedelta

from storefront_api.database import get_db
from storefront_api.models import User, UserRole, Tenant
from storefront_api.schemas.auth import LoginRequest, Token, RegisterRequest
from storefront_api.schemas.user import UserResponse
from storefront_api.core.security import (
    verify_password,
    get_password_hash,
    create_access_token
)
from storefront_api.core.exceptions import AuthenticationError
from storefront_api.config import get_settings
from storefront_api.utils.logging import log_security_event, get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/login", response_model=Token)
async def login(
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate a staff user and return a JWT scoped to their store.

    Every failure returns the same generic message so the endpoint
    cannot be used to enumerate stores or accounts.
    """
    tenant = db.query(Tenant).filter(
        Tenant.slug == credentials.tenant_slug
    ).first()

    if not tenant:
        log_security_event(
            "failed_login",
            {"reason": "tenant_not_found", "tenant_slug": credentials.tenant_slug},
            logger
        )
        raise AuthenticationError("Invalid credentials")

    if not tenant.is_active:
        log_security_event(
            "failed_login",
            {"reason": "tenant_inactive", "tenant_id": tenant.id},
            logger
        )
        raise AuthenticationError("Tenant account is inactive")

    user = db.query(User).filter(
        User.tenant_id == tenant.id,
        User.email == credentials.email
    ).first()

    if not user or not verify_password(credentials.password, user.hashed_password):
        log_security_event(
            "failed_login",
            {
                "reason": "invalid_password" if user else "user_not_found",
                "email": credentials.email,
                "tenant_id": tenant.id,
            },
            logger
        )
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        log_security_event(
            "failed_login",
            {"reason": "user_inactive", "user_id": user.id},
            logger
        )
        raise AuthenticationError("User account is inactive")

    access_token = create_access_token(
        {"sub": user.id, "tenant_id": tenant.id, "email": user.email},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    user.last_login_at = datetime.utcnow()
    db.commit()

    logger.info(f"Successful login: user={user.id}, tenant={tenant.id}")

    return Token(
        access_token=access_token,
        tenant_id=tenant.id,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    registration: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a staff user in an existing store as a viewer.

    An admin promotes the account afterwards.
    """
    tenant = db.query(Tenant).filter(
        Tenant.slug == registration.tenant_slug
    ).first()

    if not tenant:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant not found"
        )

    if not tenant.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant is not accepting new registrations"
        )

    existing_user = db.query(User).filter(
        User.tenant_id == tenant.id,
        User.email == registration.email
    ).first()

    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists in this tenant"
        )

    new_user = User(
        tenant_id=tenant.id,
        email=registration.email,
        hashed_password=get_password_hash(registration.password),
        full_name=registration.full_name,
        role=UserRole.VIEWER,
        is_active=True,
        is_verified=False
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"New user registered: {new_user.id} in tenant {tenant.id}")

    return new_user
