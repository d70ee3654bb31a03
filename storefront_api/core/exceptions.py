"""
Custom Exceptions

HTTPException subclasses raised by handlers and services.
FastAPI converts them into JSON error responses; handlers that need a
machine-readable error code pass a dict as ``detail``.
"""
from typing import Any, Optional
from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Base class for 404s on a named entity."""

    entity = "Resource"

    def __init__(self, identifier: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{self.entity} not found: {identifier}" if identifier else f"{self.entity} not found"
        )


class TenantNotFoundError(NotFoundError):
    entity = "Tenant"


class UserNotFoundError(NotFoundError):
    entity = "User"


class ItemNotFoundError(NotFoundError):
    entity = "Item"


class CategoryNotFoundError(NotFoundError):
    entity = "Category"


class OrderNotFoundError(NotFoundError):
    entity = "Order"


class PaymentNotFoundError(NotFoundError):
    entity = "Payment"


class FeedJobNotFoundError(NotFoundError):
    entity = "Feed job"


class AlertNotFoundError(NotFoundError):
    entity = "Alert"


class ReviewNotFoundError(NotFoundError):
    entity = "Review"


class ListingNotFoundError(HTTPException):
    """Directory listing lookups by slug return a stable error code."""

    def __init__(self, slug: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "listing_not_found", "slug": slug}
        )


class AuthenticationError(HTTPException):
    """Raised when authentication fails."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class TenantIsolationError(HTTPException):
    """
    Raised when a tenant isolation violation is detected.

    This is a CRITICAL security error and is logged as a security event.
    """

    def __init__(self, detail: str = "Tenant isolation violation"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class InvalidInputError(HTTPException):
    """Raised when input validation fails outside of schema validation."""

    def __init__(self, detail: Any = "Invalid input"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class ConflictError(HTTPException):
    """Raised on unique-key clashes (duplicate sku, slug, email)."""

    def __init__(self, detail: Any = "Resource already exists"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail
        )


class UnprocessableError(HTTPException):
    """Request is well-formed but the tenant's data is not ready for it."""

    def __init__(self, detail: Any):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail
        )


class TierAccessDenied(HTTPException):
    """Raised when the tenant's subscription tier does not allow an action."""

    def __init__(self, error: str, message: str, **extra: Any):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": error, "message": message, **extra}
        )


class ServiceNotConfigured(HTTPException):
    """A third-party integration is missing credentials."""

    def __init__(self, service: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{service} is not configured"
        )


class PaymentGatewayError(HTTPException):
    """The payment provider declined or failed the request."""

    def __init__(self, gateway: str, message: str, code: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={"error": "payment_failed", "gateway": gateway, "message": message, "code": code}
        )
