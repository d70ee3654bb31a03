"""
Authentication Schemas
"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Token(BaseModel):
    """JWT token response."""
    access_token: str
    token_type: str = "bearer"
    tenant_id: str
    expires_in: int


class LoginRequest(BaseModel):
    """Login is scoped to one store by its slug."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    tenant_slug: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    """Staff self-registration into an existing store."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    full_name: str = Field(..., min_length=1, max_length=255)
    tenant_slug: str = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "owner@example.com",
                "password": "securepassword123",
                "full_name": "Jane Doe",
                "tenant_slug": "corner-bakery"
            }
        }
    )
