"""Authentication schemas."""

from pydantic import EmailStr, Field

from speacy.schemas.base import BaseSchema


class GoogleAuthRequest(BaseSchema):
    """Request schema for Google sign-in."""

    id_token: str = Field(..., description="Google OAuth id_token from frontend")


class RegisterRequest(BaseSchema):
    """Email/password account creation."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=256)
    first_name: str = Field("", max_length=120)
    last_name: str = Field("", max_length=120)


class LoginRequest(BaseSchema):
    """Email/password sign-in."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)


class TokenResponse(BaseSchema):
    """Response schema for successful authentication."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token expiry in seconds")
