"""
FastAPI Dependencies for Authentication and Authorization.

Key patterns:
1. get_current_user: Extracts and validates JWT, returns Profile object
2. require_professor: Role gate for instructor-only routes
3. Ownership checks happen at the SQL level (WHERE owner = ...)

Security model:
- JWT stored in HttpOnly cookie (recommended) or Authorization header
- Tokens carry a scope: "user" for accounts, "teacher" for the legacy
  password-gated report viewer. A token of one scope never satisfies the other.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Any
from uuid import UUID

from fastapi import Cookie, Depends, Header, HTTPException, status
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from speacy.config import get_settings
from speacy.db.models import Profile
from speacy.db.session import get_db

settings = get_settings()

USER_SCOPE = "user"
TEACHER_SCOPE = "teacher"


# =============================================================================
# JWT UTILITIES
# =============================================================================


def _encode(payload: dict[str, Any], expire_minutes: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    return jwt.encode(
        {**payload, "exp": expire},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def _decode(token: str) -> dict[str, Any] | None:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None


def create_access_token(user_id: UUID) -> str:
    """
    Create a JWT access token for a profile.

    Token payload contains only the subject and scope; no email or role.
    Role changes therefore take effect on the next request.
    """
    return _encode({"sub": str(user_id), "scope": USER_SCOPE}, settings.jwt_expire_minutes)


def decode_access_token(token: str) -> UUID | None:
    """
    Decode and validate a JWT access token.

    Returns user_id if valid, None if invalid/expired/wrong scope.
    """
    payload = _decode(token)
    if payload is None or payload.get("scope") != USER_SCOPE:
        return None
    try:
        return UUID(payload.get("sub") or "")
    except ValueError:
        return None


def create_teacher_token() -> str:
    """Token for the legacy teacher dashboard. Not tied to any profile."""
    return _encode({"sub": "teacher", "scope": TEACHER_SCOPE}, settings.teacher_token_expire_minutes)


def is_teacher_token(token: str) -> bool:
    payload = _decode(token)
    return payload is not None and payload.get("scope") == TEACHER_SCOPE


def cookie_options() -> dict[str, Any]:
    """Cookie flags shared by the login, logout and teacher routes."""
    return {
        "httponly": True,
        "secure": settings.cookie_cross_domain or settings.environment != "development",
        "samesite": "none" if settings.cookie_cross_domain else "lax",
    }


# =============================================================================
# AUTHENTICATION DEPENDENCIES
# =============================================================================


def _token_from(authorization: str | None, access_token: str | None) -> str | None:
    # Cookie first, then 'Authorization: Bearer <token>'
    if access_token:
        return access_token
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return None


async def get_optional_token(
    authorization: Annotated[str | None, Header()] = None,
    access_token: Annotated[str | None, Cookie()] = None,
) -> str | None:
    return _token_from(authorization, access_token)


async def get_token_from_request(
    token: Annotated[str | None, Depends(get_optional_token)],
) -> str:
    """Extract JWT token from request, 401 when absent."""
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


async def _load_profile(db: AsyncSession, token: str) -> Profile | None:
    user_id = decode_access_token(token)
    if user_id is None:
        return None
    result = await db.execute(select(Profile).where(Profile.id == user_id))
    return result.scalar_one_or_none()


async def get_current_user(
    token: Annotated[str, Depends(get_token_from_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile:
    """
    Validate JWT and return the current authenticated profile.

    Raises 401 if:
    - Token is missing, invalid, or expired
    - Profile no longer exists in database
    """
    profile = await _load_profile(db, token)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return profile


async def get_optional_user(
    token: Annotated[str | None, Depends(get_optional_token)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile | None:
    """Like get_current_user, but anonymous callers get None instead of 401."""
    if token is None:
        return None
    return await _load_profile(db, token)


async def require_professor(
    user: Annotated[Profile, Depends(get_current_user)],
) -> Profile:
    """403 unless the signed-in profile has the professor role."""
    if not user.is_professor:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Professors only",
        )
    return user


async def require_teacher_session(
    authorization: Annotated[str | None, Header()] = None,
    teacher_token: Annotated[str | None, Cookie()] = None,
) -> None:
    """Gate for the legacy teacher dashboard (cookie set by /teacher/verify)."""
    token = _token_from(authorization, teacher_token)
    if token is None or not is_teacher_token(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Teacher dashboard is locked",
        )


# Type aliases for dependency injection
CurrentUser = Annotated[Profile, Depends(get_current_user)]
OptionalUser = Annotated[Profile | None, Depends(get_optional_user)]
ProfessorUser = Annotated[Profile, Depends(require_professor)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# QUERY HELPERS (enforce ownership at query level)
# =============================================================================


async def get_owned_resource_or_404(
    db: AsyncSession,
    model: type,
    resource_id: UUID,
    owner_id: UUID,
    *,
    owner_column: str = "user_id",
):
    """
    Fetch a resource by ID that belongs to owner_id.

    Usage:
        assignment = await get_owned_resource_or_404(
            db, Assignment, assignment_id, user.id, owner_column="created_by"
        )

    Returns 404 for both not-found and not-owned so existence is not revealed.
    """
    result = await db.execute(
        select(model).where(model.id == resource_id, getattr(model, owner_column) == owner_id)
    )
    resource = result.scalar_one_or_none()

    if resource is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")

    return resource
