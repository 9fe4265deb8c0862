"""
Authentication Routes

Endpoints:
- POST /auth/google - Exchange Google id_token for session
- POST /auth/register - Create an email/password account
- POST /auth/login - Email/password sign-in
- POST /auth/logout - Clear session
- GET /auth/me - Current profile, including where its dashboard lives

Auth Flow (Google):
1. Frontend performs the Google sign-in and receives an id_token
2. Frontend POSTs id_token to /auth/google
3. Backend verifies id_token with Google's public keys
4. Backend upserts profile + auth_identity (new profiles are students)
5. Backend returns JWT (in cookie and response body)

Every sign-up path goes through the email allowlist.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, HTTPException, Response, status
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from speacy.config import get_settings
from speacy.db.models import AuthIdentity, Profile, UserRole
from speacy.schemas.auth import GoogleAuthRequest, LoginRequest, RegisterRequest, TokenResponse
from speacy.schemas.user import ProfileRead
from speacy.services.accounts import hash_password, is_email_allowed, verify_password
from speacy.api.deps import CurrentUser, DbSession, cookie_options, create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()
logger = logging.getLogger(__name__)


def _issue_session(response: Response, profile: Profile) -> TokenResponse:
    access_token = create_access_token(profile.id)
    expires_in = settings.jwt_expire_minutes * 60

    # For cross-domain deployments cookie_options() switches to samesite="none" + secure
    response.set_cookie(
        key="access_token",
        value=access_token,
        max_age=expires_in,
        **cookie_options(),
    )
    return TokenResponse(access_token=access_token, expires_in=expires_in)


def _reject_if_not_allowed(email: str | None) -> None:
    if not email or not is_email_allowed(email):
        logger.info("Sign-in refused for %s: not on the allowlist", email or "<no email>")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This email is not allowed to sign in",
        )


@router.post("/google", response_model=TokenResponse)
async def google_login(
    request: GoogleAuthRequest,
    response: Response,
    db: DbSession,
) -> TokenResponse:
    """
    Exchange Google id_token for a session JWT.

    Flow:
    1. Verify id_token with Google's public keys
    2. Extract claims (sub, email, given/family name)
    3. Find or create auth_identity by (provider='google', provider_user_id=sub)
    4. Find or create the profile, link to auth_identity
    5. Return JWT
    """
    if not settings.google_client_id:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google sign-in is not configured",
        )

    try:
        # Checks signature, expiry, and audience
        idinfo = google_id_token.verify_oauth2_token(
            request.id_token,
            google_requests.Request(),
            settings.google_client_id,
        )

        provider_user_id = idinfo["sub"]
        email = idinfo.get("email")

        if idinfo.get("iss") not in ["accounts.google.com", "https://accounts.google.com"]:
            raise ValueError("Invalid issuer")

        # Unverified emails could allow account hijacking
        if email and not idinfo.get("email_verified", False):
            email = None

    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid Google id_token: {e}",
        )

    _reject_if_not_allowed(email)
    email = email.lower()

    # Eagerly load the profile to avoid async lazy-load
    result = await db.execute(
        select(AuthIdentity)
        .options(selectinload(AuthIdentity.profile))
        .where(
            AuthIdentity.provider == "google",
            AuthIdentity.provider_user_id == provider_user_id,
        )
    )
    auth_identity = result.scalar_one_or_none()

    if auth_identity:
        auth_identity.last_login_at = datetime.now(timezone.utc)
        auth_identity.email = email
        profile = auth_identity.profile
    else:
        # Link to an existing email/password profile when the email matches
        result = await db.execute(select(Profile).where(Profile.email == email))
        profile = result.scalar_one_or_none()

        if profile is None:
            profile = Profile(
                email=email,
                first_name=idinfo.get("given_name", ""),
                last_name=idinfo.get("family_name", ""),
                role=UserRole.STUDENT.value,
            )
            db.add(profile)
            await db.flush()

        db.add(
            AuthIdentity(
                user_id=profile.id,
                provider="google",
                provider_user_id=provider_user_id,
                email=email,
            )
        )

    await db.commit()
    return _issue_session(response, profile)


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    response: Response,
    db: DbSession,
) -> TokenResponse:
    """Create a student profile with an email and password."""
    email = request.email.lower()
    _reject_if_not_allowed(email)

    result = await db.execute(select(Profile.id).where(Profile.email == email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )

    password_hash = hash_password(request.password)
    profile = Profile(
        email=email,
        first_name=request.first_name,
        last_name=request.last_name,
        role=UserRole.STUDENT.value,
        password_hash=password_hash,
    )
    db.add(profile)
    await db.commit()

    logger.info("Registered profile %s", profile.id)
    return _issue_session(response, profile)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    response: Response,
    db: DbSession,
) -> TokenResponse:
    """Email/password sign-in. Unknown email and wrong password look the same."""
    result = await db.execute(select(Profile).where(Profile.email == request.email.lower()))
    profile = result.scalar_one_or_none()

    if profile is None or not verify_password(request.password, profile.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    return _issue_session(response, profile)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response) -> None:
    """
    Clear the authentication session.

    Only clears the cookie; a JWT stored elsewhere stays valid until expiry.
    """
    response.delete_cookie(key="access_token", **cookie_options())


@router.get("/me", response_model=ProfileRead)
async def get_me(current_user: CurrentUser) -> ProfileRead:
    """
    Get the signed-in profile.

    dashboard_path tells the frontend which dashboard the role lands on.
    """
    return ProfileRead.model_validate(current_user)
