"""Password hashing and the sign-up allowlist."""

from passlib.context import CryptContext

from speacy.config import get_settings

settings = get_settings()

# PBKDF2-SHA256; the salt and round count live inside the stored hash
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=310_000,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, stored_hash: str | None) -> bool:
    if not stored_hash:
        return False
    try:
        return pwd_context.verify(password, stored_hash)
    except ValueError:
        return False


def is_email_allowed(email: str) -> bool:
    """
    Check an email against ALLOWED_EMAILS / ALLOWED_EMAIL_DOMAINS.

    Both lists empty means everyone is allowed.
    """
    allowed_emails = {e.strip().lower() for e in settings.allowed_emails if e.strip()}
    allowed_domains = {d.strip().lower().lstrip("@") for d in settings.allowed_email_domains if d.strip()}
    if not allowed_emails and not allowed_domains:
        return True

    normalized = (email or "").strip().lower()
    if normalized in allowed_emails:
        return True
    domain = normalized.rsplit("@", 1)[-1] if "@" in normalized else ""
    return bool(domain) and domain in allowed_domains
