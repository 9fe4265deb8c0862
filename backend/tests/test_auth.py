"""Tests for sign-up, sign-in and the role gate."""

from httpx import AsyncClient
from sqlalchemy import select

from speacy.config import get_settings
from speacy.db.models import Profile
from speacy.services.accounts import hash_password, is_email_allowed, verify_password

settings = get_settings()


async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_register_creates_student_and_sets_cookie(client: AsyncClient, db):
    response = await client.post(
        "/api/auth/register",
        json={"email": "New@School.edu", "password": "correct horse", "first_name": "New"},
    )
    assert response.status_code == 201
    assert response.json()["access_token"]
    assert "access_token=" in response.headers["set-cookie"]

    profile = (await db.execute(select(Profile).where(Profile.email == "new@school.edu"))).scalar_one()
    assert profile.role == "student"
    assert profile.password_hash.startswith("$pbkdf2-sha256$310000$")
    assert "correct horse" not in profile.password_hash


async def test_register_duplicate_email_conflicts(client: AsyncClient, student):
    response = await client.post(
        "/api/auth/register",
        json={"email": student.email, "password": "another password"},
    )
    assert response.status_code == 409


async def test_register_rejects_disallowed_email(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "allowed_email_domains", ["school.edu"])
    response = await client.post(
        "/api/auth/register",
        json={"email": "someone@elsewhere.com", "password": "long enough"},
    )
    assert response.status_code == 403


async def test_login_round_trip(client: AsyncClient):
    await client.post(
        "/api/auth/register",
        json={"email": "login@school.edu", "password": "s3cret-pass"},
    )

    bad = await client.post("/api/auth/login", json={"email": "login@school.edu", "password": "nope"})
    assert bad.status_code == 401

    good = await client.post(
        "/api/auth/login", json={"email": "login@school.edu", "password": "s3cret-pass"}
    )
    assert good.status_code == 200
    token = good.json()["access_token"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "login@school.edu"


async def test_me_requires_auth(client: AsyncClient):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401


async def test_me_reports_dashboard_by_role(client: AsyncClient, student_headers, professor_headers):
    student_me = (await client.get("/api/auth/me", headers=student_headers)).json()
    professor_me = (await client.get("/api/auth/me", headers=professor_headers)).json()

    assert student_me["role"] == "student"
    assert student_me["dashboard_path"] == "/dashboard"
    assert professor_me["role"] == "professor"
    assert professor_me["dashboard_path"] == "/dashboard/professor"


async def test_invalid_token_is_rejected(client: AsyncClient):
    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_logout_clears_cookie(client: AsyncClient):
    response = await client.post("/api/auth/logout")
    assert response.status_code == 204
    assert "access_token" in response.headers.get("set-cookie", "")


def test_password_hashing():
    password_hash = hash_password("hunter22")
    assert password_hash != hash_password("hunter22")
    assert verify_password("hunter22", password_hash)
    assert not verify_password("hunter23", password_hash)
    assert not verify_password("hunter22", "not-a-passlib-hash")
    assert not verify_password("hunter22", None)


def test_email_allowlist(monkeypatch):
    monkeypatch.setattr(settings, "allowed_emails", [])
    monkeypatch.setattr(settings, "allowed_email_domains", [])
    assert is_email_allowed("anyone@anywhere.org")

    monkeypatch.setattr(settings, "allowed_emails", ["guest@gmail.com"])
    monkeypatch.setattr(settings, "allowed_email_domains", ["@school.edu"])
    assert is_email_allowed("Guest@Gmail.com")
    assert is_email_allowed("kid@school.edu")
    assert not is_email_allowed("kid@evil-school.edu")
    assert not is_email_allowed("not-an-email")
