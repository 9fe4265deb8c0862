"""Pytest configuration and fixtures."""

import os

# Settings are read once at import; set the required values first
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("TEACHER_DASHBOARD_PASSWORD", "open-sesame")
os.environ.setdefault("ENVIRONMENT", "development")

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from speacy.api.deps import create_access_token
from speacy.db.base import Base
from speacy.db.models import Profile, UserRole
from speacy.db.session import get_db
from speacy.main import app


@pytest.fixture
async def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and checking rows outside of requests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_profile(
    session_factory,
    email: str,
    role: UserRole = UserRole.STUDENT,
    first_name: str = "",
    last_name: str = "",
) -> Profile:
    async with session_factory() as session:
        profile = Profile(email=email, role=role.value, first_name=first_name, last_name=last_name)
        session.add(profile)
        await session.commit()
        return profile


def auth_headers(profile: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(profile.id)}"}


@pytest.fixture
async def student(session_factory) -> Profile:
    return await make_profile(session_factory, "ada@school.edu", first_name="Ada", last_name="Lovelace")


@pytest.fixture
async def professor(session_factory) -> Profile:
    return await make_profile(session_factory, "prof@school.edu", UserRole.PROFESSOR, "Grace", "Hopper")


@pytest.fixture
def student_headers(student) -> dict[str, str]:
    return auth_headers(student)


@pytest.fixture
def professor_headers(professor) -> dict[str, str]:
    return auth_headers(professor)
