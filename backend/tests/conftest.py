"""Shared test configuration and fixtures.

Each test gets a fresh SQLite database file (aiosqlite) with all tables
created, so requests and assertions can use separate sessions and see each
other's commits. Data created by fixtures is committed before the test runs.
"""

import os

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ["POLAR_ACCESS_TOKEN"] = ""
os.environ["POLAR_WEBHOOK_SECRET"] = ""

import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.auth.jwt import create_token_pair
from app.auth.passwords import hash_password
from app.challenges.store import BUNDLED_CHALLENGES_DIR, ChallengeStore, get_challenge_store
from app.database import Base, get_db, get_session_factory
from app.judge.judge0 import get_judge
from app.main import app
from app.models.user import User
from app.schemas.challenge import CaseResult, Challenge


class FakeJudge:
    """Stands in for Judge0: passes every case unless told otherwise."""

    language_id = 50

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_case_ids: set[str] = set()

    async def run_tests(self, code: str, challenge: Challenge) -> list[CaseResult]:
        self.calls.append((code, challenge.id))
        results = []
        for tc in challenge.test_cases:
            if tc.id in self.fail_case_ids:
                results.append(
                    CaseResult(test_case_id=tc.id, output="nope", error=f"Expected '{tc.expected_output}' but got 'nope'")
                )
            else:
                results.append(CaseResult(test_case_id=tc.id, passed=True, output=tc.expected_output))
        return results


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Engine bound to a per-test SQLite file with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging data; commit before handing control to the app."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# App client
# ---------------------------------------------------------------------------


@pytest.fixture
def challenge_store() -> ChallengeStore:
    return ChallengeStore.load(BUNDLED_CHALLENGES_DIR)


@pytest.fixture
def fake_judge() -> FakeJudge:
    return FakeJudge()


@pytest_asyncio.fixture
async def client(session_factory, challenge_store, fake_judge) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test DB, challenges and judge."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_challenge_store] = lambda: challenge_store
    app.dependency_overrides[get_judge] = lambda: fake_judge

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience fixtures: users
# ---------------------------------------------------------------------------


async def make_user(db: AsyncSession, **overrides) -> User:
    """Create and commit a local user; ``overrides`` replace column values."""
    unique = uuid.uuid4().hex[:8]
    values = {
        "email": f"learner-{unique}@test.com",
        "hashed_password": hash_password("testpass123"),
        "name": "Test Learner",
        "auth_provider": "local",
        "is_active": True,
    }
    values.update(overrides)
    user = User(**values)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await make_user(db_session)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    """Return Authorization headers for the test user."""
    tokens = create_token_pair(test_user.id)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """``await user_factory(email=..., customer_id=...)`` creates a committed user."""

    async def _create(**overrides) -> User:
        return await make_user(db_session, **overrides)

    return _create
