"""Shared test fixtures.

Every test gets a throwaway SQLite file (aiosqlite) with freshly created
tables, a session factory bound to it and factories for users and
tournaments. API tests run the real application through ASGITransport
with the database dependencies pointed at the test engine.
"""

import os

# Settings are read once and cached; these must be set before arena is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./arena_test.db"
os.environ["IDENTITY_JWT_SECRET"] = "arena-test-identity-secret-xk9vq2mz7wr4tb8n"
os.environ["APP_ENV"] = "test"
os.environ["APP_DEBUG"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from arena.config import Settings, get_settings
from arena.models import Base, GameType, Tournament, TournamentStatus, User, UserRole
from arena.services.tournament_status import TournamentStatusEngine
from arena.utils.clock import utcnow
from arena.utils.db import build_session_factory, get_db
from arena.utils.security import Identity, create_identity_token


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    return get_settings()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine with fresh tables for each test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'arena_test.db'}",
        poolclass=NullPool,
        echo=False,
        future=True,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory configured like the application's."""
    return build_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A session for driving services directly.

    Nothing is committed implicitly; tests commit where the production
    request scope would.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def status_engine(session_factory, settings) -> TournamentStatusEngine:
    return TournamentStatusEngine(session_factory, settings)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_user(session_factory):
    """Insert a committed user and return it (detached, fully loaded)."""

    async def _make_user(
        uid: str | None = None,
        *,
        email: str | None = None,
        balance: int = 0,
        role: UserRole = UserRole.USER,
        email_verified: bool = True,
    ) -> User:
        uid = uid or f"uid-{uuid4().hex[:12]}"
        user = User(
            id=uid,
            email=email or f"{uid}@example.com",
            email_verified=email_verified,
            role=role.value,
            wallet_balance=balance,
            joined_tournament_ids=[],
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


@pytest.fixture
def make_tournament(session_factory):
    """Insert a committed tournament and return its id."""

    async def _make_tournament(
        *,
        name: str = "Sunday Squads",
        status: TournamentStatus = TournamentStatus.UPCOMING,
        scheduled_at: datetime | None = None,
        status_updated_at: datetime | None = None,
        entry_fee: int = 100,
        max_participants: int = 10,
        **fields: Any,
    ) -> str:
        tournament = Tournament(
            name=name,
            game_type=GameType.PUBG.value,
            scheduled_at=scheduled_at or utcnow() + timedelta(hours=1),
            status_updated_at=status_updated_at,
            entry_fee=entry_fee,
            prize_pool=fields.pop("prize_pool", 1000),
            per_kill_amount=fields.pop("per_kill_amount", 0),
            max_participants=max_participants,
            participant_count=0,
            status=status.value,
            approved=status not in (TournamentStatus.PENDING, TournamentStatus.REJECTED),
            **fields,
        )
        async with session_factory() as session:
            session.add(tournament)
            await session.commit()
            return tournament.id

    return _make_tournament


@pytest.fixture
def fetch(session_factory):
    """Load a row in a fresh session, bypassing any test session state."""

    async def _fetch(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)

    return _fetch


@pytest.fixture
def count_rows(session_factory):
    async def _count_rows(model, *criteria) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(model).where(*criteria)
            )
            return int(result.scalar_one())

    return _count_rows


# =============================================================================
# FastAPI App & Client Fixtures
# =============================================================================


def _auth_headers(
    uid: str,
    email: str | None = None,
    *,
    email_verified: bool = True,
) -> dict[str, str]:
    """Bearer header carrying an identity token for ``uid``."""
    token = create_identity_token(
        Identity(uid=uid, email=email or f"{uid}@example.com", email_verified=email_verified)
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return _auth_headers


@pytest_asyncio.fixture(scope="function")
async def test_app(session_factory, status_engine):
    """The application with its database dependencies on the test engine."""
    from arena.api.deps import get_status_engine
    from arena.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_status_engine] = lambda: status_engine

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
