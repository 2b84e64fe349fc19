"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; point them at throwaway backends first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AI_PROVIDER", "stub")
os.environ.setdefault("APP_ENV", "test")

from datetime import date
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import config
import models  # noqa: F401
from api.deps import get_ai_gateway, get_change_bus, get_db
from auth.jwt import create_access_token
from db import Base
from main import app
from models.plan import dump_plan
from models.project import Project
from models.user import User
from models.week import Week
from services import plan_tree
from services.ai_gateway import AIGateway, StubProvider
from services.realtime import ChangeBus


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """A fresh SQLite database file per test, with foreign keys enforced."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    """Create a test database session."""
    TestSessionLocal = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def storage_dir(tmp_path, monkeypatch):
    """Attachments land in a per-test directory."""
    path = tmp_path / "storage"
    monkeypatch.setattr(config.settings, "STORAGE_DIR", str(path))
    return path


@pytest.fixture
def bus():
    change_bus = ChangeBus(queue_size=32)
    yield change_bus
    change_bus.close()


@pytest.fixture
def ai_provider():
    """Scripted AI provider; tests queue replies with ai_provider.script(...)."""
    return StubProvider()


@pytest.fixture
def ai_gateway(ai_provider):
    return AIGateway(ai_provider, model="test-model", response_language="English")


@pytest.fixture
def override_deps(db_session, bus, ai_gateway):
    """Override app dependencies for testing."""

    async def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_change_bus] = lambda: bus
    app.dependency_overrides[get_ai_gateway] = lambda: ai_gateway
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(override_deps):
    """Async test client bound to the app (no network, same event loop)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _make_user(db_session: AsyncSession, email: str, name: str) -> User:
    user = User(id=uuid4(), email=email, name=name, is_active=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def auditor(db_session):
    """Project owner."""
    return await _make_user(db_session, "auditor@example.com", "Alice Auditor")


@pytest_asyncio.fixture
async def counterpart(db_session):
    """Business owner viewing the auditor's project."""
    return await _make_user(db_session, "owner@example.com", "Bob Owner")


def _headers(user: User) -> dict:
    token = create_access_token(user_id=user.id, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auditor_headers(auditor):
    return _headers(auditor)


@pytest.fixture
def counterpart_headers(counterpart):
    return _headers(counterpart)


@pytest_asyncio.fixture
async def project(db_session, auditor):
    """A project owned by the auditor."""
    project = Project(
        id=uuid4(),
        user_id=auditor.id,
        name="Acme Audit",
        description="Annual audit of Acme",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 28),
        approval_period="weekly",
    )
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)
    return project


@pytest_asyncio.fixture
async def week(db_session, project, auditor):
    """A draft week 2024-01-01..2024-01-07 with empty days."""
    week = Week(
        id=uuid4(),
        project_id=project.id,
        user_id=auditor.id,
        title="Stage 1",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 7),
        status="draft",
        plan=dump_plan(plan_tree.seed_plan(date(2024, 1, 1), date(2024, 1, 7))),
        row_version=1,
    )
    db_session.add(week)
    await db_session.commit()
    await db_session.refresh(week)
    return week
