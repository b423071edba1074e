"""Shared test fixtures for pytest"""
import os

# Settings are read at import time; configure them before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-workflow-tests")
os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("WORKFLOW_DELAY_MODE", "skip")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (AsyncSession, async_sessionmaker,  # noqa: E402
                                    create_async_engine)
from sqlalchemy.pool import StaticPool  # noqa: E402

import src.infrastructure.persistence.models  # noqa: E402,F401
from main import app  # noqa: E402
from src.domain.exceptions import ActionExecutionError  # noqa: E402
from src.infrastructure.persistence.database import (Base, get_db,  # noqa: E402
                                                     get_db_transactional)
from src.infrastructure.persistence.models.agency import Agency  # noqa: E402
from src.infrastructure.security.jwt import create_access_token  # noqa: E402
from src.presentation.api.dependencies import get_action_effects  # noqa: E402
from src.shared.enums import UserRole  # noqa: E402
from tests.fakes import RecordingEffects  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def test_engine():
    """Create test database engine (one in-memory database per test)"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def effects():
    return RecordingEffects()


@pytest.fixture
async def client(test_db, effects):
    """HTTP client for API testing"""

    async def override_get_db():
        yield test_db

    async def override_get_db_transactional():
        try:
            yield test_db
            await test_db.commit()
        except Exception:
            await test_db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_db_transactional] = override_get_db_transactional
    app.dependency_overrides[get_action_effects] = lambda: effects

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def test_agency(test_db):
    """Create test agency"""
    agency = Agency(id="agency-1", name="Northwind Agency", status="active")
    test_db.add(agency)
    await test_db.commit()
    await test_db.refresh(agency)
    return agency


@pytest.fixture
async def other_agency(test_db):
    """Second tenant used for isolation checks"""
    agency = Agency(id="agency-2", name="Contoso Agency", status="active")
    test_db.add(agency)
    await test_db.commit()
    await test_db.refresh(agency)
    return agency


@pytest.fixture
def make_headers():
    """Build auth headers for a user of ``agency_id`` with ``role``"""

    def _make(agency_id: str, role: UserRole = UserRole.OWNER, user_id: str = "user-1"):
        token = create_access_token(user_id, agency_id, role)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def auth_headers(test_agency, make_headers):
    """Generate auth headers with JWT token"""
    return make_headers(test_agency.id)


@pytest.fixture
def workflow_payload():
    """A valid stage-change workflow definition"""
    return {
        "name": "Welcome call on go-live",
        "description": "Schedule a welcome call when a client goes live",
        "triggers": [
            {"id": "t1", "type": "stage_change", "config": {"toStage": "Live"}},
        ],
        "actions": [
            {
                "id": "a1",
                "type": "create_task",
                "name": "Create welcome task",
                "config": {"title": "Welcome call with {{client.name}}"},
                "delay_minutes": 0,
            },
            {
                "id": "a2",
                "type": "send_notification",
                "name": "Notify team",
                "config": {
                    "channel": "slack",
                    "message": "{{client.name}} is live at {{agency.name}}",
                    "recipients": ["ops"],
                },
                "delay_minutes": 0,
            },
        ],
    }


@pytest.fixture
def failing_effects():
    """Effects whose notifications fail recoverably"""
    return RecordingEffects(
        failures={"send_notification": ActionExecutionError("send_notification", "Slack is down")}
    )
