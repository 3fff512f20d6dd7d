"""
Pytest configuration and fixtures for reporter tests.

Provides:
- Async test database with SQLite for the task store
- A stand-in SQLite historian table for data source tests
- Test client for API testing
- Factory fixtures for creating test data
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import Column, DateTime, Float, MetaData, StaticPool, String, Table
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from reporter.config import Settings, get_settings
from reporter.core.database import get_db
from reporter.core.datetime_utils import utc_now
from reporter.datasource.mapping import ColumnMapping
from reporter.main import app
from reporter.models import Base
from reporter.models.profile import DataSourceProfile
from reporter.models.task import Recurrence, ScheduledTask, TaskStatus
from reporter.models.template import ReportTemplate
from reporter.models.user import User
from reporter.schemas.report import ReportArtifact
from reporter.services.email_service import DeliveryResult

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Stand-in historian table, spelled the way a WinCC tag log usually is
HISTORIAN_TABLE = "TagLog"
historian_metadata = MetaData()
tag_log = Table(
    HISTORIAN_TABLE,
    historian_metadata,
    Column("TimeStamp", DateTime),
    Column("ServerName", String(50)),
    Column("TagName", String(100)),
    Column("TagValue", Float),
)

HISTORIAN_MAPPING = ColumnMapping(
    table=HISTORIAN_TABLE,
    timestamp_column="TimeStamp",
    entity_column="ServerName",
    parameter_column="TagName",
    value_column="TagValue",
)


# Override settings for testing
class TestSettings(Settings):
    database_url: str = TEST_DATABASE_URL
    debug: bool = True
    openai_api_key: str = "test-key"
    resend_api_key: str = "test-key"
    trigger_token: str = ""
    scheduler_enabled: bool = False


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database override."""

    async def override_get_db():
        yield db_session

    def override_get_settings():
        return TestSettings()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = override_get_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Stand-in data source
# ============================================================================


@pytest.fixture
def historian_mapping() -> ColumnMapping:
    """Mapping that matches the stand-in historian table."""
    return HISTORIAN_MAPPING


@pytest_asyncio.fixture
async def historian_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory historian with a few recent and one stale measurement."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    now = utc_now()

    async with engine.begin() as conn:
        await conn.run_sync(historian_metadata.create_all)
        await conn.execute(
            tag_log.insert(),
            [
                {"TimeStamp": now - timedelta(hours=1), "ServerName": "M1", "TagName": "Temperature", "TagValue": 71.5},
                {"TimeStamp": now - timedelta(hours=2), "ServerName": "M1", "TagName": "Pressure", "TagValue": 2.4},
                {"TimeStamp": now - timedelta(hours=1), "ServerName": "M2", "TagName": "Temperature", "TagValue": 68.0},
                {"TimeStamp": now - timedelta(hours=48), "ServerName": "M1", "TagName": "Temperature", "TagValue": 70.0},
                {"TimeStamp": now - timedelta(hours=3), "ServerName": "Machine-01", "TagName": "Speed", "TagValue": 1200.0},
            ],
        )

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def historian_conn(historian_engine: AsyncEngine):
    """Open connection to the stand-in historian."""
    async with historian_engine.connect() as conn:
        yield conn


@pytest_asyncio.fixture
async def stand_in_data_source(historian_engine: AsyncEngine):
    """Route profile fetches to the stand-in historian instead of SQL Server."""

    @asynccontextmanager
    async def _open(config):
        async with historian_engine.connect() as conn:
            yield conn

    with patch("reporter.services.data_fetch.open_data_source", _open):
        yield historian_engine


# ============================================================================
# Service doubles
# ============================================================================


@pytest.fixture
def synthesizer():
    """Synthesizer double returning a small Markdown report."""
    mock = AsyncMock()
    mock.provider_name = "mock"
    mock.generate.return_value = ReportArtifact(
        content="# Report\n\nAll machines nominal.",
        file_name="Daily_Production_Report.md",
        format="pdf",
    )
    return mock


@pytest.fixture
def transport():
    """Transport double that always succeeds."""
    mock = AsyncMock()
    mock.provider_name = "mock"
    mock.send.return_value = DeliveryResult(success=True)
    return mock


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def user_factory(db_session: AsyncSession):
    """Factory for creating test users."""

    async def _create_user(
        email: str | None = None,
        notify_by_email: bool = False,
    ) -> User:
        if email is None:
            email = f"operator-{uuid.uuid4().hex[:8]}@example.com"

        user = User(email=email, notify_by_email=notify_by_email)
        db_session.add(user)
        await db_session.flush()
        return user

    return _create_user


@pytest_asyncio.fixture
async def template_factory(db_session: AsyncSession):
    """Factory for creating report templates."""

    async def _create_template(
        name: str = "Daily Production",
        category: str = "Production",
        description: str = "Output and efficiency per machine",
    ) -> ReportTemplate:
        template = ReportTemplate(name=name, category=category, description=description)
        db_session.add(template)
        await db_session.flush()
        return template

    return _create_template


@pytest_asyncio.fixture
async def profile_factory(db_session: AsyncSession):
    """Factory for creating data source profiles, active by default."""

    async def _create_profile(
        user: User,
        server: str | None = "Server=historian01;Database=Scada;",
        database_name: str | None = None,
        mapping: ColumnMapping = HISTORIAN_MAPPING,
        activate: bool = True,
    ) -> DataSourceProfile:
        profile = DataSourceProfile(
            user_id=user.id,
            name="Plant historian",
            server=server,
            database_name=database_name,
            db_user="report_reader",
            db_password="s3cret",
            mapping_table=mapping.table,
            mapping_timestamp_column=mapping.timestamp_column,
            mapping_entity_column=mapping.entity_column,
            mapping_parameter_column=mapping.parameter_column,
            mapping_value_column=mapping.value_column,
        )
        db_session.add(profile)
        await db_session.flush()

        if activate:
            user.active_profile_id = profile.id
            await db_session.flush()
        return profile

    return _create_profile


@pytest_asyncio.fixture
async def task_factory(db_session: AsyncSession):
    """Factory for creating scheduled tasks, due five minutes ago by default."""

    async def _create_task(
        user: User,
        template: ReportTemplate,
        name: str = "Daily Production Report",
        scheduled_time: datetime | None = None,
        recurrence: Recurrence = Recurrence.DAILY,
        status: TaskStatus = TaskStatus.SCHEDULED,
        entity_ids: list[str] | None = None,
    ) -> ScheduledTask:
        task = ScheduledTask(
            name=name,
            template_id=template.id,
            user_id=user.id,
            scheduled_time=scheduled_time or utc_now() - timedelta(minutes=5),
            recurrence=recurrence,
            status=status,
            entity_ids=entity_ids,
        )
        db_session.add(task)
        await db_session.flush()
        return task

    return _create_task
