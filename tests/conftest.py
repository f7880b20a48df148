"""
Pytest configuration and fixtures.
"""

from dataclasses import dataclass
from typing import AsyncGenerator
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.api import deps
from app.core.database import Base, get_db
from app.core.security import get_password_hash
from app.main import app
from app.models.user import User
from app.services.workflow import QuoteLockRegistry, QuoteWorkflowEngine, WorkflowSettings

from tests.fakes import (
    FakeAccountingGateway,
    FakeCalendarGateway,
    FakeClock,
    FakeCommunicationGateway,
    FakeDocumentGateway,
    FakeSignatureGateway,
    InMemoryJobRepository,
    InMemoryQuoteRepository,
)


# Test database URL (in-memory SQLite shared through one connection)
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@dataclass
class Gateways:
    communication: FakeCommunicationGateway
    signature: FakeSignatureGateway
    documents: FakeDocumentGateway
    accounting: FakeAccountingGateway
    calendar: FakeCalendarGateway


@pytest.fixture
def gateways() -> Gateways:
    return Gateways(
        communication=FakeCommunicationGateway(),
        signature=FakeSignatureGateway(),
        documents=FakeDocumentGateway(),
        accounting=FakeAccountingGateway(),
        calendar=FakeCalendarGateway(),
    )


# =============================================================================
# ENGINE (in-memory storage)
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def quote_repo() -> InMemoryQuoteRepository:
    return InMemoryQuoteRepository()


@pytest.fixture
def job_repo() -> InMemoryJobRepository:
    return InMemoryJobRepository()


@pytest.fixture
def engine(quote_repo, job_repo, gateways: Gateways, clock: FakeClock) -> QuoteWorkflowEngine:
    """Workflow engine over in-memory storage and fake gateways."""
    return QuoteWorkflowEngine(
        quotes=quote_repo,
        jobs=job_repo,
        communication=gateways.communication,
        signature=gateways.signature,
        documents=gateways.documents,
        accounting=gateways.accounting,
        calendar=gateways.calendar,
        locks=QuoteLockRegistry(),
        settings=WorkflowSettings(validity_days=30, gateway_timeout=1.0),
        clock=clock,
    )


# =============================================================================
# HTTP (SQLite database)
# =============================================================================

@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session: AsyncSession, gateways: Gateways) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database session and gateway overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_communication_gateway] = lambda: gateways.communication
    app.dependency_overrides[deps.get_signature_gateway] = lambda: gateways.signature
    app.dependency_overrides[deps.get_document_gateway] = lambda: gateways.documents
    app.dependency_overrides[deps.get_accounting_gateway] = lambda: gateways.accounting
    app.dependency_overrides[deps.get_calendar_gateway] = lambda: gateways.calendar

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    user = User(
        email="test@example.com",
        hashed_password=get_password_hash("testpassword123"),
        full_name="Test User",
        business_name="Green Thumb Landscaping",
        is_active=True,
        is_verified=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def auth_client(
    client: AsyncClient,
    test_user: User,
) -> AsyncClient:
    """Create authenticated test client."""
    response = await client.post(
        "/api/v1/auth/login",
        json={
            "email": "test@example.com",
            "password": "testpassword123",
        },
    )
    tokens = response.json()

    client.headers["Authorization"] = f"Bearer {tokens['access_token']}"

    return client
