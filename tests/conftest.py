"""
Shared pytest fixtures for the AccessGate test suite.

This module provides fixtures for:
- MongoDB test client (async Motor with mongomock)
- Repositories and services wired to the mock database
- A stub model scorer with scripted responses
- Async HTTP client for API testing

All fixtures support async tests via pytest-asyncio.
"""

from collections.abc import AsyncGenerator
from datetime import datetime
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from accessgate.config import PolicyConfig
from accessgate.services.audit import AuditRepository, AuditService
from accessgate.services.database import (
    ACCESS_REQUESTS_COLLECTION,
    AUDIT_LOG_COLLECTION,
    REVIEW_TICKETS_COLLECTION,
    USERS_COLLECTION,
    AccessRequestRepository,
    ReviewTicketRepository,
    ensure_indexes,
)
from accessgate.services.identity import IdentityService
from accessgate.services.query_gate import QueryGate
from accessgate.services.ticket_lifecycle import TicketLifecycleManager
from tests.factories import FIXED_NOW, create_signals


# ============================================================================
# MongoDB Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def mongodb_client() -> AsyncGenerator[AsyncIOMotorClient, None]:
    """
    Provide async MongoDB test client using mongomock.

    Each test gets a fresh client instance. The database is automatically
    cleaned up after each test.
    """
    try:
        import mongomock_motor
    except ImportError:
        pytest.skip("mongomock-motor not installed")

    client = mongomock_motor.AsyncMongoMockClient()

    yield client

    for db_name in await client.list_database_names():
        if db_name not in ("admin", "local", "config"):
            await client.drop_database(db_name)


@pytest_asyncio.fixture
async def test_db(mongodb_client: AsyncIOMotorClient) -> AsyncIOMotorDatabase:
    """
    Provide test database instance with the production indexes.

    Returns:
        Motor database configured for testing
    """
    db = mongodb_client.accessgate_test
    await ensure_indexes(db)
    return db


# ============================================================================
# Repository and Service Fixtures
# ============================================================================


@pytest.fixture
def access_request_repo(test_db: AsyncIOMotorDatabase) -> AccessRequestRepository:
    return AccessRequestRepository(test_db[ACCESS_REQUESTS_COLLECTION])


@pytest.fixture
def ticket_repo(test_db: AsyncIOMotorDatabase) -> ReviewTicketRepository:
    return ReviewTicketRepository(test_db[REVIEW_TICKETS_COLLECTION])


@pytest.fixture
def audit_service(test_db: AsyncIOMotorDatabase) -> AuditService:
    return AuditService(AuditRepository(test_db[AUDIT_LOG_COLLECTION]))


@pytest.fixture
def identity(test_db: AsyncIOMotorDatabase) -> IdentityService:
    return IdentityService(test_db[USERS_COLLECTION])


@pytest.fixture
def ticket_manager(
    ticket_repo: ReviewTicketRepository,
    audit_service: AuditService,
) -> TicketLifecycleManager:
    return TicketLifecycleManager(repository=ticket_repo, audit_service=audit_service)


@pytest.fixture
def stub_scorer() -> AsyncMock:
    """
    Provide a scorer whose ``score`` returns benign signals by default.

    Usage:
        async def test_x(stub_scorer):
            stub_scorer.score.return_value = create_signals(anomaly_score=-0.9)
    """
    scorer = AsyncMock()
    scorer.score.return_value = create_signals()
    return scorer


@pytest.fixture
def make_gate(
    identity: IdentityService,
    stub_scorer: AsyncMock,
    access_request_repo: AccessRequestRepository,
    ticket_manager: TicketLifecycleManager,
) -> Callable[..., QueryGate]:
    """
    Build a QueryGate over the mock database with a fixed clock.

    Usage:
        gate = make_gate(scorer_timeout=0.05)
    """

    def _make(
        scorer: Optional[Any] = None,
        config: Optional[PolicyConfig] = None,
        now: datetime = FIXED_NOW,
        **kwargs: Any,
    ) -> QueryGate:
        kwargs.setdefault("scorer_retry_delay", 0.0)
        return QueryGate(
            identity=identity,
            scorer=scorer if scorer is not None else stub_scorer,
            access_requests=access_request_repo,
            tickets=ticket_manager,
            config=config or PolicyConfig(),
            clock=lambda: now,
            **kwargs,
        )

    return _make


# ============================================================================
# FastAPI Application Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def api_client(
    test_db: AsyncIOMotorDatabase,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide async HTTP client for the real application over the mock database.

    The lifespan is not run; the database module is pointed at the mock
    database directly and the query gate singleton is reset around the test.
    """
    from accessgate.api import dependencies
    from accessgate.api.main import app
    from accessgate.services import database

    monkeypatch.setattr(database, "_mongodb_database", test_db)
    await dependencies.reset_query_gate()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await dependencies.reset_query_gate()


# ============================================================================
# Test Data Markers
# ============================================================================


def pytest_configure(config: Any) -> None:
    """
    Register custom pytest markers.

    Markers:
        - unit: Unit tests (isolated, fast)
        - integration: Integration tests (database, external services)
        - requires_mongodb: Tests requiring MongoDB (mongomock is sufficient)
    """
    config.addinivalue_line("markers", "unit: Unit tests (isolated, fast)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (database, external services)"
    )
    config.addinivalue_line("markers", "requires_mongodb: Tests requiring MongoDB")
