"""
Pytest configuration and shared fixtures.

Tests run against a throwaway SQLite file by default. Point
TEST_DATABASE_URL at a PostgreSQL database (postgresql+asyncpg://...) to
exercise the SKIP LOCKED claim path instead.
"""

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client import CollectorRegistry
from sqlalchemy import delete

from leasequeue.api.main import create_app
from leasequeue.config import Settings
from leasequeue.db import Database, MessageStore, messages
from leasequeue.observability.metrics import MetricsCollector
from leasequeue.service import MessageQueue

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

DEFAULT_TEST_LEASE = timedelta(seconds=5)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Get the test database URL."""
    if TEST_DATABASE_URL:
        return TEST_DATABASE_URL
    return f"sqlite+aiosqlite:///{tmp_path / 'leasequeue.db'}"


@pytest_asyncio.fixture
async def database(database_url: str) -> AsyncGenerator[Database]:
    """Create a database with an empty messages table."""
    db = Database(database_url, use_null_pool=True)
    await db.create_schema()

    # Clean up test data before each test to ensure clean state
    async with db.engine.begin() as conn:
        await conn.execute(delete(messages))

    yield db

    await db.dispose()


@pytest.fixture
def clock() -> FakeClock:
    """A clock frozen at a fixed instant until advanced."""
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on a private registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def store(database: Database, metrics: MetricsCollector) -> MessageStore:
    """Create a message store."""
    return MessageStore(database, metrics=metrics)


@pytest.fixture
def queue(store: MessageStore, clock: FakeClock, metrics: MetricsCollector) -> MessageQueue:
    """Create a queue with a 5s default lease and a fake clock."""
    return MessageQueue(store, DEFAULT_TEST_LEASE, clock=clock, metrics=metrics)


@pytest.fixture
def test_settings(database_url: str) -> Settings:
    """Create test settings."""
    return Settings(
        database_url=database_url,
        default_lease_duration_seconds=5,
        max_claim_count=10,
        log_level="DEBUG",
        log_format="console",
        otel_enabled=False,
    )


@pytest_asyncio.fixture
async def app(
    test_settings: Settings,
    database: Database,
    clock: FakeClock,
) -> FastAPI:
    """Create a FastAPI app wired to the test database and clock."""
    return create_app(settings=test_settings, database=database, clock=clock)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
