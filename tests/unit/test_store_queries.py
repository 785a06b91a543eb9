"""
Unit tests for the SQL the store emits on PostgreSQL.

The default suite runs on SQLite, which takes the optimistic claim path;
these tests pin the row-locking path without a PostgreSQL server.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from prometheus_client import CollectorRegistry
from sqlalchemy.dialects import postgresql

from leasequeue.constants import ClaimCategory
from leasequeue.db.connection import Database
from leasequeue.db.store import MessageStore
from leasequeue.observability.metrics import MetricsCollector

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
EXPIRES = NOW + timedelta(seconds=10)


def compile_pg(statement) -> str:
    return " ".join(str(statement.compile(dialect=postgresql.dialect())).split())


def make_result(ids=(), rows=()) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value = list(ids)
    result.__iter__.return_value = iter(list(rows))
    return result


def make_row(message_id, client_id: str = "worker") -> SimpleNamespace:
    return SimpleNamespace(
        id=message_id,
        payload="hello",
        assigned_to=client_id,
        lease_expires_at=EXPIRES,
        created_at=NOW,
    )


@pytest.fixture
def session() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def database(session: AsyncMock) -> MagicMock:
    @asynccontextmanager
    async def open_session(operation: str = "transaction"):
        yield session

    db = MagicMock(spec=Database)
    db.supports_skip_locked = True
    db.session.side_effect = open_session
    return db


@pytest.fixture
def store(database: MagicMock) -> MessageStore:
    return MessageStore(database, metrics=MetricsCollector(registry=CollectorRegistry()))


class TestCandidateQueries:
    """Tests for the candidate selection statements."""

    def test_unclaimed_candidates_skip_locked_rows(self, store):
        sql = compile_pg(
            store._candidates(ClaimCategory.UNCLAIMED, NOW, 5).with_for_update(skip_locked=True)
        )

        assert "WHERE messages.assigned_to IS NULL" in sql
        assert "ORDER BY messages.created_at ASC" in sql
        assert "LIMIT" in sql
        assert sql.endswith("FOR UPDATE SKIP LOCKED")

    def test_expired_candidates_skip_locked_rows(self, store):
        sql = compile_pg(
            store._candidates(ClaimCategory.EXPIRED, NOW, 5).with_for_update(skip_locked=True)
        )

        assert "messages.assigned_to IS NOT NULL" in sql
        assert "messages.lease_expires_at <" in sql
        assert sql.endswith("FOR UPDATE SKIP LOCKED")

    def test_excluded_ids_are_filtered(self, store):
        sql = compile_pg(store._candidates(ClaimCategory.UNCLAIMED, NOW, 5, exclude=[uuid4()]))

        assert "messages.id NOT IN" in sql
        assert "FOR UPDATE" not in sql


class TestSkipLockedClaim:
    """Tests for claim_batch on a store with SKIP LOCKED support."""

    async def test_locks_unclaimed_then_expired_then_updates(self, store, session):
        fresh, stale = uuid4(), uuid4()
        session.execute.side_effect = [
            make_result(ids=[fresh]),
            make_result(ids=[stale]),
            make_result(rows=[make_row(stale), make_row(fresh)]),
        ]

        claimed = await store.claim_batch("worker", 2, NOW, EXPIRES)

        assert [c.id for c in claimed] == [fresh, stale]
        assert [c.category for c in claimed] == [ClaimCategory.UNCLAIMED, ClaimCategory.EXPIRED]

        statements = [compile_pg(call.args[0]) for call in session.execute.await_args_list]
        assert len(statements) == 3
        assert "messages.assigned_to IS NULL" in statements[0]
        assert statements[0].endswith("FOR UPDATE SKIP LOCKED")
        assert "messages.lease_expires_at <" in statements[1]
        assert statements[1].endswith("FOR UPDATE SKIP LOCKED")
        assert statements[2].startswith("UPDATE messages SET")
        assert "RETURNING" in statements[2]

    async def test_expired_scan_skipped_when_budget_filled(self, store, session):
        message_id = uuid4()
        session.execute.side_effect = [
            make_result(ids=[message_id]),
            make_result(rows=[make_row(message_id)]),
        ]

        claimed = await store.claim_batch("worker", 1, NOW, EXPIRES)

        assert [c.id for c in claimed] == [message_id]
        assert session.execute.await_count == 2

    async def test_nothing_claimable_issues_no_update(self, store, session):
        session.execute.side_effect = [make_result(), make_result()]

        assert await store.claim_batch("worker", 3, NOW, EXPIRES) == []
        assert session.execute.await_count == 2


class TestClaimDispatch:
    """Tests for choosing the claim path from the dialect."""

    @pytest.mark.parametrize("skip_locked", [True, False])
    async def test_dispatch(self, store, database, skip_locked):
        database.supports_skip_locked = skip_locked
        store._claim_skip_locked = AsyncMock(return_value=[])
        store._claim_optimistic = AsyncMock(return_value=[])

        await store.claim_batch("worker", 1, NOW, EXPIRES)

        assert store._claim_skip_locked.await_count == (1 if skip_locked else 0)
        assert store._claim_optimistic.await_count == (0 if skip_locked else 1)
