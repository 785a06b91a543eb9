"""
Message store for database operations.
Implements the storage-side operations of the queue as named functions.
"""

import logging
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import and_, case, delete, func, insert, or_, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from leasequeue.constants import ClaimCategory
from leasequeue.db.connection import Database
from leasequeue.db.schema import messages
from leasequeue.observability.metrics import MetricsCollector, get_metrics
from leasequeue.types.message import ClaimedMessage, Message, QueueStats

logger = logging.getLogger(__name__)

def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is written in UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _row_to_message(row: Row) -> Message:
    """Convert a messages row to a Message."""
    return Message(
        id=row.id,
        payload=row.payload,
        assigned_to=row.assigned_to,
        lease_expires_at=_as_utc(row.lease_expires_at),
        created_at=_as_utc(row.created_at),
    )


class MessageStore:
    """
    Store for queue messages.

    Implements atomic operations for:
    - Message insertion
    - Batch claiming with FOR UPDATE SKIP LOCKED, or an optimistic
      compare-and-swap on stores without skip-locked support
    - Ownership-checked deletion
    """

    def __init__(
        self,
        database: Database,
        *,
        claim_max_rounds: int = 3,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the store.

        Args:
            database: The database handle.
            claim_max_rounds: Candidate re-reads allowed per optimistic claim.
            metrics: Metrics collector. Uses the process-wide one if omitted.
        """
        self._database = database
        self._claim_max_rounds = claim_max_rounds
        self._metrics = metrics or get_metrics()

    @property
    def database(self) -> Database:
        return self._database

    async def insert_message(self, payload: str, now: datetime) -> Message:
        """
        Insert a new unclaimed message.

        Args:
            payload: The message body.
            now: Creation timestamp.

        Returns:
            The persisted message.
        """
        message = Message(
            id=uuid4(),
            payload=payload,
            assigned_to=None,
            lease_expires_at=None,
            created_at=now,
        )
        started = time.perf_counter()
        async with self._database.session("insert_message") as session:
            await session.execute(
                insert(messages).values(
                    id=message.id,
                    payload=message.payload,
                    assigned_to=None,
                    lease_expires_at=None,
                    created_at=message.created_at,
                )
            )
        self._metrics.observe_store_latency("insert_message", time.perf_counter() - started)
        return message

    async def claim_batch(
        self,
        client_id: str,
        count: int,
        now: datetime,
        lease_expires_at: datetime,
    ) -> list[ClaimedMessage]:
        """
        Lock up to ``count`` claimable messages and lease them to ``client_id``.

        Unclaimed messages are taken before lease-expired ones. Selection and
        assignment happen in a single transaction; on failure nothing changes.

        Args:
            client_id: The claiming consumer.
            count: Maximum number of messages to claim.
            now: Reference time for lease expiry checks.
            lease_expires_at: Expiry to stamp on every claimed row.

        Returns:
            Claimed messages, unclaimed category first, then by creation time.
        """
        started = time.perf_counter()
        async with self._database.session("claim_batch") as session:
            if self._database.supports_skip_locked:
                claimed = await self._claim_skip_locked(
                    session, client_id, count, now, lease_expires_at
                )
            else:
                claimed = await self._claim_optimistic(
                    session, client_id, count, now, lease_expires_at
                )
        self._metrics.observe_store_latency("claim_batch", time.perf_counter() - started)

        if claimed:
            logger.info(
                f"Claimed {len(claimed)} messages",
                extra={"client_id": client_id, "message_count": len(claimed)},
            )
        return claimed

    def _candidates(
        self,
        category: ClaimCategory,
        now: datetime,
        limit: int,
        exclude: Sequence[UUID] = (),
    ):
        """Build the id-selection query for one claim category."""
        if category is ClaimCategory.UNCLAIMED:
            condition = messages.c.assigned_to.is_(None)
        else:
            condition = and_(
                messages.c.assigned_to.is_not(None),
                messages.c.lease_expires_at < now,
            )
        if exclude:
            condition = and_(condition, messages.c.id.not_in(list(exclude)))
        return (
            select(messages.c.id)
            .where(condition)
            .order_by(messages.c.created_at.asc())
            .limit(limit)
        )

    async def _claim_skip_locked(
        self,
        session: AsyncSession,
        client_id: str,
        count: int,
        now: datetime,
        lease_expires_at: datetime,
    ) -> list[ClaimedMessage]:
        """
        Claim using row locks that skip rows held by concurrent claimers.

        Unclaimed rows are locked first; expired rows only fill the rest of
        the budget. Locks are held until the enclosing transaction commits.
        """
        picked: list[tuple[UUID, ClaimCategory]] = []
        for category in (ClaimCategory.UNCLAIMED, ClaimCategory.EXPIRED):
            remaining = count - len(picked)
            if remaining <= 0:
                break
            stmt = self._candidates(category, now, remaining).with_for_update(
                skip_locked=True
            )
            result = await session.execute(stmt)
            picked.extend((message_id, category) for message_id in result.scalars())

        if not picked:
            return []

        categories = dict(picked)
        stmt = (
            update(messages)
            .where(messages.c.id.in_(list(categories)))
            .values(assigned_to=client_id, lease_expires_at=lease_expires_at)
            .returning(*messages.c)
        )
        result = await session.execute(stmt)
        by_id = {row.id: _row_to_message(row) for row in result}

        return [
            ClaimedMessage(message=by_id[message_id], category=category)
            for message_id, category in picked
            if message_id in by_id
        ]

    async def _claim_optimistic(
        self,
        session: AsyncSession,
        client_id: str,
        count: int,
        now: datetime,
        lease_expires_at: datetime,
    ) -> list[ClaimedMessage]:
        """
        Claim with per-row compare-and-swap for stores without SKIP LOCKED.

        Each candidate is updated only if it is still claimable; a zero
        rowcount means a concurrent claimer won that row. Lost rows are
        replaced by re-reading candidates, up to claim_max_rounds reads.
        """
        won: list[tuple[UUID, ClaimCategory]] = []
        tried: set[UUID] = set()

        for _ in range(self._claim_max_rounds):
            candidates: list[tuple[UUID, ClaimCategory]] = []
            for category in (ClaimCategory.UNCLAIMED, ClaimCategory.EXPIRED):
                remaining = count - len(won) - len(candidates)
                if remaining <= 0:
                    break
                result = await session.execute(
                    self._candidates(category, now, remaining, exclude=list(tried))
                )
                candidates.extend((message_id, category) for message_id in result.scalars())

            if not candidates:
                break

            for message_id, category in candidates:
                tried.add(message_id)
                result = await session.execute(
                    update(messages)
                    .where(
                        and_(
                            messages.c.id == message_id,
                            or_(
                                messages.c.assigned_to.is_(None),
                                messages.c.lease_expires_at < now,
                            ),
                        )
                    )
                    .values(assigned_to=client_id, lease_expires_at=lease_expires_at)
                )
                if result.rowcount == 1:
                    won.append((message_id, category))

            if len(won) >= count:
                break

        if not won:
            return []

        result = await session.execute(
            select(messages).where(messages.c.id.in_([message_id for message_id, _ in won]))
        )
        by_id = {row.id: _row_to_message(row) for row in result}
        return [
            ClaimedMessage(message=by_id[message_id], category=category)
            for message_id, category in won
        ]

    async def delete_if_owned(self, message_id: UUID, client_id: str) -> bool:
        """
        Delete a message only if ``client_id`` is its assignee.

        A single conditional DELETE; lease expiry is deliberately not
        re-checked, so a late acknowledgement succeeds until another
        consumer re-claims the message.

        Args:
            message_id: The message UUID.
            client_id: The acknowledging consumer.

        Returns:
            True if a row was deleted.
        """
        started = time.perf_counter()
        async with self._database.session("delete_if_owned") as session:
            result = await session.execute(
                delete(messages).where(
                    and_(
                        messages.c.id == message_id,
                        messages.c.assigned_to == client_id,
                    )
                )
            )
            deleted = result.rowcount == 1
        self._metrics.observe_store_latency("delete_if_owned", time.perf_counter() - started)
        return deleted

    async def get_message(self, message_id: UUID) -> Message | None:
        """
        Get a message by ID.

        Args:
            message_id: The message UUID.

        Returns:
            The Message or None if not found.
        """
        async with self._database.session("get_message") as session:
            result = await session.execute(
                select(messages).where(messages.c.id == message_id)
            )
            row = result.one_or_none()
        return _row_to_message(row) if row is not None else None

    async def count_by_state(self, now: datetime) -> QueueStats:
        """
        Count messages by lease state.

        Args:
            now: Reference time separating live from expired leases.

        Returns:
            QueueStats snapshot.
        """
        unclaimed = messages.c.assigned_to.is_(None)
        expired = and_(messages.c.assigned_to.is_not(None), messages.c.lease_expires_at < now)
        leased = and_(messages.c.assigned_to.is_not(None), messages.c.lease_expires_at >= now)

        def tally(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        async with self._database.session("count_by_state") as session:
            result = await session.execute(
                select(tally(unclaimed), tally(leased), tally(expired)).select_from(messages)
            )
            row = result.one()
        return QueueStats(unclaimed=int(row[0]), leased=int(row[1]), expired=int(row[2]))
