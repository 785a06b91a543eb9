"""
Queue service.

MessageQueue is the entry point for producers and consumers: it validates
input, takes the time from its clock, computes leases, and delegates each
operation to a single store transaction. It holds no queue state of its own.
"""

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID

from leasequeue.config import Settings
from leasequeue.constants import (
    DEFAULT_CLAIM_COUNT,
    MAX_CLIENT_ID_LENGTH,
    SPAN_ACKNOWLEDGE,
    SPAN_CLAIM,
    SPAN_ENQUEUE,
    AckOutcome,
)
from leasequeue.db.store import MessageStore
from leasequeue.errors import ValidationError
from leasequeue.lease import as_lease_duration, compute_expiry, utc_now
from leasequeue.observability.metrics import MetricsCollector, get_metrics
from leasequeue.observability.tracing import get_tracer
from leasequeue.types.message import ClaimedMessage, Message, QueueStats

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class MessageQueue:
    """
    Competing-consumers queue over a relational store.

    - enqueue: insert an unclaimed message
    - claim: lease up to N claimable messages to one client
    - acknowledge: delete a message the client still holds
    """

    def __init__(
        self,
        store: MessageStore,
        default_lease_duration: timedelta | float = timedelta(seconds=10),
        *,
        clock: Clock = utc_now,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the queue.

        Args:
            store: The message store.
            default_lease_duration: Lease used when a claim does not give one.
            clock: Returns the current UTC time.
            metrics: Metrics collector. Uses the process-wide one if omitted.

        Raises:
            ValidationError: If the default lease duration is not positive.
        """
        self._store = store
        self._default_lease = _positive_lease(default_lease_duration)
        self._clock = clock
        self._metrics = metrics or get_metrics()

    @classmethod
    def from_settings(
        cls,
        store: MessageStore,
        settings: Settings,
        **kwargs,
    ) -> "MessageQueue":
        """Build a queue using the configured default lease duration."""
        return cls(
            store,
            timedelta(seconds=settings.default_lease_duration_seconds),
            **kwargs,
        )

    @property
    def default_lease_duration(self) -> timedelta:
        return self._default_lease

    def now(self) -> datetime:
        """Current time according to the queue's clock."""
        return self._clock()

    async def enqueue(self, payload: str) -> Message:
        """
        Add a message to the queue.

        Args:
            payload: Non-empty message body.

        Returns:
            The persisted, unclaimed message.

        Raises:
            ValidationError: If payload is empty.
            StoreUnavailable: If the insert did not commit.
        """
        if not isinstance(payload, str) or not payload:
            raise ValidationError("payload must be a non-empty string")

        with get_tracer().start_as_current_span(SPAN_ENQUEUE):
            message = await self._store.insert_message(payload, self._clock())

        self._metrics.record_enqueued()
        logger.info("Enqueued message", extra={"message_id": str(message.id)})
        return message

    async def claim(
        self,
        client_id: str,
        count: int = DEFAULT_CLAIM_COUNT,
        lease_duration: timedelta | float | None = None,
    ) -> list[ClaimedMessage]:
        """
        Lease up to ``count`` claimable messages to ``client_id``.

        Unclaimed messages are preferred over ones whose lease has lapsed.
        An empty list means nothing was claimable; it is not an error.

        Args:
            client_id: The consumer identifier.
            count: Maximum number of messages, at least 1.
            lease_duration: Lease length as timedelta or seconds. Defaults
                to the queue's configured lease.

        Returns:
            Claimed messages, at most ``count``.

        Raises:
            ValidationError: On empty client_id, non-positive count, or a
                lease that is not positive or whose expiry is unrepresentable.
            StoreUnavailable: If the claim transaction did not commit.
        """
        _require_client_id(client_id)
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValidationError("count must be a positive integer")
        lease = (
            self._default_lease
            if lease_duration is None
            else _positive_lease(lease_duration)
        )

        now = self._clock()
        try:
            expires_at = compute_expiry(now, lease)
        except OverflowError as e:
            raise ValidationError("lease duration is too large") from e

        with get_tracer().start_as_current_span(SPAN_CLAIM) as span:
            span.set_attribute("queue.client_id", client_id)
            span.set_attribute("queue.requested", count)
            claimed = await self._store.claim_batch(client_id, count, now, expires_at)
            span.set_attribute("queue.claimed", len(claimed))

        self._metrics.record_claimed(Counter(c.category.value for c in claimed))
        return claimed

    async def acknowledge(self, message_id: UUID, client_id: str) -> AckOutcome:
        """
        Delete a message if ``client_id`` is its current assignee.

        Acknowledging after the lease lapsed still succeeds as long as no
        other client has re-claimed the message. Unknown or foreign
        messages yield NOT_OWNED; repeating an acknowledgement is harmless.

        Args:
            message_id: The message UUID.
            client_id: The consumer identifier.

        Returns:
            AckOutcome.DELETED or AckOutcome.NOT_OWNED.

        Raises:
            ValidationError: On empty client_id.
            StoreUnavailable: If the delete did not commit.
        """
        _require_client_id(client_id)

        with get_tracer().start_as_current_span(SPAN_ACKNOWLEDGE):
            deleted = await self._store.delete_if_owned(message_id, client_id)

        outcome = AckOutcome.DELETED if deleted else AckOutcome.NOT_OWNED
        self._metrics.record_acknowledged(outcome.value)

        if deleted:
            logger.info(
                "Acknowledged message",
                extra={"message_id": str(message_id), "client_id": client_id},
            )
        else:
            logger.info(
                "Acknowledgement matched no owned message",
                extra={"message_id": str(message_id), "client_id": client_id},
            )
        return outcome

    async def get_message(self, message_id: UUID) -> Message | None:
        """Read a message without changing it."""
        return await self._store.get_message(message_id)

    async def stats(self) -> QueueStats:
        """Count messages by lease state and refresh the depth gauges."""
        stats = await self._store.count_by_state(self._clock())
        self._metrics.update_queue_depth(stats)
        return stats


def _require_client_id(client_id: str) -> None:
    if not isinstance(client_id, str) or not client_id.strip():
        raise ValidationError("client_id must be a non-empty string")
    if len(client_id) > MAX_CLIENT_ID_LENGTH:
        raise ValidationError(f"client_id must be at most {MAX_CLIENT_ID_LENGTH} characters")


def _positive_lease(value: timedelta | float) -> timedelta:
    if isinstance(value, bool) or not isinstance(value, (timedelta, int, float)):
        raise ValidationError("lease duration must be a timedelta or seconds")
    try:
        lease = as_lease_duration(value)
    except (OverflowError, ValueError) as e:
        raise ValidationError(f"lease duration out of range: {value!r}") from e
    if lease <= timedelta(0):
        raise ValidationError("lease duration must be positive")
    return lease
