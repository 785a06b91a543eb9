"""
Message type definitions for internal use.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from leasequeue.constants import ClaimCategory


@dataclass(frozen=True)
class Message:
    """
    A single queued message as stored.

    assigned_to and lease_expires_at are either both set or both None.
    """

    id: UUID
    payload: str
    assigned_to: str | None
    lease_expires_at: datetime | None
    created_at: datetime

    @property
    def is_assigned(self) -> bool:
        """Check whether any client has ever claimed this message."""
        return self.assigned_to is not None


@dataclass(frozen=True)
class ClaimedMessage:
    """
    A message handed to a consumer by a claim.

    Carries the category it was drawn from so callers can tell fresh
    deliveries from redeliveries after a lapsed lease.
    """

    message: Message
    category: ClaimCategory

    @property
    def id(self) -> UUID:
        return self.message.id

    @property
    def payload(self) -> str:
        return self.message.payload

    @property
    def lease_expires_at(self) -> datetime | None:
        return self.message.lease_expires_at

    @property
    def is_redelivery(self) -> bool:
        return self.category is ClaimCategory.EXPIRED


@dataclass(frozen=True)
class QueueStats:
    """Snapshot of message counts by lease state."""

    unclaimed: int
    leased: int
    expired: int

    @property
    def total(self) -> int:
        return self.unclaimed + self.leased + self.expired

    @property
    def claimable(self) -> int:
        return self.unclaimed + self.expired
