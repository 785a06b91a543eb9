"""
API request and response type definitions.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from leasequeue.constants import DEFAULT_CLAIM_COUNT, MAX_CLIENT_ID_LENGTH, AckOutcome


class EnqueueRequest(BaseModel):
    """Request body for enqueueing a message."""

    payload: str = Field(..., min_length=1, description="Message body")


class EnqueueResponse(BaseModel):
    """Response body after enqueueing a message."""

    id: UUID
    payload: str
    created_at: datetime


class ClaimRequest(BaseModel):
    """Request body for claiming messages."""

    client_id: str = Field(
        ...,
        min_length=1,
        max_length=MAX_CLIENT_ID_LENGTH,
        description="Consumer identifier that will own the leases",
    )
    count: int = Field(
        default=DEFAULT_CLAIM_COUNT,
        ge=1,
        description="Maximum number of messages to claim",
    )
    lease_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Lease length; defaults to the configured lease duration",
    )


class ClaimedMessageResponse(BaseModel):
    """A single leased message."""

    message_id: UUID
    payload: str
    lease_expires_at: datetime
    redelivery: bool = False


class ClaimResponse(BaseModel):
    """Messages leased to the caller."""

    messages: list[ClaimedMessageResponse]
    count: int


class AcknowledgeResponse(BaseModel):
    """Body returned when an acknowledgement does not delete anything."""

    message_id: UUID
    outcome: AckOutcome
    detail: str | None = None


class MessageResponse(BaseModel):
    """Current state of a message."""

    id: UUID
    payload: str
    assigned_to: str | None
    lease_expires_at: datetime | None
    created_at: datetime
    claimable: bool
    lease_seconds_remaining: float
    owned_by_caller: bool | None = None


class StatsResponse(BaseModel):
    """Message counts by lease state."""

    total: int
    unclaimed: int
    leased: int
    expired: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str | None = None
    retryable: bool = False
