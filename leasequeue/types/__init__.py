"""
Type definitions for the queue.
Contains the stored message types and the API request/response models.
"""

from leasequeue.types.api import (
    AcknowledgeResponse,
    ClaimedMessageResponse,
    ClaimRequest,
    ClaimResponse,
    EnqueueRequest,
    EnqueueResponse,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    StatsResponse,
)
from leasequeue.types.message import ClaimedMessage, Message, QueueStats

__all__ = [
    # API types
    "EnqueueRequest",
    "EnqueueResponse",
    "ClaimRequest",
    "ClaimResponse",
    "ClaimedMessageResponse",
    "AcknowledgeResponse",
    "MessageResponse",
    "StatsResponse",
    "HealthResponse",
    "ErrorResponse",
    # Queue types
    "Message",
    "ClaimedMessage",
    "QueueStats",
]
