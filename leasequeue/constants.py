"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class AckOutcome(StrEnum):
    """
    Result of an acknowledgement.

    NOT_OWNED covers both "already deleted" and "leased by someone else";
    the store cannot tell them apart without a separate read.
    """

    DELETED = "deleted"
    NOT_OWNED = "not_owned"


class ClaimCategory(StrEnum):
    """Where a claimed message came from, in priority order."""

    UNCLAIMED = "unclaimed"
    EXPIRED = "expired"


# Default values
DEFAULT_CLAIM_COUNT = 1
DEFAULT_LEASE_DURATION_SECONDS = 10
MAX_CLIENT_ID_LENGTH = 255

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_QUEUE_DEPTH = "queue_depth"
METRIC_MESSAGES_ENQUEUED = "messages_enqueued_total"
METRIC_MESSAGES_CLAIMED = "messages_claimed_total"
METRIC_MESSAGES_ACKNOWLEDGED = "messages_acknowledged_total"
METRIC_CLAIM_BATCH_SIZE = "claim_batch_size"
METRIC_STORE_LATENCY = "store_operation_seconds"
METRIC_API_REQUESTS = "api_requests_total"
METRIC_API_LATENCY = "api_request_latency_seconds"

# Trace span names
SPAN_ENQUEUE = "enqueue_message"
SPAN_CLAIM = "claim_messages"
SPAN_ACKNOWLEDGE = "acknowledge_message"
