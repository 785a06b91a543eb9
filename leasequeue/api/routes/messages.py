"""
Message queue routes.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import JSONResponse, Response

from leasequeue.api.dependencies import QueueDep, SettingsDep
from leasequeue.constants import API_V1_PREFIX, MAX_CLIENT_ID_LENGTH, AckOutcome
from leasequeue.lease import is_claimable, is_owned, lease_remaining
from leasequeue.types.api import (
    AcknowledgeResponse,
    ClaimedMessageResponse,
    ClaimRequest,
    ClaimResponse,
    EnqueueRequest,
    EnqueueResponse,
    ErrorResponse,
    MessageResponse,
    StatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/messages", tags=["Messages"])


@router.post(
    "",
    response_model=EnqueueResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enqueue a message",
    responses={503: {"model": ErrorResponse}},
)
async def enqueue_message(request: EnqueueRequest, queue: QueueDep) -> EnqueueResponse:
    """
    Add a message to the queue.

    Args:
        request: Message body.
        queue: The message queue.

    Returns:
        EnqueueResponse with the generated id.
    """
    message = await queue.enqueue(request.payload)
    return EnqueueResponse(
        id=message.id,
        payload=message.payload,
        created_at=message.created_at,
    )


@router.post(
    "/claim",
    response_model=ClaimResponse,
    summary="Claim messages",
    description=(
        "Lease up to `count` messages to `client_id`. Unclaimed messages are "
        "returned before messages whose previous lease has expired."
    ),
    responses={503: {"model": ErrorResponse}},
)
async def claim_messages(
    request: ClaimRequest,
    queue: QueueDep,
    settings: SettingsDep,
) -> ClaimResponse:
    """
    Claim messages for a consumer.

    Args:
        request: Claim parameters.
        queue: The message queue.
        settings: Application settings (for the batch cap).

    Returns:
        ClaimResponse, possibly empty.
    """
    if request.count > settings.max_claim_count:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"count must be at most {settings.max_claim_count}",
        )

    claimed = await queue.claim(
        client_id=request.client_id,
        count=request.count,
        lease_duration=request.lease_seconds,
    )

    return ClaimResponse(
        messages=[
            ClaimedMessageResponse(
                message_id=c.id,
                payload=c.payload,
                lease_expires_at=c.lease_expires_at,
                redelivery=c.is_redelivery,
            )
            for c in claimed
        ],
        count=len(claimed),
    )


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Queue statistics",
    description="Count messages by lease state.",
)
async def get_stats(queue: QueueDep) -> StatsResponse:
    """Return message counts by lease state."""
    stats = await queue.stats()
    return StatsResponse(
        total=stats.total,
        unclaimed=stats.unclaimed,
        leased=stats.leased,
        expired=stats.expired,
    )


@router.get(
    "/{message_id}",
    response_model=MessageResponse,
    summary="Inspect a message",
    responses={404: {"model": ErrorResponse}},
)
async def get_message(
    message_id: UUID,
    queue: QueueDep,
    client_id: str | None = Query(default=None, max_length=MAX_CLIENT_ID_LENGTH),
) -> MessageResponse:
    """
    Read a message and its lease state without changing it.

    Args:
        message_id: The message UUID.
        queue: The message queue.
        client_id: If given, report whether this client holds a live lease.

    Returns:
        MessageResponse.

    Raises:
        HTTPException: If the message does not exist.
    """
    message = await queue.get_message(message_id)
    if message is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )

    now = queue.now()
    return MessageResponse(
        id=message.id,
        payload=message.payload,
        assigned_to=message.assigned_to,
        lease_expires_at=message.lease_expires_at,
        created_at=message.created_at,
        claimable=is_claimable(message, now),
        lease_seconds_remaining=lease_remaining(message, now).total_seconds(),
        owned_by_caller=is_owned(message, client_id, now) if client_id else None,
    )


@router.delete(
    "/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Acknowledge a message",
    description=(
        "Delete a message held by `client_id`. Returns 409 when the message "
        "does not exist or is assigned to another client."
    ),
    responses={409: {"model": AcknowledgeResponse}, 503: {"model": ErrorResponse}},
)
async def acknowledge_message(
    message_id: UUID,
    queue: QueueDep,
    client_id: str = Query(..., min_length=1, max_length=MAX_CLIENT_ID_LENGTH),
) -> Response:
    """
    Acknowledge (delete) a message.

    Args:
        message_id: The message UUID.
        queue: The message queue.
        client_id: The consumer that claimed the message.

    Returns:
        204 on deletion, 409 with an AcknowledgeResponse otherwise.
    """
    outcome = await queue.acknowledge(message_id, client_id)

    if outcome is AckOutcome.DELETED:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    body = AcknowledgeResponse(
        message_id=message_id,
        outcome=outcome,
        detail="Message not found or not assigned to this client",
    )
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=body.model_dump(mode="json"),
    )
