"""
Lease arithmetic and eligibility predicates.

Pure functions with no I/O. The store evaluates the same predicates in SQL;
these are the reference definitions used by the service, the optimistic
claim path and the tests.
"""

from datetime import datetime, timedelta, timezone

from leasequeue.types.message import Message


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_lease_duration(value: timedelta | float | int) -> timedelta:
    """
    Normalize a lease duration given as a timedelta or a number of seconds.

    Args:
        value: The duration.

    Returns:
        The duration as a timedelta. Sign is not checked here.
    """
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


def compute_expiry(now: datetime, lease_duration: timedelta) -> datetime:
    """Timestamp at which a lease granted at ``now`` lapses."""
    return now + lease_duration


def is_claimable(message: Message, now: datetime) -> bool:
    """
    Check whether a message may be handed to a new consumer.

    A message is claimable when nobody holds it, or when the holder's lease
    has lapsed strictly before ``now``.
    """
    if not message.is_assigned:
        return True
    return message.lease_expires_at is not None and message.lease_expires_at < now


def is_owned(message: Message, client_id: str, now: datetime) -> bool:
    """
    Check whether ``client_id`` currently holds a live lease on the message.

    An expired lease confers no ownership even if assigned_to still names
    the old holder.
    """
    return (
        message.assigned_to == client_id
        and message.lease_expires_at is not None
        and message.lease_expires_at >= now
    )


def lease_remaining(message: Message, now: datetime) -> timedelta:
    """Time left on the message's lease, zero when unclaimed or lapsed."""
    if message.lease_expires_at is None:
        return timedelta(0)
    return max(timedelta(0), message.lease_expires_at - now)
