"""
Queue error taxonomy.

Acknowledging a message you do not own is not an error; see AckOutcome.
"""


class QueueError(Exception):
    """Base class for all queue failures."""

    retryable: bool = False


class ValidationError(QueueError, ValueError):
    """Input rejected by the queue, or refused by the store's constraints."""


class StoreUnavailable(QueueError):
    """
    The store could not be reached or the transaction did not commit.

    Nothing was mutated; the caller may retry.
    """

    retryable = True

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Store unavailable during {operation}{detail}")
