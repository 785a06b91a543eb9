"""
Database module.
Contains the connection handle, schema, and message store.
"""

from leasequeue.db.connection import Database
from leasequeue.db.schema import messages, metadata
from leasequeue.db.store import MessageStore

__all__ = [
    "Database",
    "MessageStore",
    "messages",
    "metadata",
]
