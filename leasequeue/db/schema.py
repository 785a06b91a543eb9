"""
Database schema.
Defines the messages table as an explicit SQLAlchemy Core table.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from leasequeue.constants import MAX_CLIENT_ID_LENGTH

metadata = MetaData()

# Source of truth for queue state. A row is claimable when assigned_to is
# NULL or lease_expires_at has passed; acknowledging deletes the row.
messages = Table(
    "messages",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, nullable=False),
    Column("payload", Text, nullable=False),
    Column("assigned_to", String(MAX_CLIENT_ID_LENGTH), nullable=True),
    Column("lease_expires_at", DateTime(timezone=True), nullable=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    CheckConstraint(
        "(assigned_to IS NULL AND lease_expires_at IS NULL) "
        "OR (assigned_to IS NOT NULL AND lease_expires_at IS NOT NULL)",
        name="ck_messages_lease_pair",
    ),
    CheckConstraint("length(payload) > 0", name="ck_messages_payload_not_empty"),
    # Unclaimed scan, in insertion order
    Index(
        "ix_messages_unclaimed",
        "created_at",
        postgresql_where=text("assigned_to IS NULL"),
        sqlite_where=text("assigned_to IS NULL"),
    ),
    # Expired-lease scan
    Index("ix_messages_lease_expires_at", "lease_expires_at"),
    # Ownership-checked delete
    Index("ix_messages_assigned_to", "assigned_to"),
)
