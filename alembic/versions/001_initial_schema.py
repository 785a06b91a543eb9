"""Initial schema with messages table

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("payload", sa.Text, nullable=False),
        sa.Column("assigned_to", sa.String(255), nullable=True),
        sa.Column("lease_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(assigned_to IS NULL AND lease_expires_at IS NULL) "
            "OR (assigned_to IS NOT NULL AND lease_expires_at IS NOT NULL)",
            name="ck_messages_lease_pair",
        ),
        sa.CheckConstraint("length(payload) > 0", name="ck_messages_payload_not_empty"),
    )

    op.create_index("ix_messages_lease_expires_at", "messages", ["lease_expires_at"])
    op.create_index("ix_messages_assigned_to", "messages", ["assigned_to"])

    # Partial index for the unclaimed scan
    op.execute("""
        CREATE INDEX ix_messages_unclaimed
        ON messages (created_at)
        WHERE assigned_to IS NULL
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_messages_unclaimed")
    op.drop_index("ix_messages_assigned_to", table_name="messages")
    op.drop_index("ix_messages_lease_expires_at", table_name="messages")
    op.drop_table("messages")
